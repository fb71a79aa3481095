"""
Tests for versioned documents and owner visibility.
"""

import uuid

import pytest
from sqlmodel import Session, select

from entrega.model.audit_log import AuditLog
from entrega.model.document import Document, DocumentCategory, DocumentVersion, DocumentVisibility
from entrega.services import document_service
from entrega.storage.service import StorageService
from tests.conftest import auth_headers


def _upload(client, account, project, *, unit=None, visibility="INTERNAL", title="Manual do proprietário",
            name="manual final.pdf", content=b"%PDF-1.4 conteudo"):
    data = {"project_id": str(project.id), "title": title, "category": "Manuais", "visibility": visibility}
    if unit is not None:
        data["unit_id"] = str(unit.id)
    return client.post(
        "/document",
        data=data,
        files={"file": (name, content, "application/pdf")},
        headers=auth_headers(account),
    )


def test_build_document_key_layout():
    tenant_id, project_id = uuid.uuid4(), uuid.uuid4()
    key = StorageService.build_document_key(tenant_id, project_id, "Planta Baixa (rev 2).PDF")
    prefix = f"{tenant_id}/documents/{project_id}/Planta_Baixa__rev_2__"
    assert key.startswith(prefix)
    assert key.endswith(".pdf")
    assert len(key) == len(prefix) + 8 + len(".pdf")


class TestUpload:
    def test_upload_creates_document_and_first_version(self, client, admin, session, project, storage):
        resp = _upload(client, admin, project)
        assert resp.status_code == 201
        body = resp.json()
        assert body["current_version"] == 1
        assert body["unit_id"] is None
        assert body["is_visible_to_owners"] is False
        assert body["size_label"] == "0.00 MB"

        versions = session.exec(select(DocumentVersion)).all()
        assert len(versions) == 1
        assert versions[0].file_path in storage.objects
        assert versions[0].file_name == "manual final.pdf"

        audit = session.exec(select(AuditLog).where(AuditLog.action == "UPLOAD")).first()
        assert audit.entity_type == "DOCUMENT"

    def test_unit_from_other_project_rejected(self, client, admin, session, tenant, project, units):
        from entrega.model.project import Project

        other = Project(tenant_id=tenant.id, name="Outro", city="X", state="SP", manager="Y")
        session.add(other)
        session.commit()

        resp = _upload(client, admin, other, unit=units[0])
        assert resp.status_code == 400

    def test_other_tenant_forbidden(self, client, other_admin, project):
        assert _upload(client, other_admin, project).status_code == 403

    def test_owner_cannot_upload(self, client, owner_account, project):
        assert _upload(client, owner_account, project).status_code == 403

    def test_failed_insert_removes_stored_object(self, session, tenant, project, storage, monkeypatch):
        def boom():
            raise RuntimeError("falha simulada")

        monkeypatch.setattr(session, "commit", boom)
        with pytest.raises(RuntimeError):
            document_service.create_document(
                session,
                storage,
                tenant_id=tenant.id,
                project_id=project.id,
                unit_id=None,
                title="Habite-se",
                description=None,
                category=DocumentCategory.HABITE_SE,
                visibility=DocumentVisibility.INTERNAL,
                file_name="habite-se.pdf",
                content=b"abc",
                content_type="application/pdf",
                created_by=None,
            )
        monkeypatch.undo()

        assert storage.objects == {}
        assert len(storage.deleted) == 1
        assert session.exec(select(Document)).all() == []


class TestVersions:
    def test_new_version_bumps_current(self, client, admin, session, project):
        doc_id = _upload(client, admin, project).json()["id"]

        resp = client.post(
            f"/document/{doc_id}/version",
            files={"file": ("manual v2.pdf", b"x" * 2048, "application/pdf")},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 201
        assert resp.json()["version_number"] == 2

        session.expire_all()
        document = session.get(Document, uuid.UUID(doc_id))
        assert document.current_version == 2
        assert document.file_size == 2048

        resp = client.get(f"/document/{doc_id}/versions", headers=auth_headers(admin))
        assert [v["version_number"] for v in resp.json()["items"]] == [2, 1]

    def test_concurrent_version_number_conflicts(self, client, admin, engine, project, storage, monkeypatch):
        doc_id = _upload(client, admin, project).json()["id"]
        upload = storage.upload_document_file

        def upload_while_other_version_lands(tenant_id, project_id, file_name, content, content_type=None):
            with Session(engine) as other:
                other.add(DocumentVersion(document_id=uuid.UUID(doc_id), version_number=2, file_path="outra/v2.pdf",
                                          file_name="outra.pdf", file_size=10, file_type="application/pdf"))
                other.commit()
            return upload(tenant_id, project_id, file_name, content, content_type)

        monkeypatch.setattr(storage, "upload_document_file", upload_while_other_version_lands)

        resp = client.post(
            f"/document/{doc_id}/version",
            files={"file": ("manual v2.pdf", b"x" * 10, "application/pdf")},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "HTTP_409"
        # O arquivo enviado pela request perdedora não fica órfão no storage
        assert len(storage.deleted) == 1
        assert storage.deleted[0] not in storage.objects

    def test_download_latest_and_specific_version(self, client, admin, session, project):
        doc_id = _upload(client, admin, project).json()["id"]
        client.post(f"/document/{doc_id}/version", files={"file": ("v2.pdf", b"v2", "application/pdf")},
                    headers=auth_headers(admin))

        latest = client.get(f"/document/{doc_id}/download", headers=auth_headers(admin)).json()
        assert latest["version_number"] == 2
        assert latest["file_name"] == "v2.pdf"
        assert latest["expires_in"] == 60
        assert latest["url"].startswith("https://storage.test/")

        first = client.get(f"/document/{doc_id}/download?version=1", headers=auth_headers(admin)).json()
        assert first["file_name"] == "manual final.pdf"

        missing = client.get(f"/document/{doc_id}/download?version=9", headers=auth_headers(admin))
        assert missing.status_code == 404

        downloads = session.exec(select(AuditLog).where(AuditLog.action == "DOWNLOAD")).all()
        assert len(downloads) == 2


class TestListing:
    def test_project_level_and_unit_level_are_separate(self, client, admin, project, units):
        _upload(client, admin, project, title="Do empreendimento")
        _upload(client, admin, project, unit=units[0], title="Da unidade")

        project_docs = client.get(f"/document/list?project_id={project.id}", headers=auth_headers(admin)).json()
        assert [d["title"] for d in project_docs["items"]] == ["Do empreendimento"]

        unit_docs = client.get(f"/document/list?project_id={project.id}&unit_id={units[0].id}",
                               headers=auth_headers(admin)).json()
        assert [d["title"] for d in unit_docs["items"]] == ["Da unidade"]

    def test_invalid_ids_return_empty(self, client, admin):
        resp = client.get("/document/list?project_id=xyz", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json() == {"items": [], "total": 0}


class TestOwnerVisibility:
    def test_owner_sees_only_shared_documents(self, client, admin, owner_account, project, units):
        _upload(client, admin, project, unit=units[0], title="Interno", visibility="INTERNAL")
        _upload(client, admin, project, unit=units[0], title="Compartilhado", visibility="SHARED")
        _upload(client, admin, project, title="Público do empreendimento", visibility="PUBLIC")
        _upload(client, admin, project, unit=units[1], title="Vizinho", visibility="SHARED")

        resp = client.get("/document/mine", headers=auth_headers(owner_account))
        assert resp.status_code == 200
        titles = {d["title"] for d in resp.json()["items"]}
        assert titles == {"Compartilhado", "Público do empreendimento"}
        assert all(d["project_name"] == "Residencial Jardim" for d in resp.json()["items"])

    def test_owner_cannot_download_internal(self, client, admin, owner_account, project, units):
        doc_id = _upload(client, admin, project, unit=units[0], visibility="INTERNAL").json()["id"]
        resp = client.get(f"/document/{doc_id}/download", headers=auth_headers(owner_account))
        assert resp.status_code == 404

    def test_visibility_change_is_audited(self, client, admin, owner_account, session, project, units):
        doc_id = _upload(client, admin, project, unit=units[0], visibility="INTERNAL").json()["id"]

        resp = client.put(f"/document/{doc_id}/visibility", json={"visibility": "SHARED"},
                          headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json()["is_visible_to_owners"] is True

        resp = client.get(f"/document/{doc_id}/download", headers=auth_headers(owner_account))
        assert resp.status_code == 200

        audit = session.exec(select(AuditLog).where(AuditLog.action == "PERMISSION_CHANGE")).first()
        assert audit.data == {"from": "INTERNAL", "to": "SHARED"}
