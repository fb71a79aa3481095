"""
Tests for tenant (construtora) endpoints.
"""

from datetime import date

from sqlmodel import select

from entrega.model.billing import BillingRecord, BillingStatus
from entrega.model.document import Document, DocumentCategory
from entrega.model.job import Job
from entrega.model.owner import Owner
from entrega.model.tenant import Tenant
from tests.conftest import auth_headers


def _tenant_body(**overrides):
    body = {"name": "Construtora Gama", "cnpj": "12345678000199", "admin_email": "Admin@Gama.com",
            "primary_color": "#1e3a5f"}
    body.update(overrides)
    return body


class TestCrud:
    def test_master_creates_tenant(self, client, master):
        resp = client.post("/tenant", json=_tenant_body(), headers=auth_headers(master))
        assert resp.status_code == 201
        body = resp.json()
        assert body["admin_email"] == "admin@gama.com"
        assert body["primary_color"] == "#1E3A5F"
        assert body["status"] == "ACTIVE"
        assert body["timezone"] == "America/Sao_Paulo"

    def test_duplicate_cnpj_conflict(self, client, master, tenant):
        resp = client.post("/tenant", json=_tenant_body(cnpj=tenant.cnpj), headers=auth_headers(master))
        assert resp.status_code == 409

    def test_invalid_color_rejected(self, client, master):
        resp = client.post("/tenant", json=_tenant_body(primary_color="1e3a5f"), headers=auth_headers(master))
        assert resp.status_code == 422

    def test_admin_cannot_create(self, client, admin):
        assert client.post("/tenant", json=_tenant_body(), headers=auth_headers(admin)).status_code == 403

    def test_list_paginates(self, client, master, tenant, other_tenant):
        resp = client.get("/tenant/list?limit=1", headers=auth_headers(master))
        assert resp.status_code == 200
        assert resp.json()["total"] == 2
        assert len(resp.json()["items"]) == 1

    def test_admin_reads_only_own_tenant(self, client, admin, tenant, other_tenant):
        assert client.get(f"/tenant/{tenant.id}", headers=auth_headers(admin)).status_code == 200
        assert client.get(f"/tenant/{other_tenant.id}", headers=auth_headers(admin)).status_code == 403
        assert client.get("/tenant/nao-existe", headers=auth_headers(admin)).status_code == 404

    def test_admin_updates_own_branding(self, client, admin, tenant):
        resp = client.put(f"/tenant/{tenant.id}", json={"primary_color": "#00ff00", "phone": "11999990000"},
                          headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json()["primary_color"] == "#00FF00"

    def test_admin_cannot_change_status_or_plan(self, client, admin, tenant):
        resp = client.put(f"/tenant/{tenant.id}", json={"status": "SUSPENDED"}, headers=auth_headers(admin))
        assert resp.status_code == 403
        resp = client.put(f"/tenant/{tenant.id}", json={"plan": "Enterprise"}, headers=auth_headers(admin))
        assert resp.status_code == 403

    def test_write_with_malformed_id(self, client, master):
        resp = client.put("/tenant/123", json={"name": "Novo nome"}, headers=auth_headers(master))
        assert resp.status_code == 400

    def test_delete_refuses_with_projects(self, client, master, session, tenant, other_tenant, project):
        assert client.delete(f"/tenant/{tenant.id}", headers=auth_headers(master)).status_code == 409
        other_id = other_tenant.id
        assert client.delete(f"/tenant/{other_id}", headers=auth_headers(master)).status_code == 204
        session.expire_all()
        assert session.get(Tenant, other_id) is None


class TestTenantViews:
    def test_stats(self, client, admin, session, tenant, project, units):
        session.add(Document(project_id=project.id, title="Planta", category=DocumentCategory.PROJETOS,
                             file_size=1500))
        session.add(Document(project_id=project.id, unit_id=units[0].id, title="Vistoria",
                             category=DocumentCategory.VISTORIAS, file_size=500))
        session.commit()

        resp = client.get(f"/tenant/{tenant.id}/stats", headers=auth_headers(admin))
        assert resp.json() == {"project_count": 1, "unit_count": 3, "storage_used": 2000}

    def test_projects_include_unit_counts(self, client, admin, tenant, project, units):
        resp = client.get(f"/tenant/{tenant.id}/projects", headers=auth_headers(admin))
        item = resp.json()["items"][0]
        assert item["total_units"] == 3
        assert item["delivered_units"] == 0

    def test_owners_are_deduplicated(self, client, admin, session, tenant, units):
        owner = Owner(tenant_id=tenant.id, name="Pedro", email="pedro@email.com")
        session.add(owner)
        session.commit()
        for unit in units[:2]:
            unit.owner_id = owner.id
            session.add(unit)
        session.commit()

        resp = client.get(f"/tenant/{tenant.id}/owners", headers=auth_headers(admin))
        assert resp.json()["total"] == 1
        assert resp.json()["items"][0]["name"] == "Pedro"

    def test_billing_newest_due_date_first(self, client, admin, session, tenant):
        session.add(BillingRecord(tenant_id=tenant.id, invoice_number="INV-001", amount=499.0,
                                  status=BillingStatus.PAID, due_date=date(2025, 1, 10)))
        session.add(BillingRecord(tenant_id=tenant.id, invoice_number="INV-002", amount=499.0,
                                  due_date=date(2025, 2, 10)))
        session.commit()

        resp = client.get(f"/tenant/{tenant.id}/billing", headers=auth_headers(admin))
        assert [r["invoice_number"] for r in resp.json()["items"]] == ["INV-002", "INV-001"]


class TestResetAdminPassword:
    def test_sends_reset_to_admin_email(self, client, master, admin, session, tenant, enqueued):
        resp = client.post(f"/tenant/{tenant.id}/reset-admin-password", headers=auth_headers(master))
        assert resp.status_code == 202

        job = session.exec(select(Job)).one()
        assert job.input_data["email"] == "admin@alfa.com.br"
        assert enqueued[0][1] == str(job.id)

    def test_admin_without_account(self, client, master, tenant):
        resp = client.post(f"/tenant/{tenant.id}/reset-admin-password", headers=auth_headers(master))
        assert resp.status_code == 404

    def test_tenant_without_admin_email(self, client, master, session, tenant):
        tenant.admin_email = None
        session.add(tenant)
        session.commit()
        resp = client.post(f"/tenant/{tenant.id}/reset-admin-password", headers=auth_headers(master))
        assert resp.status_code == 400
