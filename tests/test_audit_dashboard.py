"""
Tests for the audit trail listing, dashboard counters and error payloads.
"""

from datetime import date, timedelta

from entrega.model.audit_log import AuditLog
from entrega.model.document import Document, DocumentCategory, DocumentVisibility
from entrega.model.lead import Lead
from entrega.model.warranty import UnitWarranty
from entrega.services.audit_service import record, try_write_audit_log
from tests.conftest import auth_headers


class TestAuditList:
    def test_admin_sees_only_own_tenant(self, client, session, master, admin, tenant, other_tenant):
        record(session, action="CREATE", entity_type="PROJECT", details="alfa", tenant_id=tenant.id)
        record(session, action="CREATE", entity_type="PROJECT", details="beta", tenant_id=other_tenant.id)

        resp = client.get("/audit/list?entity_type=project", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert [a["details"] for a in resp.json()["items"]] == ["alfa"]

        resp = client.get("/audit/list?entity_type=PROJECT", headers=auth_headers(master))
        assert resp.json()["total"] == 2
        resp = client.get(f"/audit/list?tenant_id={other_tenant.id}", headers=auth_headers(master))
        assert [a["details"] for a in resp.json()["items"]] == ["beta"]

    def test_owner_forbidden(self, client, owner_account):
        resp = client.get("/audit/list", headers=auth_headers(owner_account))
        assert resp.status_code == 403
        assert resp.json() == {"error": {"code": "HTTP_403", "message": "Requires role: ADMIN, MASTER"}}

    def test_limit_is_capped(self, client, master):
        assert client.get("/audit/list?limit=500", headers=auth_headers(master)).status_code == 422


def test_audit_failure_does_not_raise(session, monkeypatch):
    def boom():
        raise RuntimeError("db down")

    monkeypatch.setattr(session, "commit", boom)
    try_write_audit_log(session, AuditLog(action="LOGIN", entity_type="ACCOUNT"))


class TestDashboard:
    def test_master_counters(self, client, session, master, tenant, other_tenant, project, units):
        session.add(Lead(company_type="X", business_name="Lead", cnpj="1" * 14, manager_name="M",
                         email="l@l.com", whatsapp="1" * 11, location="SP", units_per_month="1", plan="Pro"))
        session.commit()

        body = client.get("/dashboard", headers=auth_headers(master)).json()
        assert body["role"] == "MASTER"
        assert body["tenants"] == 2
        assert body["active_projects"] == 1
        assert body["new_leads"] == 1
        assert body["units"] == 3

    def test_admin_counters(self, client, session, admin, units, categories):
        today = date.today()
        session.add(UnitWarranty(unit_id=units[0].id, category_id=categories[0].id,
                                 start_date=today - timedelta(days=1000), expiration_date=today + timedelta(days=20)))
        session.commit()

        body = client.get("/dashboard", headers=auth_headers(admin)).json()
        assert body["role"] == "ADMIN"
        assert body["projects"] == 1
        assert body["units"] == 3
        assert body["units_by_status"]["SOLD"] == 3
        assert body["delivered_units"] == 0
        assert body["warranties_expiring_soon"] == 1

    def test_owner_counters(self, client, session, owner_account, project, units):
        session.add(Document(project_id=project.id, unit_id=units[0].id, title="Manual",
                             category=DocumentCategory.MANUAIS, visibility=DocumentVisibility.SHARED))
        session.add(Document(project_id=project.id, unit_id=units[0].id, title="Interno",
                             category=DocumentCategory.ART))
        session.commit()

        body = client.get("/dashboard", headers=auth_headers(owner_account)).json()
        assert body["role"] == "OWNER"
        assert body["units"] == 1
        assert body["documents"] == 1
        assert body["tenants"] is None


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_validation_error_payload(client):
    resp = client.post("/lead", json={})
    assert resp.status_code == 422
    body = resp.json()["error"]
    assert body["code"] == "VALIDATION_ERROR"
    assert isinstance(body["details"], list)
