"""
Tests for projects, units and owners endpoints.
"""

from datetime import date

from sqlmodel import select

from entrega.model.account import AccountRole
from entrega.model.audit_log import AuditLog
from entrega.model.document import Document, DocumentCategory
from entrega.model.owner import Owner
from entrega.model.unit import Unit, UnitStatus
from entrega.model.warranty import UnitWarranty
from tests.conftest import auth_headers, make_account


def _unit_body(project, **overrides):
    body = {"project_id": str(project.id), "block": "B", "number": "301", "floor": "3", "bedrooms": 3,
            "bathrooms": 2, "typology": "3Q", "area": 88.0, "price": 520000.0}
    body.update(overrides)
    return body


class TestProjects:
    def test_admin_creates_in_own_tenant(self, client, admin, tenant):
        resp = client.post("/project", json={"name": "Torre Norte", "city": "Santos", "state": "SP",
                                             "manager": "Ana", "delivery_date": "2027-06-30"},
                           headers=auth_headers(admin))
        assert resp.status_code == 201
        body = resp.json()
        assert body["tenant_id"] == str(tenant.id)
        assert body["status"] == "PLANNING"
        assert body["total_units"] == 0

    def test_completion_percentage_bounds(self, client, admin):
        resp = client.post("/project", json={"name": "X", "city": "Y", "state": "SP", "manager": "Z",
                                             "completion_percentage": 120},
                           headers=auth_headers(admin))
        assert resp.status_code == 422

    def test_list_is_tenant_scoped(self, client, admin, other_admin, project):
        assert client.get("/project/list", headers=auth_headers(admin)).json()["total"] == 1
        assert client.get("/project/list", headers=auth_headers(other_admin)).json()["total"] == 0

    def test_owner_lists_projects_of_own_units(self, client, owner_account, project):
        resp = client.get("/project/list", headers=auth_headers(owner_account))
        assert [p["name"] for p in resp.json()["items"]] == ["Residencial Jardim"]

    def test_update_and_counts(self, client, admin, session, project, units):
        units[0].status = UnitStatus.DELIVERED
        session.add(units[0])
        session.commit()

        resp = client.put(f"/project/{project.id}", json={"completion_percentage": 95,
                                                          "actual_delivery_date": "2026-02-01"},
                          headers=auth_headers(admin))
        assert resp.status_code == 200
        body = resp.json()
        assert body["completion_percentage"] == 95
        assert body["actual_delivery_date"] == "2026-02-01"
        assert body["total_units"] == 3
        assert body["delivered_units"] == 1

    def test_delete_refuses_with_units(self, client, admin, project, units):
        assert client.delete(f"/project/{project.id}", headers=auth_headers(admin)).status_code == 409

    def test_delete_refuses_with_documents(self, client, admin, session, project):
        session.add(Document(project_id=project.id, title="Habite-se", category=DocumentCategory.HABITE_SE))
        session.commit()
        assert client.delete(f"/project/{project.id}", headers=auth_headers(admin)).status_code == 409

    def test_delete_empty_project(self, client, admin, project):
        assert client.delete(f"/project/{project.id}", headers=auth_headers(admin)).status_code == 204
        assert client.get(f"/project/{project.id}", headers=auth_headers(admin)).status_code == 404


class TestUnits:
    def test_create_and_list_ordered(self, client, admin, session, project, units):
        resp = client.post("/unit", json=_unit_body(project), headers=auth_headers(admin))
        assert resp.status_code == 201

        listed = client.get(f"/unit/list?project_id={project.id}", headers=auth_headers(admin)).json()
        assert [(u["block"], u["number"]) for u in listed["items"]] == [
            ("A", "101"), ("A", "102"), ("A", "201"), ("B", "301"),
        ]
        audit = session.exec(select(AuditLog).where(AuditLog.entity_type == "UNIT")).first()
        assert audit.action == "CREATE"

    def test_duplicate_block_number_conflict(self, client, admin, project, units):
        resp = client.post("/unit", json=_unit_body(project, block="A", number="101"), headers=auth_headers(admin))
        assert resp.status_code == 409

    def test_validation(self, client, admin, project):
        assert client.post("/unit", json=_unit_body(project, area=0), headers=auth_headers(admin)).status_code == 422
        assert client.post("/unit", json=_unit_body(project, block="  "), headers=auth_headers(admin)).status_code == 422
        assert client.post("/unit", json=_unit_body(project, bedrooms=-1), headers=auth_headers(admin)).status_code == 422

    def test_malformed_project_id(self, client, admin, project):
        resp = client.post("/unit", json=_unit_body(project, project_id="abc"), headers=auth_headers(admin))
        assert resp.status_code == 400

    def test_update_status_is_audited(self, client, admin, session, units):
        resp = client.put(f"/unit/{units[0].id}", json={"status": "DELIVERED"}, headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json()["status"] == "DELIVERED"

        audit = session.exec(select(AuditLog).where(AuditLog.entity_type == "UNIT")).first()
        assert audit.data["to_status"] == "DELIVERED"

    def test_delete_removes_warranties(self, client, admin, session, units, categories):
        session.add(UnitWarranty(unit_id=units[2].id, category_id=categories[0].id,
                                 start_date=date(2025, 1, 1), expiration_date=date(2030, 1, 1)))
        session.commit()

        unit_id = units[2].id
        assert client.delete(f"/unit/{unit_id}", headers=auth_headers(admin)).status_code == 204
        session.expire_all()
        assert session.get(Unit, unit_id) is None
        assert session.exec(select(UnitWarranty)).all() == []

    def test_delete_refuses_with_documents(self, client, admin, session, project, units):
        session.add(Document(project_id=project.id, unit_id=units[0].id, title="Vistoria",
                             category=DocumentCategory.VISTORIAS))
        session.commit()
        assert client.delete(f"/unit/{units[0].id}", headers=auth_headers(admin)).status_code == 409

    def test_owner_sees_only_own_units(self, client, owner_account, project, units):
        mine = client.get("/unit/mine", headers=auth_headers(owner_account)).json()
        assert [u["number"] for u in mine["items"]] == ["101"]
        assert mine["items"][0]["project_name"] == "Residencial Jardim"

        listed = client.get(f"/unit/list?project_id={project.id}", headers=auth_headers(owner_account)).json()
        assert listed["total"] == 1
        assert client.get(f"/unit/{units[1].id}", headers=auth_headers(owner_account)).status_code == 403


class TestOwners:
    def test_create_links_existing_owner_account(self, client, admin, session):
        account = make_account(session, email="lucas@email.com", role=AccountRole.OWNER, name="Lucas")

        resp = client.post("/owner", json={"name": "Lucas", "email": "Lucas@Email.com", "phone": "11988887777"},
                           headers=auth_headers(admin))
        assert resp.status_code == 201
        assert resp.json()["account_id"] == str(account.id)
        assert resp.json()["tenant_id"] == str(admin.tenant_id)

    def test_invalid_email(self, client, admin):
        resp = client.post("/owner", json={"name": "Lucas", "email": "sem-arroba"}, headers=auth_headers(admin))
        assert resp.status_code == 422

    def test_admin_sees_only_tenant_owners(self, client, admin, other_admin, session, tenant, other_tenant):
        session.add(Owner(tenant_id=tenant.id, name="Alice", email="alice@email.com"))
        session.add(Owner(tenant_id=other_tenant.id, name="Bruno", email="bruno@email.com"))
        session.commit()

        names = [o["name"] for o in client.get("/owner/list", headers=auth_headers(admin)).json()["items"]]
        assert names == ["Alice"]
        found = client.get("/owner/list?q=BRU", headers=auth_headers(other_admin)).json()
        assert [o["name"] for o in found["items"]] == ["Bruno"]

    def test_get_counts_units_and_delete_conflict(self, client, admin, session, tenant, units):
        owner = Owner(tenant_id=tenant.id, name="Carla", email="carla@email.com")
        session.add(owner)
        session.commit()
        units[1].owner_id = owner.id
        session.add(units[1])
        session.commit()

        resp = client.get(f"/owner/{owner.id}", headers=auth_headers(admin))
        assert resp.json()["units_owned"] == 1
        assert client.delete(f"/owner/{owner.id}", headers=auth_headers(admin)).status_code == 409

    def test_other_tenant_forbidden(self, client, other_admin, session, tenant):
        owner = Owner(tenant_id=tenant.id, name="Davi", email="davi@email.com")
        session.add(owner)
        session.commit()
        assert client.get(f"/owner/{owner.id}", headers=auth_headers(other_admin)).status_code == 403

    def test_update_and_delete(self, client, admin, session, tenant):
        owner = Owner(tenant_id=tenant.id, name="Elisa", email="elisa@email.com")
        session.add(owner)
        session.commit()

        resp = client.put(f"/owner/{owner.id}", json={"phone": "11911112222"}, headers=auth_headers(admin))
        assert resp.json()["phone"] == "11911112222"
        assert client.delete(f"/owner/{owner.id}", headers=auth_headers(admin)).status_code == 204
