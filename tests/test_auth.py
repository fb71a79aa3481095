"""
Tests for registration, login and password reset.
"""

from sqlmodel import select

from entrega.auth.jwt import create_password_reset_token, verify_token
from entrega.model.account import Account, AccountRole
from entrega.model.audit_log import AuditLog
from entrega.model.job import Job, JobStatus, JobType
from entrega.model.owner import Owner
from entrega.model.tenant import TenantStatus
from entrega.services.password_reset import PASSWORD_RESET_JOB
from tests.conftest import PASSWORD, auth_headers


def _register(client, email, role="OWNER", name="Fulano de Tal", password="segredo1"):
    return client.post(
        "/auth/register",
        json={"name": name, "email": email, "password": password, "confirm_password": password, "role": role},
    )


class TestRegister:
    def test_owner_registration_links_owner_rows(self, client, session, tenant):
        session.add(Owner(tenant_id=tenant.id, name="Joana", email="joana@email.com"))
        session.commit()

        resp = _register(client, "Joana@Email.com")
        assert resp.status_code == 201
        body = resp.json()
        assert body["account"]["role"] == "OWNER"
        assert body["account"]["email"] == "joana@email.com"

        session.expire_all()
        owner = session.exec(select(Owner).where(Owner.email == "joana@email.com")).one()
        assert str(owner.account_id) == body["account"]["id"]

    def test_admin_requires_matching_tenant(self, client, tenant):
        assert _register(client, "outro@alfa.com.br", role="ADMIN").status_code == 403

        resp = _register(client, "admin@alfa.com.br", role="ADMIN")
        assert resp.status_code == 201
        assert resp.json()["account"]["tenant_id"] == str(tenant.id)

    def test_master_emails_grant_master(self, client, monkeypatch):
        monkeypatch.setenv("MASTER_EMAILS", "chefe@entrega.com, outra@entrega.com")
        resp = _register(client, "chefe@entrega.com")
        assert resp.status_code == 201
        assert resp.json()["account"]["role"] == "MASTER"

    def test_master_role_cannot_be_requested(self, client):
        assert _register(client, "x@entrega.com", role="MASTER").status_code == 422

    def test_duplicate_email_conflict(self, client):
        assert _register(client, "dup@email.com").status_code == 201
        resp = _register(client, "dup@email.com")
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "HTTP_409"

    def test_password_confirmation_must_match(self, client):
        resp = client.post("/auth/register", json={"name": "Fulano", "email": "a@b.com", "password": "segredo1",
                                                   "confirm_password": "outra123"})
        assert resp.status_code == 422


class TestLogin:
    def test_login_returns_token_and_audits(self, client, session, admin):
        resp = client.post("/auth/login", json={"email": "ADMIN@alfa.com.br", "password": PASSWORD})
        assert resp.status_code == 200
        payload = verify_token(resp.json()["access_token"])
        assert payload["sub"] == str(admin.id)
        assert payload["role"] == "ADMIN"
        assert payload["tenant_id"] == str(admin.tenant_id)

        assert session.exec(select(AuditLog).where(AuditLog.action == "LOGIN")).first() is not None

    def test_wrong_password(self, client, session, admin):
        resp = client.post("/auth/login", json={"email": admin.email, "password": "errada"})
        assert resp.status_code == 401
        failed = session.exec(select(AuditLog).where(AuditLog.action == "LOGIN_FAILED")).first()
        assert failed.actor_name == "System"

    def test_suspended_tenant_blocked(self, client, session, tenant, admin):
        tenant.status = TenantStatus.SUSPENDED
        session.add(tenant)
        session.commit()

        resp = client.post("/auth/login", json={"email": admin.email, "password": PASSWORD})
        assert resp.status_code == 403
        # Token emitido antes da suspensão também perde acesso
        assert client.get("/me", headers=auth_headers(admin)).status_code == 403

    def test_me_requires_token(self, client, master):
        assert client.get("/me").status_code == 401
        resp = client.get("/me", headers=auth_headers(master))
        assert resp.json()["email"] == "master@entrega.com"


class TestPasswordReset:
    def test_forgot_password_creates_and_enqueues_job(self, client, session, owner_account, enqueued):
        resp = client.post("/auth/forgot-password", json={"email": "maria@email.com"})
        assert resp.status_code == 202

        job = session.exec(select(Job)).one()
        assert job.job_type == JobType.PASSWORD_RESET_EMAIL
        assert job.status == JobStatus.PENDING
        assert job.input_data["email"] == "maria@email.com"
        assert enqueued == [(PASSWORD_RESET_JOB, str(job.id))]

    def test_unknown_email_is_silent(self, client, session, enqueued):
        resp = client.post("/auth/forgot-password", json={"email": "ninguem@email.com"})
        assert resp.status_code == 202
        assert session.exec(select(Job)).all() == []
        assert enqueued == []

    def test_enqueue_failure_keeps_job_pending(self, client, session, owner_account, monkeypatch):
        from entrega.worker import queue

        async def redis_down(function_name, job_id):
            return False

        monkeypatch.setattr(queue, "enqueue_job", redis_down)
        resp = client.post("/auth/forgot-password", json={"email": "maria@email.com"})
        assert resp.status_code == 202
        assert session.exec(select(Job)).one().status == JobStatus.PENDING

    def test_reset_token_is_single_use(self, client, session, owner_account):
        token = create_password_reset_token(str(owner_account.id), owner_account.email, owner_account.password_hash)
        body = {"token": token, "password": "novaSenha1", "confirm_password": "novaSenha1"}

        assert client.post("/auth/reset-password", json=body).status_code == 200
        assert client.post("/auth/reset-password", json=body).status_code == 400

        resp = client.post("/auth/login", json={"email": owner_account.email, "password": "novaSenha1"})
        assert resp.status_code == 200

    def test_access_token_is_not_a_reset_token(self, client, owner_account):
        token = auth_headers(owner_account)["Authorization"].removeprefix("Bearer ")
        resp = client.post("/auth/reset-password",
                           json={"token": token, "password": "novaSenha1", "confirm_password": "novaSenha1"})
        assert resp.status_code == 400

    def test_reset_token_cannot_authenticate(self, client, owner_account):
        token = create_password_reset_token(str(owner_account.id), owner_account.email, owner_account.password_hash)
        assert client.get("/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_logout_is_audited(client, session, master):
    assert client.post("/auth/logout", headers=auth_headers(master)).status_code == 204
    logout = session.exec(select(AuditLog).where(AuditLog.action == "LOGOUT")).one()
    assert logout.actor_account_id == master.id


def test_account_emails_are_normalized(client, session):
    _register(client, "  Caixa@Alta.COM ")
    assert session.exec(select(Account).where(Account.email == "caixa@alta.com")).one().role == AccountRole.OWNER
