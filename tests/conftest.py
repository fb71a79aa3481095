"""
Fixtures de teste.

Banco SQLite em memória (StaticPool, uma conexão compartilhada), storage e fila
substituídos por fakes. Nenhum serviço externo é necessário.
"""

import os
import uuid

# Antes de importar a aplicação: o engine padrão é criado no import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.pop("RESEND_API_KEY", None)
os.environ.pop("MASTER_EMAILS", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import entrega.model  # noqa: E402,F401
from entrega.auth.jwt import create_access_token  # noqa: E402
from entrega.auth.password import get_password_hash  # noqa: E402
from entrega.db.session import get_session  # noqa: E402
from entrega.main import app  # noqa: E402
from entrega.model.account import Account, AccountRole  # noqa: E402
from entrega.model.owner import Owner  # noqa: E402
from entrega.model.project import Project, ProjectStatus  # noqa: E402
from entrega.model.tenant import Tenant  # noqa: E402
from entrega.model.unit import Unit, UnitStatus  # noqa: E402
from entrega.model.warranty import WarrantyCategory  # noqa: E402
from entrega.storage.service import StorageService, get_storage_service  # noqa: E402
from entrega.worker import queue  # noqa: E402

PASSWORD = "senha123"
# bcrypt é lento de propósito; um hash serve para todas as contas de teste
PASSWORD_HASH = get_password_hash(PASSWORD)


class FakeStorageConfig:
    document_url_expiration = 60


class FakeStorage:
    """Substitui o StorageService: guarda os objetos em memória."""

    def __init__(self):
        self.config = FakeStorageConfig()
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def upload_document_file(self, tenant_id, project_id, file_name, content, content_type=None):
        key = StorageService.build_document_key(tenant_id, project_id, file_name)
        self.objects[key] = content
        return key

    def get_presigned_url(self, s3_key, expiration=None):
        return f"https://storage.test/{s3_key}?expires={expiration or self.config.document_url_expiration}"

    def delete_file(self, s3_key):
        self.objects.pop(s3_key, None)
        self.deleted.append(s3_key)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def enqueued(monkeypatch):
    """Jobs enfileirados durante o teste: lista de (function_name, job_id)."""
    calls: list[tuple[str, str]] = []

    async def fake_enqueue(function_name: str, job_id: str) -> bool:
        calls.append((function_name, job_id))
        return True

    monkeypatch.setattr(queue, "enqueue_job", fake_enqueue)
    return calls


@pytest.fixture
def client(engine, storage, enqueued):
    def override_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_storage_service] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_account(session: Session, *, email: str, role: AccountRole, name: str = "Conta Teste",
                 tenant_id: uuid.UUID | None = None) -> Account:
    account = Account(email=email, name=name, password_hash=PASSWORD_HASH, role=role, tenant_id=tenant_id)
    session.add(account)
    session.commit()
    session.refresh(account)
    return account


def auth_headers(account: Account) -> dict[str, str]:
    token = create_access_token(
        account_id=str(account.id),
        role=account.role.value,
        email=account.email,
        name=account.name,
        tenant_id=str(account.tenant_id) if account.tenant_id else None,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tenant(session):
    tenant = Tenant(name="Construtora Alfa", cnpj="11222333000181", admin_email="admin@alfa.com.br")
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant


@pytest.fixture
def other_tenant(session):
    tenant = Tenant(name="Construtora Beta", cnpj="99888777000166", admin_email="admin@beta.com.br")
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant


@pytest.fixture
def master(session):
    return make_account(session, email="master@entrega.com", role=AccountRole.MASTER, name="Master")


@pytest.fixture
def admin(session, tenant):
    return make_account(session, email="admin@alfa.com.br", role=AccountRole.ADMIN, name="Admin Alfa",
                        tenant_id=tenant.id)


@pytest.fixture
def other_admin(session, other_tenant):
    return make_account(session, email="admin@beta.com.br", role=AccountRole.ADMIN, name="Admin Beta",
                        tenant_id=other_tenant.id)


@pytest.fixture
def project(session, tenant):
    project = Project(
        tenant_id=tenant.id,
        name="Residencial Jardim",
        city="Campinas",
        state="SP",
        manager="Carlos",
        status=ProjectStatus.CONSTRUCTION,
    )
    session.add(project)
    session.commit()
    session.refresh(project)
    return project


@pytest.fixture
def units(session, project):
    created = []
    for number in ("101", "102", "201"):
        unit = Unit(
            project_id=project.id,
            block="A",
            number=number,
            floor=number[0],
            bedrooms=2,
            bathrooms=1,
            typology="2Q",
            area=62.5,
            price=350000.0,
            status=UnitStatus.SOLD,
        )
        session.add(unit)
        created.append(unit)
    session.commit()
    for unit in created:
        session.refresh(unit)
    return created


@pytest.fixture
def owner_account(session, tenant, units):
    """Conta OWNER dona da primeira unidade."""
    account = make_account(session, email="maria@email.com", role=AccountRole.OWNER, name="Maria Souza")
    owner = Owner(tenant_id=tenant.id, account_id=account.id, name="Maria Souza", email="maria@email.com")
    session.add(owner)
    session.commit()
    session.refresh(owner)
    units[0].owner_id = owner.id
    session.add(units[0])
    session.commit()
    return account


@pytest.fixture
def categories(session, tenant):
    created = [
        WarrantyCategory(tenant_id=tenant.id, name="Estrutura", term_months=60),
        WarrantyCategory(tenant_id=tenant.id, name="Impermeabilização", term_months=120),
    ]
    for c in created:
        session.add(c)
    session.commit()
    for c in created:
        session.refresh(c)
    return created


@pytest.fixture
def foreign_category(session, other_tenant):
    category = WarrantyCategory(tenant_id=other_tenant.id, name="Estrutura", term_months=12)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category
