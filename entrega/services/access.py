"""
Carregamento de entidades com escopo de tenant.

MASTER vê tudo; ADMIN só o próprio tenant; OWNER só as próprias unidades.
Os helpers levantam HTTPException (404/403) para uso direto nas rotas.
"""
import uuid

from fastapi import HTTPException
from sqlmodel import Session, select

from entrega.auth.dependencies import ensure_tenant_access
from entrega.model.account import Account, AccountRole
from entrega.model.owner import Owner
from entrega.model.project import Project
from entrega.model.tenant import Tenant
from entrega.model.unit import Unit


def owner_ids_for_account(session: Session, account: Account) -> list[uuid.UUID]:
    return list(session.exec(select(Owner.id).where(Owner.account_id == account.id)).all())


def owner_unit_ids(session: Session, account: Account) -> list[uuid.UUID]:
    """Unidades do proprietário logado (pode ter registros Owner em mais de uma construtora)."""
    owner_ids = owner_ids_for_account(session, account)
    if not owner_ids:
        return []
    return list(session.exec(select(Unit.id).where(Unit.owner_id.in_(owner_ids))).all())  # type: ignore[attr-defined]


def get_tenant_or_404(session: Session, account: Account, tenant_id: uuid.UUID) -> Tenant:
    tenant = session.get(Tenant, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Construtora não encontrada")
    ensure_tenant_access(account, tenant.id)
    return tenant


def get_project_or_404(session: Session, account: Account, project_id: uuid.UUID) -> Project:
    project = session.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Empreendimento não encontrado")
    if account.role == AccountRole.OWNER:
        unit_ids = owner_unit_ids(session, account)
        owns = unit_ids and session.exec(
            select(Unit.id).where(Unit.project_id == project.id, Unit.id.in_(unit_ids))  # type: ignore[attr-defined]
        ).first()
        if not owns:
            raise HTTPException(status_code=403, detail="Acesso negado")
        return project
    ensure_tenant_access(account, project.tenant_id)
    return project


def get_unit_or_404(session: Session, account: Account, unit_id: uuid.UUID) -> tuple[Unit, Project]:
    unit = session.get(Unit, unit_id)
    if not unit:
        raise HTTPException(status_code=404, detail="Unidade não encontrada")
    project = session.get(Project, unit.project_id)
    if account.role == AccountRole.OWNER:
        if unit.id not in owner_unit_ids(session, account):
            raise HTTPException(status_code=403, detail="Acesso negado")
        return unit, project
    ensure_tenant_access(account, project.tenant_id)
    return unit, project


def resolve_tenant_id(account: Account, tenant_id: uuid.UUID | None) -> uuid.UUID:
    """
    Tenant alvo de uma escrita: ADMIN usa sempre o próprio; MASTER precisa informar.
    """
    if account.role == AccountRole.ADMIN:
        if tenant_id is not None and tenant_id != account.tenant_id:
            raise HTTPException(status_code=403, detail="Acesso negado")
        return account.tenant_id
    if tenant_id is None:
        raise HTTPException(status_code=400, detail="tenant_id é obrigatório")
    return tenant_id
