import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel as PydanticBaseModel
from sqlalchemy import func
from sqlmodel import Session, select

from entrega.auth.dependencies import get_current_account
from entrega.db.session import get_session
from entrega.lib.tenant_format import today_for_tenant
from entrega.model.account import Account, AccountRole
from entrega.model.lead import Lead, LeadStatus
from entrega.model.project import Project, ProjectStatus
from entrega.model.tenant import Tenant
from entrega.model.unit import Unit, UnitStatus
from entrega.model.warranty import UnitWarranty
from entrega.services import warranty_service
from entrega.services.access import owner_unit_ids
from entrega.services.document_service import list_owner_documents

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dashboard"])


class DashboardResponse(PydanticBaseModel):
    role: AccountRole
    tenants: int | None = None
    projects: int | None = None
    active_projects: int | None = None
    new_leads: int | None = None
    units: int | None = None
    delivered_units: int | None = None
    units_by_status: dict[str, int] | None = None
    documents: int | None = None
    warranties_expiring_soon: int | None = None


def _count_expiring(session: Session, unit_ids: list, timezone: str | None) -> int:
    if not unit_ids:
        return 0
    today = today_for_tenant(timezone)
    warranties = session.exec(
        select(UnitWarranty).where(UnitWarranty.unit_id.in_(unit_ids))  # type: ignore[attr-defined]
    ).all()
    return sum(1 for w in warranties if warranty_service.is_expiring_soon(w.status, w.expiration_date, today))


def _master_dashboard(session: Session) -> DashboardResponse:
    return DashboardResponse(
        role=AccountRole.MASTER,
        tenants=session.exec(select(func.count(Tenant.id))).one(),
        active_projects=session.exec(
            select(func.count(Project.id)).where(Project.status == ProjectStatus.CONSTRUCTION)
        ).one(),
        new_leads=session.exec(select(func.count(Lead.id)).where(Lead.status == LeadStatus.NEW)).one(),
        units=session.exec(select(func.count(Unit.id))).one(),
    )


def _admin_dashboard(session: Session, account: Account) -> DashboardResponse:
    tenant = session.get(Tenant, account.tenant_id)
    rows = session.exec(
        select(Unit.status, func.count(Unit.id))
        .join(Project, Project.id == Unit.project_id)
        .where(Project.tenant_id == account.tenant_id)
        .group_by(Unit.status)
    ).all()
    units_by_status = {s.value: 0 for s in UnitStatus}
    for status, n in rows:
        units_by_status[UnitStatus(status).value] = n
    unit_ids = list(
        session.exec(
            select(Unit.id).join(Project, Project.id == Unit.project_id).where(Project.tenant_id == account.tenant_id)
        ).all()
    )
    return DashboardResponse(
        role=AccountRole.ADMIN,
        projects=session.exec(select(func.count(Project.id)).where(Project.tenant_id == account.tenant_id)).one(),
        units=sum(units_by_status.values()),
        delivered_units=units_by_status[UnitStatus.DELIVERED.value],
        units_by_status=units_by_status,
        warranties_expiring_soon=_count_expiring(session, unit_ids, tenant.timezone if tenant else None),
    )


def _owner_dashboard(session: Session, account: Account) -> DashboardResponse:
    unit_ids = owner_unit_ids(session, account)
    documents = list_owner_documents(session, unit_ids)
    return DashboardResponse(
        role=AccountRole.OWNER,
        units=len(unit_ids),
        documents=len(documents),
        warranties_expiring_soon=_count_expiring(session, unit_ids, None),
    )


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """Contadores conforme a role da conta."""
    try:
        if account.role == AccountRole.MASTER:
            return _master_dashboard(session)
        if account.role == AccountRole.ADMIN:
            return _admin_dashboard(session, account)
        return _owner_dashboard(session, account)
    except Exception as e:
        logger.error(f"Erro ao montar dashboard: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao montar dashboard: {str(e)}") from e
