import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel, EmailStr, field_validator
from sqlalchemy import func
from sqlmodel import Session, select

from entrega.api.auth import normalize_email
from entrega.api.common import require_uuid
from entrega.auth.dependencies import require_role
from entrega.db.session import get_session
from entrega.model.account import Account, AccountRole
from entrega.model.audit_log import AuditLog
from entrega.model.base import utc_now
from entrega.model.lead import Lead, LeadStatus
from entrega.services.audit_service import record, try_write_audit_log
from entrega.services.lead_service import approve_lead

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Lead"])


def _min_length(v: str, size: int, label: str) -> str:
    v = (v or "").strip()
    if len(v) < size:
        raise ValueError(f"{label} deve ter pelo menos {size} caracteres")
    return v


class LeadCreate(PydanticBaseModel):
    company_type: str
    business_name: str
    cnpj: str
    manager_name: str
    email: EmailStr
    whatsapp: str
    location: str
    units_per_month: str
    plan: str
    lgpd_consent: bool = False

    @field_validator("company_type", "units_per_month", "plan")
    @classmethod
    def validate_required(cls, v: str) -> str:
        return _min_length(v, 1, "Campo")

    @field_validator("business_name")
    @classmethod
    def validate_business_name(cls, v: str) -> str:
        return _min_length(v, 2, "Razão social")

    @field_validator("cnpj")
    @classmethod
    def validate_cnpj(cls, v: str) -> str:
        return _min_length(v, 14, "CNPJ")

    @field_validator("manager_name")
    @classmethod
    def validate_manager_name(cls, v: str) -> str:
        return _min_length(v, 2, "Nome do responsável")

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("whatsapp")
    @classmethod
    def validate_whatsapp(cls, v: str) -> str:
        return _min_length(v, 10, "WhatsApp")

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        return _min_length(v, 2, "Localização")

    @field_validator("lgpd_consent")
    @classmethod
    def validate_consent(cls, v: bool) -> bool:
        if not v:
            raise ValueError("É necessário aceitar os termos da LGPD")
        return v


class LeadResponse(PydanticBaseModel):
    id: uuid.UUID
    company_type: str
    business_name: str
    cnpj: str
    manager_name: str
    email: str
    whatsapp: str
    location: str
    units_per_month: str
    plan: str
    status: LeadStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class LeadListResponse(PydanticBaseModel):
    items: list[LeadResponse]
    total: int


class LeadStatusUpdate(PydanticBaseModel):
    status: LeadStatus


class LeadApproveResponse(PydanticBaseModel):
    lead: LeadResponse
    tenant_id: uuid.UUID


def _get_lead_or_404(session: Session, lead_id: str) -> Lead:
    lead = session.get(Lead, require_uuid(lead_id, "lead_id"))
    if not lead:
        raise HTTPException(status_code=404, detail="Lead não encontrado")
    return lead


@router.post("/lead", response_model=LeadResponse, status_code=201)
def create_lead(body: LeadCreate, session: Session = Depends(get_session)):
    """Cadastro público (site). Não exige autenticação."""
    try:
        logger.info(f"Novo lead: business_name={body.business_name}, email={body.email}")
        lead = Lead(**body.model_dump(exclude={"lgpd_consent"}))
        session.add(lead)
        session.commit()
        session.refresh(lead)
        response = LeadResponse.model_validate(lead)

        try_write_audit_log(
            session,
            AuditLog(
                actor_name="System (Public)",
                action="CREATE",
                entity_type="LEAD",
                entity_id=str(lead.id),
                details=f"Novo lead: {response.business_name}",
            ),
        )
        return response
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao registrar lead: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao registrar lead: {str(e)}") from e


@router.get("/lead/list", response_model=LeadListResponse)
def list_leads(
    account: Account = Depends(require_role(AccountRole.MASTER)),
    session: Session = Depends(get_session),
    status: LeadStatus | None = Query(None, description="Filtrar por status"),
    limit: int = Query(50, ge=1, le=100, description="Número máximo de itens"),
    offset: int = Query(0, ge=0, description="Offset para paginação"),
):
    query = select(Lead)
    count_query = select(func.count(Lead.id))
    if status is not None:
        query = query.where(Lead.status == status)
        count_query = count_query.where(Lead.status == status)
    total = session.exec(count_query).one()
    leads = session.exec(query.order_by(Lead.created_at.desc()).limit(limit).offset(offset)).all()  # type: ignore[attr-defined]
    return LeadListResponse(items=[LeadResponse.model_validate(lead) for lead in leads], total=total)


@router.put("/lead/{lead_id}/status", response_model=LeadResponse)
def update_lead_status(
    lead_id: str,
    body: LeadStatusUpdate,
    account: Account = Depends(require_role(AccountRole.MASTER)),
    session: Session = Depends(get_session),
):
    try:
        lead = _get_lead_or_404(session, lead_id)
        prev = lead.status
        lead.status = body.status
        lead.updated_at = utc_now()
        session.add(lead)
        session.commit()
        session.refresh(lead)
        response = LeadResponse.model_validate(lead)

        record(session, action="UPDATE", entity_type="LEAD", entity_id=lead.id,
               details=f"Lead {response.business_name}: {prev.value} -> {body.status.value}", actor=account)
        return response
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao atualizar lead: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao atualizar lead: {str(e)}") from e


@router.post("/lead/{lead_id}/approve", response_model=LeadApproveResponse)
def approve(
    lead_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER)),
    session: Session = Depends(get_session),
):
    """Cria a construtora a partir do lead e marca o lead como APPROVED."""
    try:
        lead = _get_lead_or_404(session, lead_id)
        tenant = approve_lead(session, lead)
        session.refresh(lead)
        response = LeadApproveResponse(lead=LeadResponse.model_validate(lead), tenant_id=tenant.id)

        record(session, action="APPROVE", entity_type="LEAD", entity_id=lead.id,
               details=f"Lead aprovado: {response.lead.business_name}", actor=account,
               tenant_id=response.tenant_id)
        return response
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao aprovar lead: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao aprovar lead: {str(e)}") from e
