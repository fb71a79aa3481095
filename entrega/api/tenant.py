import logging
import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel as PydanticBaseModel, EmailStr, field_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from entrega.api.common import is_unique_violation, require_uuid
from entrega.api.owner import OwnerListResponse, OwnerResponse
from entrega.api.project import ProjectListResponse, build_project_responses
from entrega.auth.dependencies import get_current_account, require_role
from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid
from entrega.model.account import Account, AccountRole
from entrega.model.base import utc_now
from entrega.model.billing import BillingRecord, BillingStatus
from entrega.model.project import Project
from entrega.model.tenant import Tenant, TenantStatus
from entrega.services.access import get_tenant_or_404
from entrega.services.audit_service import record
from entrega.services.password_reset import PASSWORD_RESET_JOB, create_password_reset_job
from entrega.services.tenant_service import tenant_owners, tenant_stats
from entrega.worker import queue

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tenant"])


def _validate_color(v: str | None) -> str | None:
    if v is None:
        return None
    stripped = v.strip()
    if not stripped:
        return None
    # Formato hexadecimal (#RRGGBB)
    if not stripped.startswith("#"):
        raise ValueError("Cor deve começar com #")
    hex_part = stripped[1:]
    if len(hex_part) != 6:
        raise ValueError("Cor deve ter 6 dígitos hexadecimais após o #")
    try:
        int(hex_part, 16)
    except ValueError:
        raise ValueError("Cor deve conter apenas caracteres hexadecimais válidos")
    return stripped.upper()


class TenantCreate(PydanticBaseModel):
    name: str
    cnpj: str
    admin_email: EmailStr | None = None
    phone: str | None = None
    plan: str | None = None
    primary_color: str | None = None
    logo_url: str | None = None
    status: TenantStatus = TenantStatus.ACTIVE
    timezone: str = "America/Sao_Paulo"
    locale: str = "pt-BR"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Nome deve ter pelo menos 2 caracteres")
        return v

    @field_validator("cnpj")
    @classmethod
    def validate_cnpj(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 14:
            raise ValueError("CNPJ deve ter pelo menos 14 caracteres")
        return v

    @field_validator("admin_email", mode="before")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.strip().lower() if v and v.strip() else None

    @field_validator("primary_color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return _validate_color(v)


class TenantUpdate(PydanticBaseModel):
    name: str | None = None
    cnpj: str | None = None
    admin_email: EmailStr | None = None
    phone: str | None = None
    plan: str | None = None
    primary_color: str | None = None
    logo_url: str | None = None
    status: TenantStatus | None = None
    timezone: str | None = None
    locale: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is not None and len(v.strip()) < 2:
            raise ValueError("Nome deve ter pelo menos 2 caracteres")
        return v.strip() if v else None

    @field_validator("cnpj")
    @classmethod
    def validate_cnpj(cls, v: str | None) -> str | None:
        if v is not None and len(v.strip()) < 14:
            raise ValueError("CNPJ deve ter pelo menos 14 caracteres")
        return v.strip() if v else None

    @field_validator("admin_email", mode="before")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.strip().lower() if v and v.strip() else None

    @field_validator("primary_color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return _validate_color(v)


class TenantResponse(PydanticBaseModel):
    id: uuid.UUID
    name: str
    cnpj: str
    logo_url: str | None
    primary_color: str | None
    status: TenantStatus
    admin_email: str | None
    phone: str | None
    plan: str | None
    subscription_status: str | None
    last_payment_date: date | None
    timezone: str
    locale: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TenantListResponse(PydanticBaseModel):
    items: list[TenantResponse]
    total: int


class TenantStatsResponse(PydanticBaseModel):
    project_count: int
    unit_count: int
    storage_used: int


class BillingResponse(PydanticBaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    invoice_number: str
    amount: float
    status: BillingStatus
    due_date: date
    paid_at: datetime | None
    pdf_url: str | None

    class Config:
        from_attributes = True


class BillingListResponse(PydanticBaseModel):
    items: list[BillingResponse]
    total: int


def _read_tenant(session: Session, account: Account, tenant_id: str) -> Tenant:
    parsed = parse_uuid(tenant_id)
    if parsed is None:
        raise HTTPException(status_code=404, detail="Construtora não encontrada")
    return get_tenant_or_404(session, account, parsed)


def _conflict_detail(e: IntegrityError) -> str:
    if is_unique_violation(e, "cnpj"):
        return "Já existe construtora com este CNPJ"
    return "Erro de integridade ao salvar construtora"


@router.post("/tenant", response_model=TenantResponse, status_code=201)
def create_tenant(
    body: TenantCreate,
    account: Account = Depends(require_role(AccountRole.MASTER)),
    session: Session = Depends(get_session),
):
    try:
        logger.info(f"Criando construtora: name={body.name}, cnpj={body.cnpj}")
        existing = session.exec(select(Tenant).where(Tenant.cnpj == body.cnpj)).first()
        if existing:
            logger.warning(f"CNPJ já cadastrado: {body.cnpj} (tenant_id={existing.id})")
            raise HTTPException(status_code=409, detail="Já existe construtora com este CNPJ")

        tenant = Tenant(**body.model_dump())
        session.add(tenant)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=409, detail=_conflict_detail(e)) from e
        session.refresh(tenant)

        record(session, action="CREATE", entity_type="TENANT", entity_id=tenant.id,
               details=f"Construtora criada: {tenant.name}", actor=account, tenant_id=tenant.id)
        return tenant
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao criar construtora: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao criar construtora: {str(e)}") from e


@router.get("/tenant/list", response_model=TenantListResponse)
def list_tenants(
    account: Account = Depends(require_role(AccountRole.MASTER)),
    session: Session = Depends(get_session),
    status: TenantStatus | None = Query(None, description="Filtrar por status"),
    limit: int = Query(50, ge=1, le=100, description="Número máximo de itens"),
    offset: int = Query(0, ge=0, description="Offset para paginação"),
):
    """Lista construtoras, mais recentes primeiro (apenas MASTER)."""
    try:
        query = select(Tenant)
        count_query = select(func.count(Tenant.id))
        if status is not None:
            query = query.where(Tenant.status == status)
            count_query = count_query.where(Tenant.status == status)
        total = session.exec(count_query).one()
        items = session.exec(query.order_by(Tenant.created_at.desc()).limit(limit).offset(offset)).all()  # type: ignore[attr-defined]
        return TenantListResponse(items=[TenantResponse.model_validate(t) for t in items], total=total)
    except Exception as e:
        logger.error(f"Erro ao listar construtoras: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao listar construtoras: {str(e)}") from e


@router.get("/tenant/{tenant_id}", response_model=TenantResponse)
def get_tenant(
    tenant_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    return _read_tenant(session, account, tenant_id)


@router.put("/tenant/{tenant_id}", response_model=TenantResponse)
def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    """
    MASTER altera qualquer campo. ADMIN altera a própria construtora, exceto
    status e plano.
    """
    try:
        parsed = require_uuid(tenant_id, "tenant_id")
        tenant = get_tenant_or_404(session, account, parsed)
        changes = body.model_dump(exclude_unset=True)
        logger.info(f"Atualizando construtora id={tenant.id}: campos={sorted(changes)}")

        if account.role == AccountRole.ADMIN and ({"status", "plan"} & set(changes)):
            logger.warning(f"ADMIN tentou alterar status/plano: account_id={account.id}, tenant_id={tenant.id}")
            raise HTTPException(status_code=403, detail="Apenas MASTER pode alterar status ou plano")

        prev_status = tenant.status
        for field, value in changes.items():
            if value is None and field in ("name", "cnpj", "status", "timezone", "locale"):
                continue
            setattr(tenant, field, value)
        tenant.updated_at = utc_now()
        session.add(tenant)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=409, detail=_conflict_detail(e)) from e
        session.refresh(tenant)

        record(session, action="UPDATE", entity_type="TENANT", entity_id=tenant.id,
               details=f"Construtora atualizada: {tenant.name}", actor=account, tenant_id=tenant.id,
               data={"fields": sorted(changes), "from_status": prev_status.value, "to_status": tenant.status.value}
               if tenant.status != prev_status else {"fields": sorted(changes)})
        return tenant
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao atualizar construtora: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao atualizar construtora: {str(e)}") from e


@router.delete("/tenant/{tenant_id}", status_code=204)
def delete_tenant(
    tenant_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER)),
    session: Session = Depends(get_session),
):
    try:
        parsed = require_uuid(tenant_id, "tenant_id")
        tenant = get_tenant_or_404(session, account, parsed)
        project_count = session.exec(
            select(func.count(Project.id)).where(Project.tenant_id == tenant.id)
        ).one()
        if project_count > 0:
            logger.warning(f"Não é possível excluir construtora {tenant.id}: {project_count} empreendimento(s)")
            raise HTTPException(
                status_code=409,
                detail=f"Não é possível excluir a construtora. Há {project_count} empreendimento(s) cadastrado(s).",
            )
        name = tenant.name
        session.delete(tenant)
        session.commit()
        record(session, action="DELETE", entity_type="TENANT", entity_id=parsed,
               details=f"Construtora excluída: {name}", actor=account)
        return Response(status_code=204)
    except HTTPException:
        raise
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Construtora {tenant_id} ainda referenciada: {e}")
        raise HTTPException(status_code=409, detail="Construtora possui registros vinculados") from e
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao excluir construtora: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao excluir construtora: {str(e)}") from e


@router.get("/tenant/{tenant_id}/stats", response_model=TenantStatsResponse)
def get_tenant_stats(
    tenant_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    tenant = _read_tenant(session, account, tenant_id)
    return TenantStatsResponse(**tenant_stats(session, tenant.id))


@router.get("/tenant/{tenant_id}/projects", response_model=ProjectListResponse)
def list_tenant_projects(
    tenant_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    tenant = _read_tenant(session, account, tenant_id)
    projects = session.exec(
        select(Project).where(Project.tenant_id == tenant.id).order_by(Project.name)
    ).all()
    items = build_project_responses(session, list(projects))
    return ProjectListResponse(items=items, total=len(items))


@router.get("/tenant/{tenant_id}/owners", response_model=OwnerListResponse)
def list_tenant_owners(
    tenant_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    """Proprietários com unidades nos empreendimentos da construtora."""
    tenant = _read_tenant(session, account, tenant_id)
    owners = tenant_owners(session, tenant.id)
    return OwnerListResponse(items=[OwnerResponse.model_validate(o) for o in owners], total=len(owners))


@router.get("/tenant/{tenant_id}/billing", response_model=BillingListResponse)
def list_tenant_billing(
    tenant_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    tenant = _read_tenant(session, account, tenant_id)
    rows = session.exec(
        select(BillingRecord)
        .where(BillingRecord.tenant_id == tenant.id)
        .order_by(BillingRecord.due_date.desc())  # type: ignore[attr-defined]
    ).all()
    return BillingListResponse(items=[BillingResponse.model_validate(r) for r in rows], total=len(rows))


@router.post("/tenant/{tenant_id}/reset-admin-password", status_code=202)
async def reset_admin_password(
    tenant_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER)),
    session: Session = Depends(get_session),
):
    """Envia o link de redefinição de senha para o admin_email da construtora."""
    parsed = require_uuid(tenant_id, "tenant_id")
    tenant = get_tenant_or_404(session, account, parsed)
    if not tenant.admin_email:
        raise HTTPException(status_code=400, detail="Construtora não possui email de administrador")

    admin = session.exec(select(Account).where(Account.email == tenant.admin_email)).first()
    if not admin:
        logger.warning(f"Administrador sem conta: tenant_id={tenant.id}, email={tenant.admin_email}")
        raise HTTPException(status_code=404, detail="Administrador ainda não possui conta cadastrada")

    try:
        job = create_password_reset_job(session, admin)
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao criar job de reset de senha: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao solicitar redefinição de senha: {str(e)}") from e
    await queue.enqueue_job(PASSWORD_RESET_JOB, str(job.id))

    record(session, action="PASSWORD_RESET_REQUEST", entity_type="TENANT", entity_id=tenant.id,
           details=f"Reset de senha enviado para {tenant.admin_email}", actor=account, tenant_id=tenant.id)
    return {"message": f"Email de redefinição enviado para {tenant.admin_email}", "job_id": str(job.id)}
