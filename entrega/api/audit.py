import logging
import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel as PydanticBaseModel
from sqlalchemy import func
from sqlmodel import Session, select

from entrega.auth.dependencies import require_role
from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid
from entrega.model.account import Account, AccountRole
from entrega.model.audit_log import AuditLog

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Audit"])


class AuditLogResponse(PydanticBaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID | None
    actor_account_id: uuid.UUID | None
    actor_name: str
    action: str
    entity_type: str
    entity_id: str | None
    details: str | None
    data: dict[str, Any] | None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(PydanticBaseModel):
    items: list[AuditLogResponse]
    total: int


@router.get("/audit/list", response_model=AuditLogListResponse)
def list_audit_logs(
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
    action: str | None = Query(None, description="Filtrar por ação (ex: LOGIN, UPLOAD)"),
    entity_type: str | None = Query(None, description="Filtrar por entidade (ex: UNIT, DOCUMENT)"),
    tenant_id: str | None = Query(None, description="Filtrar por construtora (MASTER)"),
    limit: int = Query(50, ge=1, le=200, description="Número máximo de itens"),
    offset: int = Query(0, ge=0, description="Offset para paginação"),
):
    """Trilha de auditoria, mais recentes primeiro. ADMIN vê apenas a própria construtora."""
    try:
        filters = []
        if account.role == AccountRole.ADMIN:
            filters.append(AuditLog.tenant_id == account.tenant_id)
        elif tenant_id is not None:
            scope = parse_uuid(tenant_id)
            if scope is None:
                return AuditLogListResponse(items=[], total=0)
            filters.append(AuditLog.tenant_id == scope)
        if action:
            filters.append(AuditLog.action == action.strip().upper())
        if entity_type:
            filters.append(AuditLog.entity_type == entity_type.strip().upper())

        total = session.exec(select(func.count(AuditLog.id)).where(*filters)).one()
        rows = session.exec(
            select(AuditLog)
            .where(*filters)
            .order_by(AuditLog.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
            .offset(offset)
        ).all()
        return AuditLogListResponse(items=[AuditLogResponse.model_validate(r) for r in rows], total=total)
    except Exception as e:
        logger.error(f"Erro ao listar auditoria: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao listar auditoria: {str(e)}") from e
