"""
Trilha de auditoria.

Gravação é best-effort: falha ao auditar nunca derruba a operação principal.
"""
import logging
import uuid
from typing import Any, Optional

from sqlmodel import Session

from entrega.model.account import Account
from entrega.model.audit_log import AuditLog

logger = logging.getLogger(__name__)


def try_write_audit_log(session: Session, audit: AuditLog) -> None:
    try:
        session.add(audit)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(f"Falha ao gravar auditoria ({audit.action} {audit.entity_type}): {e}")


def record(
    session: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: Any = None,
    details: Optional[str] = None,
    actor: Optional[Account] = None,
    tenant_id: Optional[uuid.UUID] = None,
    data: Optional[dict] = None,
) -> None:
    """Atalho para montar o AuditLog a partir da conta que executou a ação."""
    try_write_audit_log(
        session,
        AuditLog(
            tenant_id=tenant_id if tenant_id is not None else (actor.tenant_id if actor else None),
            actor_account_id=actor.id if actor else None,
            actor_name=actor.name if actor else "System",
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
            data=data,
        ),
    )
