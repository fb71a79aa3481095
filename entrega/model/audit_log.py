from __future__ import annotations

import uuid
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from entrega.model.base import BaseModel


class AuditLog(BaseModel, table=True):
    __tablename__ = "audit_log"

    # tenant_id pode ser NULL para eventos globais (MASTER, leads públicos, login falho).
    tenant_id: uuid.UUID | None = Field(default=None, foreign_key="tenant.id", index=True)

    # actor_account_id NULL = sistema; actor_name guarda o nome no momento do evento.
    actor_account_id: uuid.UUID | None = Field(default=None, foreign_key="account.id", index=True)
    actor_name: str = Field(default="System")

    action: str = Field(index=True)  # CREATE, UPDATE, DELETE, LOGIN, UPLOAD, ...
    entity_type: str = Field(index=True)  # TENANT, PROJECT, UNIT, OWNER, DOCUMENT, ...
    entity_id: str | None = Field(default=None, index=True)
    details: str | None = Field(default=None)
    data: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
