from __future__ import annotations

import enum
import uuid

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from entrega.model.base import BaseModel


class AccountRole(str, enum.Enum):
    MASTER = "MASTER"
    ADMIN = "ADMIN"
    OWNER = "OWNER"


class Account(BaseModel, table=True):
    """
    Modelo Account - usuários do sistema (tabela account no banco).

    Observações:
      - MASTER administra a plataforma e não tem tenant_id.
      - ADMIN administra uma construtora (tenant_id obrigatório na prática).
      - OWNER é o proprietário final; o vínculo com as unidades vem de Owner.account_id.
    """

    __tablename__ = "account"

    email: str = Field(index=True)
    name: str
    password_hash: str
    role: AccountRole = Field(
        default=AccountRole.OWNER,
        sa_type=sa.Enum(
            AccountRole,
            name="account_role",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
    )
    tenant_id: uuid.UUID | None = Field(default=None, foreign_key="tenant.id", index=True, nullable=True)
    avatar_url: str | None = Field(default=None, nullable=True)

    __table_args__ = (
        UniqueConstraint("email", name="uq_account_email"),
    )
