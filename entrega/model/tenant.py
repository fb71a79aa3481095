from __future__ import annotations

import enum
from datetime import date

import sqlalchemy as sa
from sqlmodel import Field

from entrega.model.base import BaseModel


class TenantStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class Tenant(BaseModel, table=True):
    """Modelo Tenant - construtora cliente da plataforma (raiz do multi-tenant)."""

    __tablename__ = "tenant"

    name: str = Field(index=True)
    cnpj: str = Field(unique=True, index=True)
    logo_url: str | None = Field(default=None, nullable=True)
    primary_color: str | None = Field(default=None, nullable=True)
    status: TenantStatus = Field(
        default=TenantStatus.ACTIVE,
        sa_type=sa.Enum(
            TenantStatus,
            name="tenant_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
    )

    # Contato do administrador da construtora (usado no reset de senha)
    admin_email: str | None = Field(default=None, nullable=True, index=True)
    phone: str | None = Field(default=None, nullable=True)

    # Assinatura (apenas informativo; cobrança real fica fora do sistema)
    plan: str | None = Field(default=None, nullable=True)
    subscription_status: str | None = Field(default=None, nullable=True)
    last_payment_date: date | None = Field(default=None, nullable=True)

    timezone: str = Field(default="America/Sao_Paulo")
    locale: str = Field(default="pt-BR")
