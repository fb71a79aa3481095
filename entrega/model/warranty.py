from __future__ import annotations

import enum
import uuid
from datetime import date

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field

from entrega.model.base import BaseModel


class WarrantyStatus(str, enum.Enum):
    VIGENTE = "Vigente"
    EXPIRADA = "Expirada"
    SUSPENSA = "Suspensa"


class WarrantyCategory(BaseModel, table=True):
    """Sistema construtivo (ex: Estrutura) com prazo de garantia em meses."""

    __tablename__ = "warranty_category"

    tenant_id: uuid.UUID = Field(foreign_key="tenant.id", index=True, nullable=False)
    name: str = Field(nullable=False)
    term_months: int = Field(default=60, nullable=False)
    description: str | None = Field(default=None, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_warranty_category_tenant_name"),
        CheckConstraint("term_months > 0", name="ck_warranty_category_term_positive"),
    )


class UnitWarranty(BaseModel, table=True):
    """
    Garantia de uma categoria aplicada a uma unidade.

    Observações:
      - `expiration_date` = `start_date` + `category.term_months`.
      - `status` só guarda Vigente ou Suspensa; Expirada é derivada da data.
    """

    __tablename__ = "unit_warranty"

    unit_id: uuid.UUID = Field(foreign_key="unit.id", index=True, nullable=False)
    category_id: uuid.UUID = Field(foreign_key="warranty_category.id", index=True, nullable=False)
    start_date: date = Field(nullable=False)
    expiration_date: date = Field(nullable=False, index=True)
    status: WarrantyStatus = Field(
        default=WarrantyStatus.VIGENTE,
        sa_type=sa.Enum(
            WarrantyStatus,
            name="warranty_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
    )
    notes: str | None = Field(default=None, nullable=True)

    __table_args__ = (
        UniqueConstraint("unit_id", "category_id", name="uq_unit_warranty_unit_category"),
        CheckConstraint("expiration_date >= start_date", name="ck_unit_warranty_expiration_after_start"),
    )
