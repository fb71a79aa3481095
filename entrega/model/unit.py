from __future__ import annotations

import enum
import uuid

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from entrega.model.base import BaseModel


class UnitStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    DELIVERED = "DELIVERED"
    BLOCKED = "BLOCKED"


class Unit(BaseModel, table=True):
    """Modelo Unit - unidade comercializável dentro de um empreendimento."""

    __tablename__ = "unit"

    project_id: uuid.UUID = Field(foreign_key="project.id", index=True, nullable=False)
    owner_id: uuid.UUID | None = Field(default=None, foreign_key="owner.id", index=True, nullable=True)

    block: str = Field(nullable=False)
    number: str = Field(nullable=False)
    floor: str = Field(nullable=False)
    bedrooms: int = Field(default=0, nullable=False)
    bathrooms: int = Field(default=0, nullable=False)
    typology: str = Field(default="")
    area: float = Field(default=0, nullable=False)
    price: float = Field(default=0, nullable=False)
    status: UnitStatus = Field(
        default=UnitStatus.AVAILABLE,
        sa_type=sa.Enum(
            UnitStatus,
            name="unit_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("project_id", "block", "number", name="uq_unit_project_block_number"),
    )
