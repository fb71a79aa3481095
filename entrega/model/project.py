from __future__ import annotations

import enum
import uuid
from datetime import date

import sqlalchemy as sa
from sqlalchemy import CheckConstraint
from sqlmodel import Field

from entrega.model.base import BaseModel


class ProjectStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    CONSTRUCTION = "CONSTRUCTION"
    DELIVERED = "DELIVERED"


class ProjectPhase(str, enum.Enum):
    PRE_SALES = "PRE_SALES"
    EXECUTION = "EXECUTION"
    DELIVERY = "DELIVERY"
    POST_DELIVERY = "POST_DELIVERY"


class Project(BaseModel, table=True):
    """Modelo Project - empreendimento de uma construtora."""

    __tablename__ = "project"

    tenant_id: uuid.UUID = Field(foreign_key="tenant.id", index=True, nullable=False)
    name: str = Field(nullable=False, index=True)
    city: str
    state: str
    manager: str
    address: str | None = Field(default=None, nullable=True)

    # delivery_date é a previsão; actual_delivery_date é preenchida na entrega real
    delivery_date: date | None = Field(default=None, nullable=True)
    actual_delivery_date: date | None = Field(default=None, nullable=True)

    status: ProjectStatus = Field(
        default=ProjectStatus.PLANNING,
        sa_type=sa.Enum(
            ProjectStatus,
            name="project_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
    )
    phase: ProjectPhase = Field(
        default=ProjectPhase.PRE_SALES,
        sa_type=sa.Enum(
            ProjectPhase,
            name="project_phase",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
    )
    open_issues: int = Field(default=0, nullable=False)
    completion_percentage: int = Field(default=0, nullable=False)
    image_url: str | None = Field(default=None, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "completion_percentage >= 0 AND completion_percentage <= 100",
            name="ck_project_completion_percentage",
        ),
    )
