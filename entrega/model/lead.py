import enum

import sqlalchemy as sa
from sqlmodel import Field

from entrega.model.base import BaseModel


class LeadStatus(str, enum.Enum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Lead(BaseModel, table=True):
    """Modelo Lead - construtora interessada, capturada pelo site."""

    __tablename__ = "lead"

    company_type: str
    business_name: str = Field(index=True)
    cnpj: str = Field(index=True)
    manager_name: str
    email: str = Field(index=True)
    whatsapp: str
    location: str
    units_per_month: str
    plan: str
    status: LeadStatus = Field(
        default=LeadStatus.NEW,
        sa_type=sa.Enum(
            LeadStatus,
            name="lead_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
    )
