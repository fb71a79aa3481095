import enum
import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from entrega.model.base import BaseModel


class BillingStatus(str, enum.Enum):
    PAID = "PAID"
    PENDING = "PENDING"
    OVERDUE = "OVERDUE"


class BillingRecord(BaseModel, table=True):
    """Histórico de faturas da construtora (somente leitura na API)."""

    __tablename__ = "billing_history"

    tenant_id: uuid.UUID = Field(foreign_key="tenant.id", index=True, nullable=False)
    invoice_number: str = Field(unique=True, index=True)
    amount: float
    status: BillingStatus = Field(
        default=BillingStatus.PENDING,
        sa_type=sa.Enum(
            BillingStatus,
            name="billing_status",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
    )
    due_date: date = Field(index=True)
    paid_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        nullable=True,
    )
    pdf_url: str | None = Field(default=None, nullable=True)
