import enum
import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import JSON
from sqlmodel import Field, Column

from entrega.model.base import BaseModel


class JobType(str, enum.Enum):
    PASSWORD_RESET_EMAIL = "PASSWORD_RESET_EMAIL"


class JobStatus(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Job(BaseModel, table=True):
    """Modelo Job - jobs assíncronos processados pelo Arq."""

    __tablename__ = "job"

    tenant_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tenant.id", index=True, nullable=True)
    job_type: JobType = Field(
        sa_type=sa.Enum(JobType, name="job_type", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        index=True,
    )
    status: JobStatus = Field(
        default=JobStatus.PENDING,
        sa_type=sa.Enum(JobStatus, name="job_status", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        index=True,
    )
    # input_data guarda o token de reset; não expor em respostas da API
    input_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    result_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    error_message: Optional[str] = None
    started_at: Optional[datetime] = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        nullable=True,
    )
