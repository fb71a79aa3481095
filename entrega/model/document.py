from __future__ import annotations

import enum
import uuid

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from entrega.model.base import BaseModel


class DocumentCategory(str, enum.Enum):
    PROJETOS = "Projetos"
    HABITE_SE = "Habite-se"
    ART = "ART"
    MANUAIS = "Manuais"
    GARANTIAS = "Garantias"
    VISTORIAS = "Vistorias"


class DocumentVisibility(str, enum.Enum):
    INTERNAL = "INTERNAL"
    SHARED = "SHARED"
    PUBLIC = "PUBLIC"


OWNER_VISIBLE = (DocumentVisibility.SHARED, DocumentVisibility.PUBLIC)


class Document(BaseModel, table=True):
    """
    Documento de um empreendimento ou de uma unidade.

    Observações:
      - `unit_id` NULL significa documento do empreendimento (nível projeto).
      - O arquivo vive em DocumentVersion; `current_version` aponta para a última.
      - `file_size`/`file_type` espelham a versão atual.
    """

    __tablename__ = "document"

    project_id: uuid.UUID = Field(foreign_key="project.id", index=True, nullable=False)
    unit_id: uuid.UUID | None = Field(default=None, foreign_key="unit.id", index=True, nullable=True)

    title: str = Field(nullable=False)
    description: str | None = Field(default=None, nullable=True)
    category: DocumentCategory = Field(
        sa_type=sa.Enum(
            DocumentCategory,
            name="document_category",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
    )
    visibility: DocumentVisibility = Field(
        default=DocumentVisibility.INTERNAL,
        sa_type=sa.Enum(
            DocumentVisibility,
            name="document_visibility",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        index=True,
    )
    current_version: int = Field(default=1, nullable=False)
    file_size: int = Field(default=0, nullable=False)  # Tamanho em bytes
    file_type: str | None = Field(default=None, nullable=True)
    created_by: uuid.UUID | None = Field(default=None, foreign_key="account.id", nullable=True)


class DocumentVersion(BaseModel, table=True):
    """Versão imutável do arquivo de um Document."""

    __tablename__ = "document_version"

    document_id: uuid.UUID = Field(foreign_key="document.id", index=True, nullable=False)
    version_number: int = Field(nullable=False)
    file_path: str = Field(unique=True, index=True)  # Chave no S3/MinIO
    file_name: str
    file_size: int
    file_type: str
    created_by: uuid.UUID | None = Field(default=None, foreign_key="account.id", nullable=True)

    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_version_number"),
    )
