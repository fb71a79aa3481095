"""
Documentos versionados.

O arquivo é enviado ao storage antes de qualquer escrita no banco; se a escrita
falhar, o objeto enviado é removido para não deixar arquivo órfão.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_
from sqlmodel import Session, select

from entrega.model.base import utc_now
from entrega.model.document import (
    OWNER_VISIBLE,
    Document,
    DocumentCategory,
    DocumentVersion,
    DocumentVisibility,
)
from entrega.model.project import Project
from entrega.model.unit import Unit
from entrega.storage.service import StorageService

logger = logging.getLogger(__name__)


def _discard_uploaded(storage: StorageService, s3_key: str) -> None:
    try:
        storage.delete_file(s3_key)
    except Exception as e:
        logger.error(f"Falha ao remover arquivo órfão do storage (key={s3_key}): {e}")


def list_documents(
    session: Session,
    project_id: uuid.UUID,
    unit_id: Optional[uuid.UUID] = None,
    visibilities: Optional[tuple[DocumentVisibility, ...]] = None,
) -> list[Document]:
    """Sem unit_id: apenas documentos do empreendimento (unit_id NULL)."""
    query = select(Document).where(Document.project_id == project_id)
    if unit_id is None:
        query = query.where(Document.unit_id.is_(None))  # type: ignore[union-attr]
    else:
        query = query.where(Document.unit_id == unit_id)
    if visibilities:
        query = query.where(Document.visibility.in_(visibilities))  # type: ignore[attr-defined]
    return list(session.exec(query.order_by(Document.created_at.desc())).all())  # type: ignore[attr-defined]


def create_document(
    session: Session,
    storage: StorageService,
    *,
    tenant_id: uuid.UUID,
    project_id: uuid.UUID,
    unit_id: Optional[uuid.UUID],
    title: str,
    description: Optional[str],
    category: DocumentCategory,
    visibility: DocumentVisibility,
    file_name: str,
    content: bytes,
    content_type: Optional[str],
    created_by: Optional[uuid.UUID],
) -> Document:
    file_type = content_type or "application/octet-stream"
    s3_key = storage.upload_document_file(tenant_id, project_id, file_name, content, file_type)

    document = Document(
        project_id=project_id,
        unit_id=unit_id,
        title=title,
        description=description,
        category=category,
        visibility=visibility,
        current_version=1,
        file_size=len(content),
        file_type=file_type,
        created_by=created_by,
    )
    version = DocumentVersion(
        document_id=document.id,
        version_number=1,
        file_path=s3_key,
        file_name=file_name,
        file_size=len(content),
        file_type=file_type,
        created_by=created_by,
    )
    try:
        session.add(document)
        session.flush()
        session.add(version)
        session.commit()
    except Exception:
        session.rollback()
        _discard_uploaded(storage, s3_key)
        raise
    session.refresh(document)
    logger.info(f"Documento criado: id={document.id}, project_id={project_id}, key={s3_key}")
    return document


def add_version(
    session: Session,
    storage: StorageService,
    document: Document,
    *,
    tenant_id: uuid.UUID,
    file_name: str,
    content: bytes,
    content_type: Optional[str],
    created_by: Optional[uuid.UUID],
) -> DocumentVersion:
    file_type = content_type or "application/octet-stream"
    # Sem lock: versão concorrente com o mesmo número viola uq_document_version_number
    next_version = (
        session.exec(
            select(func.max(DocumentVersion.version_number)).where(DocumentVersion.document_id == document.id)
        ).one()
        or 0
    ) + 1
    s3_key = storage.upload_document_file(tenant_id, document.project_id, file_name, content, file_type)

    version = DocumentVersion(
        document_id=document.id,
        version_number=next_version,
        file_path=s3_key,
        file_name=file_name,
        file_size=len(content),
        file_type=file_type,
        created_by=created_by,
    )
    try:
        session.add(version)
        document.current_version = next_version
        document.file_size = len(content)
        document.file_type = file_type
        document.updated_at = utc_now()
        session.add(document)
        session.commit()
    except Exception:
        session.rollback()
        _discard_uploaded(storage, s3_key)
        raise
    session.refresh(version)
    logger.info(f"Nova versão de documento: id={document.id}, version={next_version}")
    return version


def list_versions(session: Session, document_id: uuid.UUID) -> list[DocumentVersion]:
    return list(
        session.exec(
            select(DocumentVersion)
            .where(DocumentVersion.document_id == document_id)
            .order_by(DocumentVersion.version_number.desc())  # type: ignore[attr-defined]
        ).all()
    )


def get_version(session: Session, document: Document, version_number: Optional[int] = None) -> Optional[DocumentVersion]:
    """Versão pedida ou, sem número, a versão atual do documento."""
    number = version_number if version_number is not None else document.current_version
    return session.exec(
        select(DocumentVersion).where(
            DocumentVersion.document_id == document.id,
            DocumentVersion.version_number == number,
        )
    ).first()


def list_owner_documents(session: Session, unit_ids: list[uuid.UUID]) -> list[tuple[Document, str]]:
    """
    Documentos visíveis ao proprietário: os das suas unidades e os do nível
    empreendimento dos projetos dessas unidades, sempre SHARED/PUBLIC.
    Retorna (documento, nome do empreendimento).
    """
    if not unit_ids:
        return []
    project_ids = list(
        session.exec(select(Unit.project_id).where(Unit.id.in_(unit_ids)).distinct()).all()  # type: ignore[attr-defined]
    )
    rows = session.exec(
        select(Document, Project.name)
        .join(Project, Project.id == Document.project_id)
        .where(
            Document.visibility.in_(OWNER_VISIBLE),  # type: ignore[attr-defined]
            or_(
                Document.unit_id.in_(unit_ids),  # type: ignore[union-attr]
                Document.unit_id.is_(None) & Document.project_id.in_(project_ids),  # type: ignore[union-attr, attr-defined]
            ),
        )
        .order_by(Document.created_at.desc())  # type: ignore[attr-defined]
    ).all()
    return [(doc, name) for doc, name in rows]


def storage_used(session: Session, tenant_id: uuid.UUID) -> int:
    """Soma dos tamanhos (versão atual) dos documentos do tenant, em bytes."""
    total = session.exec(
        select(func.coalesce(func.sum(Document.file_size), 0))
        .join(Project, Project.id == Document.project_id)
        .where(Project.tenant_id == tenant_id)
    ).one()
    return int(total or 0)
