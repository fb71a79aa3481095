import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import BaseModel as PydanticBaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from entrega.api.common import is_unique_violation, require_uuid
from entrega.auth.dependencies import get_current_account, require_role
from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid
from entrega.lib.tenant_format import format_file_size
from entrega.model.account import Account, AccountRole
from entrega.model.base import utc_now
from entrega.model.document import (
    OWNER_VISIBLE,
    Document,
    DocumentCategory,
    DocumentVersion,
    DocumentVisibility,
)
from entrega.model.project import Project
from entrega.services import document_service
from entrega.services.access import get_project_or_404, get_unit_or_404, owner_unit_ids
from entrega.services.audit_service import record
from entrega.storage.service import StorageService, get_storage_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Document"])


class DocumentResponse(PydanticBaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    unit_id: uuid.UUID | None
    title: str
    description: str | None
    category: DocumentCategory
    visibility: DocumentVisibility
    current_version: int
    file_size: int
    file_type: str | None
    created_by: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
    is_visible_to_owners: bool = False
    size_label: str = ""
    project_name: str | None = None

    class Config:
        from_attributes = True


class DocumentListResponse(PydanticBaseModel):
    items: list[DocumentResponse]
    total: int


class DocumentVersionResponse(PydanticBaseModel):
    id: uuid.UUID
    document_id: uuid.UUID
    version_number: int
    file_name: str
    file_size: int
    file_type: str
    created_by: uuid.UUID | None
    created_at: datetime
    size_label: str = ""

    class Config:
        from_attributes = True


class DocumentVersionListResponse(PydanticBaseModel):
    items: list[DocumentVersionResponse]
    total: int


class DownloadResponse(PydanticBaseModel):
    url: str
    file_name: str
    version_number: int
    expires_in: int


class VisibilityUpdate(PydanticBaseModel):
    visibility: DocumentVisibility


def _to_response(doc: Document, project_name: str | None = None) -> DocumentResponse:
    return DocumentResponse.model_validate(doc).model_copy(
        update={
            "is_visible_to_owners": doc.visibility in OWNER_VISIBLE,
            "size_label": format_file_size(doc.file_size),
            "project_name": project_name,
        }
    )


def _version_response(v: DocumentVersion) -> DocumentVersionResponse:
    return DocumentVersionResponse.model_validate(v).model_copy(update={"size_label": format_file_size(v.file_size)})


def _get_document_or_404(session: Session, account: Account, document_id: uuid.UUID) -> tuple[Document, Project]:
    document = session.get(Document, document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Documento não encontrado")
    if account.role == AccountRole.OWNER:
        # Proprietário só enxerga documentos compartilhados das suas unidades/empreendimentos
        if document.visibility not in OWNER_VISIBLE:
            raise HTTPException(status_code=404, detail="Documento não encontrado")
        if document.unit_id is not None:
            _, project = get_unit_or_404(session, account, document.unit_id)
        else:
            project = get_project_or_404(session, account, document.project_id)
        return document, project
    project = get_project_or_404(session, account, document.project_id)
    return document, project


@router.get("/document/list", response_model=DocumentListResponse)
def list_documents(
    project_id: str = Query(..., description="Empreendimento"),
    unit_id: str | None = Query(None, description="Unidade (ausente: documentos do empreendimento)"),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    parsed_project = parse_uuid(project_id)
    parsed_unit = parse_uuid(unit_id) if unit_id else None
    if parsed_project is None or (unit_id and parsed_unit is None):
        return DocumentListResponse(items=[], total=0)
    try:
        project = get_project_or_404(session, account, parsed_project)
        visibilities = None
        if account.role == AccountRole.OWNER:
            visibilities = OWNER_VISIBLE
            if parsed_unit is not None and parsed_unit not in owner_unit_ids(session, account):
                raise HTTPException(status_code=403, detail="Acesso negado")
        docs = document_service.list_documents(session, project.id, parsed_unit, visibilities)
        return DocumentListResponse(items=[_to_response(d) for d in docs], total=len(docs))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Erro ao listar documentos: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao listar documentos: {str(e)}") from e


@router.get("/document/mine", response_model=DocumentListResponse)
def list_my_documents(
    account: Account = Depends(require_role(AccountRole.OWNER)),
    session: Session = Depends(get_session),
):
    """Documentos compartilhados das unidades do proprietário e dos seus empreendimentos."""
    try:
        rows = document_service.list_owner_documents(session, owner_unit_ids(session, account))
        return DocumentListResponse(items=[_to_response(d, name) for d, name in rows], total=len(rows))
    except Exception as e:
        logger.error(f"Erro ao listar documentos do proprietário: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao listar documentos: {str(e)}") from e


@router.post("/document", response_model=DocumentResponse, status_code=201)
def upload_document(
    file: UploadFile = File(...),
    project_id: str = Form(...),
    unit_id: str | None = Form(None),
    title: str = Form(...),
    description: str | None = Form(None),
    category: DocumentCategory = Form(...),
    visibility: DocumentVisibility = Form(DocumentVisibility.INTERNAL),
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
    storage: StorageService = Depends(get_storage_service),
):
    try:
        project = get_project_or_404(session, account, require_uuid(project_id, "project_id"))
        parsed_unit = None
        if unit_id:
            unit, unit_project = get_unit_or_404(session, account, require_uuid(unit_id, "unit_id"))
            if unit_project.id != project.id:
                raise HTTPException(status_code=400, detail="Unidade não pertence ao empreendimento")
            parsed_unit = unit.id
        if not title or not title.strip():
            raise HTTPException(status_code=400, detail="Título é obrigatório")

        content = file.file.read()
        file_name = file.filename or "arquivo"
        logger.info(f"Upload de documento: project_id={project.id}, unit_id={parsed_unit}, file={file_name}, size={len(content)}")

        document = document_service.create_document(
            session,
            storage,
            tenant_id=project.tenant_id,
            project_id=project.id,
            unit_id=parsed_unit,
            title=title.strip(),
            description=description.strip() if description else None,
            category=category,
            visibility=visibility,
            file_name=file_name,
            content=content,
            content_type=file.content_type,
            created_by=account.id,
        )
        response = _to_response(document)
        record(session, action="UPLOAD", entity_type="DOCUMENT", entity_id=document.id,
               details=f"Documento enviado: {response.title}", actor=account, tenant_id=project.tenant_id,
               data={"file_name": file_name, "version": 1})
        return response
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao enviar documento: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao enviar documento: {str(e)}") from e


@router.post("/document/{document_id}/version", response_model=DocumentVersionResponse, status_code=201)
def upload_new_version(
    document_id: str,
    file: UploadFile = File(...),
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
    storage: StorageService = Depends(get_storage_service),
):
    try:
        document, project = _get_document_or_404(session, account, require_uuid(document_id, "document_id"))
        content = file.file.read()
        file_name = file.filename or "arquivo"
        logger.info(f"Nova versão de documento: id={document.id}, file={file_name}, size={len(content)}")

        version = document_service.add_version(
            session,
            storage,
            document,
            tenant_id=project.tenant_id,
            file_name=file_name,
            content=content,
            content_type=file.content_type,
            created_by=account.id,
        )
        response = _version_response(version)
        record(session, action="NEW_VERSION", entity_type="DOCUMENT", entity_id=document_id,
               details=f"Nova versão (v{response.version_number}) enviada", actor=account,
               tenant_id=project.tenant_id, data={"file_name": file_name, "version": response.version_number})
        return response
    except HTTPException:
        raise
    except IntegrityError as e:
        # Outra versão gravada ao mesmo tempo ficou com o mesmo número
        logger.warning(f"Conflito de versão: document_id={document_id}: {e}")
        if is_unique_violation(e, "uq_document_version_number"):
            raise HTTPException(status_code=409, detail="Outra versão foi enviada ao mesmo tempo; tente novamente") from e
        raise HTTPException(status_code=409, detail="Erro de integridade ao salvar versão") from e
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao enviar nova versão: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao enviar nova versão: {str(e)}") from e


@router.get("/document/{document_id}/versions", response_model=DocumentVersionListResponse)
def list_document_versions(
    document_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    parsed = parse_uuid(document_id)
    if parsed is None:
        return DocumentVersionListResponse(items=[], total=0)
    document, _ = _get_document_or_404(session, account, parsed)
    versions = document_service.list_versions(session, document.id)
    return DocumentVersionListResponse(items=[_version_response(v) for v in versions], total=len(versions))


@router.get("/document/{document_id}/download", response_model=DownloadResponse)
def download_document(
    document_id: str,
    version: int | None = Query(None, ge=1, description="Versão (padrão: atual)"),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
    storage: StorageService = Depends(get_storage_service),
):
    """URL temporária (assinada) para baixar o arquivo."""
    parsed = parse_uuid(document_id)
    if parsed is None:
        raise HTTPException(status_code=404, detail="Documento não encontrado")
    document, project = _get_document_or_404(session, account, parsed)
    doc_version = document_service.get_version(session, document, version)
    if not doc_version:
        raise HTTPException(status_code=404, detail="Versão não encontrada")
    try:
        url = storage.get_presigned_url(doc_version.file_path)
    except Exception as e:
        logger.error(f"Erro ao gerar URL de download (document_id={document.id}): {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao gerar link de download: {str(e)}") from e

    response = DownloadResponse(
        url=url,
        file_name=doc_version.file_name,
        version_number=doc_version.version_number,
        expires_in=storage.config.document_url_expiration,
    )
    record(session, action="DOWNLOAD", entity_type="DOCUMENT", entity_id=document.id,
           details=f"Download de {response.file_name} (v{response.version_number})", actor=account,
           tenant_id=project.tenant_id)
    return response


@router.put("/document/{document_id}/visibility", response_model=DocumentResponse)
def update_document_visibility(
    document_id: str,
    body: VisibilityUpdate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        document, project = _get_document_or_404(session, account, require_uuid(document_id, "document_id"))
        prev = document.visibility
        document.visibility = body.visibility
        document.updated_at = utc_now()
        session.add(document)
        session.commit()
        session.refresh(document)
        response = _to_response(document)

        record(session, action="PERMISSION_CHANGE", entity_type="DOCUMENT", entity_id=document_id,
               details=f"Visibilidade alterada: {prev.value} -> {body.visibility.value}", actor=account,
               tenant_id=project.tenant_id, data={"from": prev.value, "to": body.visibility.value})
        return response
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao alterar visibilidade: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao alterar visibilidade: {str(e)}") from e
