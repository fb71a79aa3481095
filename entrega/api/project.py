import logging
import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func
from sqlmodel import Session, select

from entrega.api.common import require_uuid
from entrega.auth.dependencies import get_current_account, require_role
from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid
from entrega.model.account import Account, AccountRole
from entrega.model.base import utc_now
from entrega.model.project import Project, ProjectPhase, ProjectStatus
from entrega.model.tenant import Tenant
from entrega.model.unit import Unit
from entrega.services.access import get_project_or_404, owner_unit_ids, resolve_tenant_id
from entrega.services.audit_service import record
from entrega.services.tenant_service import project_unit_counts

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Project"])


def _required_text(v: str, label: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError(f"{label} não pode estar vazio")
    return v


class ProjectCreate(PydanticBaseModel):
    tenant_id: uuid.UUID | None = None  # obrigatório apenas para MASTER
    name: str
    city: str
    state: str
    manager: str
    address: str | None = None
    delivery_date: date | None = None
    actual_delivery_date: date | None = None
    status: ProjectStatus = ProjectStatus.PLANNING
    phase: ProjectPhase = ProjectPhase.PRE_SALES
    open_issues: int = 0
    completion_percentage: int = 0
    image_url: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _required_text(v, "Nome")

    @field_validator("city", "state", "manager")
    @classmethod
    def validate_required(cls, v: str) -> str:
        return _required_text(v, "Campo")

    @field_validator("open_issues")
    @classmethod
    def validate_open_issues(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Pendências não pode ser negativo")
        return v

    @field_validator("completion_percentage")
    @classmethod
    def validate_percentage(cls, v: int) -> int:
        if v < 0 or v > 100:
            raise ValueError("Percentual de conclusão deve estar entre 0 e 100")
        return v


class ProjectUpdate(PydanticBaseModel):
    name: str | None = None
    city: str | None = None
    state: str | None = None
    manager: str | None = None
    address: str | None = None
    delivery_date: date | None = None
    actual_delivery_date: date | None = None
    status: ProjectStatus | None = None
    phase: ProjectPhase | None = None
    open_issues: int | None = None
    completion_percentage: int | None = None
    image_url: str | None = None

    @field_validator("name", "city", "state", "manager")
    @classmethod
    def validate_not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return _required_text(v, "Campo")

    @field_validator("open_issues")
    @classmethod
    def validate_open_issues(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("Pendências não pode ser negativo")
        return v

    @field_validator("completion_percentage")
    @classmethod
    def validate_percentage(cls, v: int | None) -> int | None:
        if v is not None and (v < 0 or v > 100):
            raise ValueError("Percentual de conclusão deve estar entre 0 e 100")
        return v


class ProjectResponse(PydanticBaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    name: str
    city: str
    state: str
    manager: str
    address: str | None
    delivery_date: date | None
    actual_delivery_date: date | None
    status: ProjectStatus
    phase: ProjectPhase
    open_issues: int
    completion_percentage: int
    image_url: str | None
    total_units: int = 0
    delivered_units: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectListResponse(PydanticBaseModel):
    items: list[ProjectResponse]
    total: int


def build_project_responses(session: Session, projects: list[Project]) -> list[ProjectResponse]:
    """Anexa total_units/delivered_units calculados a partir das unidades."""
    counts = project_unit_counts(session, [p.id for p in projects])
    items = []
    for p in projects:
        total, delivered = counts.get(p.id, (0, 0))
        items.append(
            ProjectResponse.model_validate(p).model_copy(update={"total_units": total, "delivered_units": delivered})
        )
    return items


@router.post("/project", response_model=ProjectResponse, status_code=201)
def create_project(
    body: ProjectCreate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        tenant_id = resolve_tenant_id(account, body.tenant_id)
        if not session.get(Tenant, tenant_id):
            raise HTTPException(status_code=404, detail="Construtora não encontrada")
        logger.info(f"Criando empreendimento: name={body.name}, tenant_id={tenant_id}")

        project = Project(tenant_id=tenant_id, **body.model_dump(exclude={"tenant_id"}))
        session.add(project)
        session.commit()
        session.refresh(project)

        record(session, action="CREATE", entity_type="PROJECT", entity_id=project.id,
               details=f"Empreendimento criado: {project.name}", actor=account, tenant_id=tenant_id)
        return build_project_responses(session, [project])[0]
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao criar empreendimento: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao criar empreendimento: {str(e)}") from e


@router.get("/project/list", response_model=ProjectListResponse)
def list_projects(
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
    tenant_id: str | None = Query(None, description="Filtrar por construtora (MASTER)"),
    limit: int = Query(50, ge=1, le=100, description="Número máximo de itens"),
    offset: int = Query(0, ge=0, description="Offset para paginação"),
):
    """
    MASTER: todos (ou de uma construtora). ADMIN: os da própria construtora.
    OWNER: empreendimentos onde possui unidade.
    """
    try:
        query = select(Project)
        count_query = select(func.count(Project.id))
        if account.role == AccountRole.OWNER:
            unit_ids = owner_unit_ids(session, account)
            if not unit_ids:
                return ProjectListResponse(items=[], total=0)
            project_ids = select(Unit.project_id).where(Unit.id.in_(unit_ids))  # type: ignore[attr-defined]
            query = query.where(Project.id.in_(project_ids))  # type: ignore[attr-defined]
            count_query = count_query.where(Project.id.in_(project_ids))  # type: ignore[attr-defined]
        else:
            if account.role == AccountRole.ADMIN:
                scope = account.tenant_id
            elif tenant_id is not None:
                scope = parse_uuid(tenant_id)
                if scope is None:
                    return ProjectListResponse(items=[], total=0)
            else:
                scope = None
            if scope is not None:
                query = query.where(Project.tenant_id == scope)
                count_query = count_query.where(Project.tenant_id == scope)

        total = session.exec(count_query).one()
        if total == 0:
            return ProjectListResponse(items=[], total=0)
        projects = session.exec(query.order_by(Project.name).limit(limit).offset(offset)).all()
        return ProjectListResponse(items=build_project_responses(session, list(projects)), total=total)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Erro ao listar empreendimentos: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao listar empreendimentos: {str(e)}") from e


@router.get("/project/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    parsed = parse_uuid(project_id)
    if parsed is None:
        raise HTTPException(status_code=404, detail="Empreendimento não encontrado")
    project = get_project_or_404(session, account, parsed)
    return build_project_responses(session, [project])[0]


@router.put("/project/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: str,
    body: ProjectUpdate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        project = get_project_or_404(session, account, require_uuid(project_id, "project_id"))
        changes = body.model_dump(exclude_unset=True)
        logger.info(f"Atualizando empreendimento id={project.id}: campos={sorted(changes)}")

        for field, value in changes.items():
            if value is None and field in ("name", "city", "state", "manager", "status", "phase",
                                           "open_issues", "completion_percentage"):
                continue
            setattr(project, field, value)
        project.updated_at = utc_now()
        session.add(project)
        session.commit()
        session.refresh(project)

        record(session, action="UPDATE", entity_type="PROJECT", entity_id=project.id,
               details=f"Empreendimento atualizado: {project.name}", actor=account,
               tenant_id=project.tenant_id, data={"fields": sorted(changes)})
        return build_project_responses(session, [project])[0]
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao atualizar empreendimento: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao atualizar empreendimento: {str(e)}") from e


@router.delete("/project/{project_id}", status_code=204)
def delete_project(
    project_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        project = get_project_or_404(session, account, require_uuid(project_id, "project_id"))
        unit_count = session.exec(select(func.count(Unit.id)).where(Unit.project_id == project.id)).one()
        if unit_count > 0:
            logger.warning(f"Não é possível excluir empreendimento {project.id}: {unit_count} unidade(s)")
            raise HTTPException(
                status_code=409,
                detail=f"Não é possível excluir o empreendimento. Há {unit_count} unidade(s) cadastrada(s).",
            )
        from entrega.model.document import Document

        doc_count = session.exec(select(func.count(Document.id)).where(Document.project_id == project.id)).one()
        if doc_count > 0:
            raise HTTPException(
                status_code=409,
                detail=f"Não é possível excluir o empreendimento. Há {doc_count} documento(s) associado(s).",
            )

        tenant_id, name = project.tenant_id, project.name
        session.delete(project)
        session.commit()
        record(session, action="DELETE", entity_type="PROJECT", entity_id=project_id,
               details=f"Empreendimento excluído: {name}", actor=account, tenant_id=tenant_id)
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao excluir empreendimento: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao excluir empreendimento: {str(e)}") from e
