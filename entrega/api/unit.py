import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel as PydanticBaseModel, field_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from entrega.api.common import is_unique_violation, require_uuid
from entrega.auth.dependencies import get_current_account, require_role
from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid
from entrega.model.account import Account, AccountRole
from entrega.model.base import utc_now
from entrega.model.document import Document
from entrega.model.owner import Owner
from entrega.model.project import Project
from entrega.model.unit import Unit, UnitStatus
from entrega.model.warranty import UnitWarranty
from entrega.services.access import get_project_or_404, get_unit_or_404, owner_unit_ids
from entrega.services.audit_service import record

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Unit"])

_DUPLICATE_DETAIL = "Já existe unidade com este bloco e número neste empreendimento"


class UnitBase(PydanticBaseModel):
    @field_validator("block", "number", "floor", "typology", check_fields=False)
    @classmethod
    def validate_text(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Campo não pode estar vazio")
        return v

    @field_validator("area", "price", check_fields=False)
    @classmethod
    def validate_positive(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("Valor deve ser maior que zero")
        return v

    @field_validator("bedrooms", "bathrooms", check_fields=False)
    @classmethod
    def validate_non_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("Valor não pode ser negativo")
        return v


class UnitCreate(UnitBase):
    project_id: str
    owner_id: str | None = None
    block: str
    number: str
    floor: str
    bedrooms: int = 0
    bathrooms: int = 0
    typology: str
    area: float
    price: float
    status: UnitStatus = UnitStatus.AVAILABLE


class UnitUpdate(UnitBase):
    owner_id: str | None = None
    block: str | None = None
    number: str | None = None
    floor: str | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    typology: str | None = None
    area: float | None = None
    price: float | None = None
    status: UnitStatus | None = None


class UnitResponse(PydanticBaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    owner_id: uuid.UUID | None
    block: str
    number: str
    floor: str
    bedrooms: int
    bathrooms: int
    typology: str
    area: float
    price: float
    status: UnitStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UnitListResponse(PydanticBaseModel):
    items: list[UnitResponse]
    total: int


class MyUnitResponse(UnitResponse):
    project_name: str
    project_city: str


class MyUnitListResponse(PydanticBaseModel):
    items: list[MyUnitResponse]
    total: int


def _resolve_owner(session: Session, owner_id: str | None) -> uuid.UUID | None:
    if owner_id is None or owner_id == "":
        return None
    parsed = require_uuid(owner_id, "owner_id")
    if not session.get(Owner, parsed):
        raise HTTPException(status_code=404, detail="Proprietário não encontrado")
    return parsed


def _commit_unit(session: Session) -> None:
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        if is_unique_violation(e, "uq_unit_project_block_number"):
            raise HTTPException(status_code=409, detail=_DUPLICATE_DETAIL) from e
        raise HTTPException(status_code=409, detail="Erro de integridade ao salvar unidade") from e


@router.get("/unit/list", response_model=UnitListResponse)
def list_units(
    project_id: str = Query(..., description="Empreendimento"),
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
    status: UnitStatus | None = Query(None, description="Filtrar por status"),
):
    """Unidades do empreendimento ordenadas por bloco e número."""
    parsed = parse_uuid(project_id)
    if parsed is None:
        return UnitListResponse(items=[], total=0)
    try:
        project = get_project_or_404(session, account, parsed)
        query = select(Unit).where(Unit.project_id == project.id)
        if account.role == AccountRole.OWNER:
            query = query.where(Unit.id.in_(owner_unit_ids(session, account)))  # type: ignore[attr-defined]
        if status is not None:
            query = query.where(Unit.status == status)
        units = session.exec(query.order_by(Unit.block, Unit.number)).all()
        return UnitListResponse(items=[UnitResponse.model_validate(u) for u in units], total=len(units))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Erro ao listar unidades: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao listar unidades: {str(e)}") from e


@router.get("/unit/mine", response_model=MyUnitListResponse)
def list_my_units(
    account: Account = Depends(require_role(AccountRole.OWNER)),
    session: Session = Depends(get_session),
):
    unit_ids = owner_unit_ids(session, account)
    if not unit_ids:
        return MyUnitListResponse(items=[], total=0)
    rows = session.exec(
        select(Unit, Project)
        .join(Project, Project.id == Unit.project_id)
        .where(Unit.id.in_(unit_ids))  # type: ignore[attr-defined]
        .order_by(Project.name, Unit.block, Unit.number)
    ).all()
    items = [
        MyUnitResponse(
            **UnitResponse.model_validate(u).model_dump(),
            project_name=p.name,
            project_city=p.city,
        )
        for u, p in rows
    ]
    return MyUnitListResponse(items=items, total=len(items))


@router.post("/unit", response_model=UnitResponse, status_code=201)
def create_unit(
    body: UnitCreate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        project = get_project_or_404(session, account, require_uuid(body.project_id, "project_id"))
        owner_id = _resolve_owner(session, body.owner_id)
        logger.info(f"Criando unidade: project_id={project.id}, block={body.block}, number={body.number}")

        unit = Unit(
            project_id=project.id,
            owner_id=owner_id,
            **body.model_dump(exclude={"project_id", "owner_id"}),
        )
        session.add(unit)
        _commit_unit(session)
        session.refresh(unit)

        record(session, action="CREATE", entity_type="UNIT", entity_id=unit.id,
               details=f"Unidade criada: {project.name} - Bloco {unit.block}, {unit.number}",
               actor=account, tenant_id=project.tenant_id)
        return unit
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao criar unidade: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao criar unidade: {str(e)}") from e


@router.get("/unit/{unit_id}", response_model=UnitResponse)
def get_unit(
    unit_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    parsed = parse_uuid(unit_id)
    if parsed is None:
        raise HTTPException(status_code=404, detail="Unidade não encontrada")
    unit, _ = get_unit_or_404(session, account, parsed)
    return unit


@router.put("/unit/{unit_id}", response_model=UnitResponse)
def update_unit(
    unit_id: str,
    body: UnitUpdate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        unit, project = get_unit_or_404(session, account, require_uuid(unit_id, "unit_id"))
        changes = body.model_dump(exclude_unset=True)
        logger.info(f"Atualizando unidade id={unit.id}: campos={sorted(changes)}")

        if "owner_id" in changes:
            unit.owner_id = _resolve_owner(session, changes.pop("owner_id"))
        prev_status = unit.status
        for field, value in changes.items():
            if value is None:
                continue
            setattr(unit, field, value)
        unit.updated_at = utc_now()
        session.add(unit)
        _commit_unit(session)
        session.refresh(unit)

        data = {"fields": sorted(body.model_dump(exclude_unset=True))}
        if unit.status != prev_status:
            data.update({"from_status": prev_status.value, "to_status": unit.status.value})
        record(session, action="UPDATE", entity_type="UNIT", entity_id=unit.id,
               details=f"Unidade atualizada: Bloco {unit.block}, {unit.number}",
               actor=account, tenant_id=project.tenant_id, data=data)
        return unit
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao atualizar unidade: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao atualizar unidade: {str(e)}") from e


@router.delete("/unit/{unit_id}", status_code=204)
def delete_unit(
    unit_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    """Exclui a unidade e suas garantias na mesma transação."""
    try:
        unit, project = get_unit_or_404(session, account, require_uuid(unit_id, "unit_id"))
        doc_count = session.exec(select(func.count(Document.id)).where(Document.unit_id == unit.id)).one()
        if doc_count > 0:
            logger.warning(f"Não é possível excluir unidade {unit.id}: {doc_count} documento(s)")
            raise HTTPException(
                status_code=409,
                detail=f"Não é possível excluir a unidade. Há {doc_count} documento(s) associado(s).",
            )

        label = f"Bloco {unit.block}, {unit.number}"
        warranties = session.exec(select(UnitWarranty).where(UnitWarranty.unit_id == unit.id)).all()
        for w in warranties:
            session.delete(w)
        # garantias antes da unidade (FK)
        session.flush()
        session.delete(unit)
        session.commit()

        record(session, action="DELETE", entity_type="UNIT", entity_id=unit_id,
               details=f"Unidade excluída: {project.name} - {label}", actor=account,
               tenant_id=project.tenant_id, data={"warranties_removed": len(warranties)})
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao excluir unidade: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao excluir unidade: {str(e)}") from e
