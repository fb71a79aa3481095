import logging
import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel as PydanticBaseModel, field_validator, model_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from entrega.api.common import is_unique_violation, require_uuid
from entrega.auth.dependencies import ensure_tenant_access, get_current_account, require_role
from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid, parse_uuid_list
from entrega.lib.tenant_format import today_for_tenant
from entrega.model.account import Account, AccountRole
from entrega.model.base import utc_now
from entrega.model.tenant import Tenant
from entrega.model.unit import Unit
from entrega.model.warranty import UnitWarranty, WarrantyCategory, WarrantyStatus
from entrega.services import warranty_service
from entrega.services.access import get_project_or_404, get_unit_or_404, resolve_tenant_id
from entrega.services.audit_service import record

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Warranty"])


def _check_max_term(term_months: int) -> None:
    if term_months > warranty_service.MAX_TERM_MONTHS:
        raise ValueError(f"Prazo máximo é de {warranty_service.MAX_TERM_MONTHS} meses")


class WarrantyCategoryCreate(PydanticBaseModel):
    tenant_id: uuid.UUID | None = None
    name: str
    term_months: int | None = None
    term_years: int | None = None
    description: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Nome não pode estar vazio")
        return v

    @field_validator("term_months", "term_years")
    @classmethod
    def validate_term(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("Prazo deve ser maior que zero")
        return v

    @model_validator(mode="after")
    def resolve_term(self):
        # Prazo aceito em anos ou meses; gravado sempre em meses
        if self.term_months is None and self.term_years is None:
            raise ValueError("Informe o prazo em meses ou em anos")
        if self.term_months is not None and self.term_years is not None:
            raise ValueError("Informe o prazo em meses ou em anos, não ambos")
        if self.term_months is None:
            self.term_months = self.term_years * 12
        _check_max_term(self.term_months)
        return self


class WarrantyCategoryUpdate(PydanticBaseModel):
    name: str | None = None
    term_months: int | None = None
    term_years: int | None = None
    description: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Nome não pode estar vazio")
        return v.strip() if v else None

    @field_validator("term_months", "term_years")
    @classmethod
    def validate_term(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("Prazo deve ser maior que zero")
        return v

    @model_validator(mode="after")
    def resolve_term(self):
        if self.term_months is not None and self.term_years is not None:
            raise ValueError("Informe o prazo em meses ou em anos, não ambos")
        if self.term_years is not None:
            self.term_months = self.term_years * 12
        if self.term_months is not None:
            _check_max_term(self.term_months)
        return self


class WarrantyCategoryResponse(PydanticBaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    name: str
    term_months: int
    description: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WarrantyCategoryListResponse(PydanticBaseModel):
    items: list[WarrantyCategoryResponse]
    total: int


class UnitWarrantyResponse(PydanticBaseModel):
    id: uuid.UUID
    unit_id: uuid.UUID
    category_id: uuid.UUID
    category_name: str
    start_date: date
    expiration_date: date
    status: WarrantyStatus
    display_status: WarrantyStatus
    expiring_soon: bool
    days_remaining: int
    notes: str | None


class UnitWarrantyListResponse(PydanticBaseModel):
    items: list[UnitWarrantyResponse]
    total: int
    not_covered: list[WarrantyCategoryResponse]


class GenerateWarrantiesRequest(PydanticBaseModel):
    start_date: date
    category_ids: list[str]
    unit_ids: list[str] | None = None  # ausente: todas as unidades do empreendimento


class GenerateWarrantiesResponse(PydanticBaseModel):
    units: int
    categories: int
    created: int


class WarrantyStatusUpdate(PydanticBaseModel):
    status: WarrantyStatus
    notes: str | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: WarrantyStatus) -> WarrantyStatus:
        if v == WarrantyStatus.EXPIRADA:
            raise ValueError("Status deve ser Vigente ou Suspensa")
        return v


class UnitSummaryResponse(PydanticBaseModel):
    unit_id: uuid.UUID
    block: str
    number: str
    configured: bool
    active_count: int
    expired_count: int
    expiring_soon_count: int


class ProjectWarrantySummaryResponse(PydanticBaseModel):
    total_units: int
    configured_units: int
    expiring_soon: int
    units: list[UnitSummaryResponse]


def _get_category_or_404(session: Session, account: Account, category_id: uuid.UUID) -> WarrantyCategory:
    category = session.get(WarrantyCategory, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Categoria de garantia não encontrada")
    ensure_tenant_access(account, category.tenant_id)
    return category


def _tenant_today(session: Session, tenant_id: uuid.UUID) -> date:
    tenant = session.get(Tenant, tenant_id)
    return today_for_tenant(tenant.timezone if tenant else None)


def _warranty_response(w: UnitWarranty, category_name: str, today: date) -> UnitWarrantyResponse:
    return UnitWarrantyResponse(
        id=w.id,
        unit_id=w.unit_id,
        category_id=w.category_id,
        category_name=category_name,
        start_date=w.start_date,
        expiration_date=w.expiration_date,
        status=w.status,
        display_status=warranty_service.derive_status(w.status, w.expiration_date, today),
        expiring_soon=warranty_service.is_expiring_soon(w.status, w.expiration_date, today),
        days_remaining=warranty_service.days_remaining(w.expiration_date, today),
        notes=w.notes,
    )


def _category_conflict(e: IntegrityError, name: str) -> HTTPException:
    if is_unique_violation(e, "uq_warranty_category_tenant_name"):
        return HTTPException(status_code=409, detail=f"Categoria '{name}' já existe")
    return HTTPException(status_code=409, detail="Erro de integridade ao salvar categoria")


# ----------------------------------------------------------------------------
# Categorias
# ----------------------------------------------------------------------------

@router.get("/warranty/category/list", response_model=WarrantyCategoryListResponse)
def list_warranty_categories(
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
    tenant_id: str | None = Query(None, description="Construtora (obrigatório para MASTER)"),
):
    if account.role == AccountRole.ADMIN:
        scope = account.tenant_id
    else:
        scope = parse_uuid(tenant_id)
        if scope is None:
            return WarrantyCategoryListResponse(items=[], total=0)
    categories = warranty_service.list_categories(session, scope)
    return WarrantyCategoryListResponse(
        items=[WarrantyCategoryResponse.model_validate(c) for c in categories],
        total=len(categories),
    )


@router.post("/warranty/category", response_model=WarrantyCategoryResponse, status_code=201)
def create_warranty_category(
    body: WarrantyCategoryCreate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        tenant_id = resolve_tenant_id(account, body.tenant_id)
        if not session.get(Tenant, tenant_id):
            raise HTTPException(status_code=404, detail="Construtora não encontrada")
        logger.info(f"Criando categoria de garantia: name={body.name}, term_months={body.term_months}, tenant_id={tenant_id}")

        existing = session.exec(
            select(WarrantyCategory).where(WarrantyCategory.tenant_id == tenant_id, WarrantyCategory.name == body.name)
        ).first()
        if existing:
            raise HTTPException(status_code=409, detail=f"Categoria '{body.name}' já existe")

        category = WarrantyCategory(
            tenant_id=tenant_id,
            name=body.name,
            term_months=body.term_months,
            description=body.description,
        )
        session.add(category)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise _category_conflict(e, body.name) from e
        session.refresh(category)

        record(session, action="CREATE", entity_type="WARRANTY_CATEGORY", entity_id=category.id,
               details=f"Categoria de garantia criada: {category.name} ({category.term_months} meses)",
               actor=account, tenant_id=tenant_id)
        return category
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao criar categoria de garantia: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao criar categoria de garantia: {str(e)}") from e


@router.put("/warranty/category/{category_id}", response_model=WarrantyCategoryResponse)
def update_warranty_category(
    category_id: str,
    body: WarrantyCategoryUpdate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    """Alterar o prazo não recalcula garantias já geradas."""
    try:
        category = _get_category_or_404(session, account, require_uuid(category_id, "category_id"))
        if body.name is not None:
            category.name = body.name
        if body.term_months is not None:
            category.term_months = body.term_months
        if "description" in body.model_fields_set:
            category.description = body.description
        category.updated_at = utc_now()
        session.add(category)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise _category_conflict(e, body.name or "") from e
        session.refresh(category)

        record(session, action="UPDATE", entity_type="WARRANTY_CATEGORY", entity_id=category.id,
               details=f"Categoria de garantia atualizada: {category.name}", actor=account,
               tenant_id=category.tenant_id)
        return category
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao atualizar categoria de garantia: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao atualizar categoria de garantia: {str(e)}") from e


@router.delete("/warranty/category/{category_id}", status_code=204)
def delete_warranty_category(
    category_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        category = _get_category_or_404(session, account, require_uuid(category_id, "category_id"))
        in_use = session.exec(
            select(func.count(UnitWarranty.id)).where(UnitWarranty.category_id == category.id)
        ).one()
        if in_use > 0:
            logger.warning(f"Categoria {category.id} em uso por {in_use} garantia(s)")
            raise HTTPException(
                status_code=409,
                detail=f"Não é possível excluir a categoria. Há {in_use} garantia(s) de unidade usando esta categoria.",
            )
        tenant_id, name = category.tenant_id, category.name
        session.delete(category)
        session.commit()
        record(session, action="DELETE", entity_type="WARRANTY_CATEGORY", entity_id=category_id,
               details=f"Categoria de garantia excluída: {name}", actor=account, tenant_id=tenant_id)
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao excluir categoria de garantia: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao excluir categoria de garantia: {str(e)}") from e


# ----------------------------------------------------------------------------
# Garantias por unidade
# ----------------------------------------------------------------------------

@router.get("/unit/{unit_id}/warranties", response_model=UnitWarrantyListResponse)
def list_unit_warranties(
    unit_id: str,
    account: Account = Depends(get_current_account),
    session: Session = Depends(get_session),
):
    """
    Garantias da unidade com status derivado e as categorias do tenant que
    ainda não cobrem a unidade.
    """
    parsed = parse_uuid(unit_id)
    if parsed is None:
        return UnitWarrantyListResponse(items=[], total=0, not_covered=[])
    unit, project = get_unit_or_404(session, account, parsed)
    today = _tenant_today(session, project.tenant_id)

    rows = warranty_service.list_unit_warranties(session, [unit.id])
    items = [_warranty_response(w, c.name, today) for w, c in rows]
    covered_ids = {w.category_id for w, _ in rows}
    not_covered = [
        WarrantyCategoryResponse.model_validate(c)
        for c in warranty_service.list_categories(session, project.tenant_id)
        if c.id not in covered_ids
    ]
    return UnitWarrantyListResponse(items=items, total=len(items), not_covered=not_covered)


@router.post("/project/{project_id}/warranties/generate", response_model=GenerateWarrantiesResponse)
def generate_project_warranties(
    project_id: str,
    body: GenerateWarrantiesRequest,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    """
    Substitui as garantias das unidades selecionadas (ou de todas as unidades
    do empreendimento) por uma garantia por categoria selecionada.
    """
    try:
        project = get_project_or_404(session, account, require_uuid(project_id, "project_id"))
        category_ids = parse_uuid_list(body.category_ids)
        if not category_ids:
            raise HTTPException(status_code=400, detail="Selecione ao menos uma categoria válida")

        project_unit_ids = list(session.exec(select(Unit.id).where(Unit.project_id == project.id)).all())
        if body.unit_ids is None:
            unit_ids = project_unit_ids
        else:
            allowed = set(project_unit_ids)
            # Unidades de outro empreendimento são ignoradas
            unit_ids = [u for u in parse_uuid_list(body.unit_ids) if u in allowed]
        if not unit_ids:
            raise HTTPException(status_code=400, detail="Nenhuma unidade válida para gerar garantias")

        tenant = session.get(Tenant, project.tenant_id)
        logger.info(
            f"Gerando garantias: project_id={project.id}, units={len(unit_ids)}, "
            f"categories={len(category_ids)}, start_date={body.start_date}"
        )
        created = warranty_service.generate_warranties(
            session,
            tenant_id=project.tenant_id,
            unit_ids=unit_ids,
            category_ids=category_ids,
            start_date=body.start_date,
            locale=tenant.locale if tenant else "pt-BR",
            today=today_for_tenant(tenant.timezone if tenant else None),
        )
        if not created:
            raise HTTPException(status_code=400, detail="Nenhuma categoria válida para esta construtora")

        categories = len({w.category_id for w in created})
        record(session, action="GENERATE_WARRANTIES", entity_type="PROJECT", entity_id=project.id,
               details=f"Garantias geradas para {len(unit_ids)} unidade(s)", actor=account,
               tenant_id=project.tenant_id,
               data={"start_date": body.start_date.isoformat(), "categories": categories, "created": len(created)})
        return GenerateWarrantiesResponse(units=len(unit_ids), categories=categories, created=len(created))
    except HTTPException:
        raise
    except warranty_service.WarrantyTermError as e:
        logger.warning(f"Geração de garantias recusada: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao gerar garantias: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao gerar garantias: {str(e)}") from e


@router.put("/warranty/{warranty_id}/status", response_model=UnitWarrantyResponse)
def update_warranty_status(
    warranty_id: str,
    body: WarrantyStatusUpdate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    """Suspende ou reativa manualmente uma garantia."""
    try:
        warranty = session.get(UnitWarranty, require_uuid(warranty_id, "warranty_id"))
        if not warranty:
            raise HTTPException(status_code=404, detail="Garantia não encontrada")
        _, project = get_unit_or_404(session, account, warranty.unit_id)
        category = session.get(WarrantyCategory, warranty.category_id)
        prev = warranty.status

        warranty = warranty_service.set_warranty_status(session, warranty, body.status, body.notes)
        response = _warranty_response(warranty, category.name if category else "", _tenant_today(session, project.tenant_id))

        record(session, action="UPDATE", entity_type="WARRANTY", entity_id=warranty.id,
               details=f"Garantia {response.category_name}: {prev.value} -> {body.status.value}",
               actor=account, tenant_id=project.tenant_id,
               data={"from_status": prev.value, "to_status": body.status.value})
        return response
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao atualizar status da garantia: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao atualizar status da garantia: {str(e)}") from e


@router.get("/project/{project_id}/warranties/summary", response_model=ProjectWarrantySummaryResponse)
def project_warranty_summary(
    project_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    parsed = parse_uuid(project_id)
    if parsed is None:
        return ProjectWarrantySummaryResponse(total_units=0, configured_units=0, expiring_soon=0, units=[])
    project = get_project_or_404(session, account, parsed)
    today = _tenant_today(session, project.tenant_id)

    units = session.exec(select(Unit).where(Unit.project_id == project.id).order_by(Unit.block, Unit.number)).all()
    warranties = [w for w, _ in warranty_service.list_unit_warranties(session, [u.id for u in units])]
    summaries = {s.unit_id: s for s in warranty_service.summarize_units(units, warranties, today)}

    items = [
        UnitSummaryResponse(
            unit_id=u.id,
            block=u.block,
            number=u.number,
            configured=summaries[u.id].configured,
            active_count=summaries[u.id].active_count,
            expired_count=summaries[u.id].expired_count,
            expiring_soon_count=summaries[u.id].expiring_soon_count,
        )
        for u in units
    ]
    return ProjectWarrantySummaryResponse(
        total_units=len(items),
        configured_units=sum(1 for i in items if i.configured),
        expiring_soon=sum(i.expiring_soon_count for i in items),
        units=items,
    )
