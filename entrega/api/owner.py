import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel as PydanticBaseModel, EmailStr, field_validator
from sqlalchemy import func, or_
from sqlmodel import Session, select

from entrega.api.auth import normalize_email
from entrega.api.common import require_uuid
from entrega.auth.dependencies import require_role
from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid
from entrega.model.account import Account, AccountRole
from entrega.model.base import utc_now
from entrega.model.owner import Owner
from entrega.model.project import Project
from entrega.model.unit import Unit
from entrega.services.audit_service import record

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Owner"])


class OwnerCreate(PydanticBaseModel):
    tenant_id: uuid.UUID | None = None
    name: str
    email: EmailStr
    phone: str | None = None
    document: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 2:
            raise ValueError("Nome deve ter pelo menos 2 caracteres")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return normalize_email(v)


class OwnerUpdate(PydanticBaseModel):
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    document: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is not None and len(v.strip()) < 2:
            raise ValueError("Nome deve ter pelo menos 2 caracteres")
        return v.strip() if v else None

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v: str | None) -> str | None:
        return normalize_email(v) if v is not None else None


class OwnerResponse(PydanticBaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID | None
    account_id: uuid.UUID | None
    name: str
    email: str
    phone: str | None
    document: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OwnerDetailResponse(OwnerResponse):
    units_owned: int = 0


class OwnerListResponse(PydanticBaseModel):
    items: list[OwnerResponse]
    total: int


def _tenant_owner_filter(tenant_id: uuid.UUID):
    """Proprietários cadastrados pela construtora ou com unidade em seus empreendimentos."""
    via_units = (
        select(Unit.owner_id)
        .join(Project, Project.id == Unit.project_id)
        .where(Project.tenant_id == tenant_id, Unit.owner_id.is_not(None))  # type: ignore[union-attr]
    )
    return or_(Owner.tenant_id == tenant_id, Owner.id.in_(via_units))  # type: ignore[attr-defined]


def _get_owner_or_404(session: Session, account: Account, owner_id: uuid.UUID) -> Owner:
    owner = session.get(Owner, owner_id)
    if not owner:
        raise HTTPException(status_code=404, detail="Proprietário não encontrado")
    if account.role == AccountRole.MASTER:
        return owner
    visible = session.exec(
        select(Owner.id).where(Owner.id == owner.id, _tenant_owner_filter(account.tenant_id))
    ).first()
    if not visible:
        logger.warning(f"Acesso negado ao proprietário {owner.id}: tenant_id={account.tenant_id}")
        raise HTTPException(status_code=403, detail="Acesso negado")
    return owner


def _units_owned(session: Session, owner_id: uuid.UUID) -> int:
    return session.exec(select(func.count(Unit.id)).where(Unit.owner_id == owner_id)).one()


@router.get("/owner/list", response_model=OwnerListResponse)
def list_owners(
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
    q: str | None = Query(None, description="Busca por nome ou email"),
    limit: int = Query(50, ge=1, le=100, description="Número máximo de itens"),
    offset: int = Query(0, ge=0, description="Offset para paginação"),
):
    try:
        query = select(Owner)
        count_query = select(func.count(Owner.id))
        if account.role == AccountRole.ADMIN:
            query = query.where(_tenant_owner_filter(account.tenant_id))
            count_query = count_query.where(_tenant_owner_filter(account.tenant_id))
        if q and q.strip():
            pattern = f"%{q.strip().lower()}%"
            cond = or_(func.lower(Owner.name).like(pattern), func.lower(Owner.email).like(pattern))
            query = query.where(cond)
            count_query = count_query.where(cond)
        total = session.exec(count_query).one()
        owners = session.exec(query.order_by(Owner.name).limit(limit).offset(offset)).all()
        return OwnerListResponse(items=[OwnerResponse.model_validate(o) for o in owners], total=total)
    except Exception as e:
        logger.error(f"Erro ao listar proprietários: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao listar proprietários: {str(e)}") from e


@router.post("/owner", response_model=OwnerDetailResponse, status_code=201)
def create_owner(
    body: OwnerCreate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        if account.role == AccountRole.ADMIN:
            if body.tenant_id is not None and body.tenant_id != account.tenant_id:
                raise HTTPException(status_code=403, detail="Acesso negado")
            tenant_id = account.tenant_id
        else:
            tenant_id = body.tenant_id
        logger.info(f"Criando proprietário: email={body.email}, tenant_id={tenant_id}")

        # Conta OWNER já existente com o mesmo email: vincula de imediato
        existing_account = session.exec(
            select(Account).where(Account.email == body.email, Account.role == AccountRole.OWNER)
        ).first()

        owner = Owner(
            tenant_id=tenant_id,
            account_id=existing_account.id if existing_account else None,
            name=body.name,
            email=body.email,
            phone=body.phone,
            document=body.document,
        )
        session.add(owner)
        session.commit()
        session.refresh(owner)

        record(session, action="CREATE", entity_type="OWNER", entity_id=owner.id,
               details=f"Proprietário criado: {owner.name}", actor=account, tenant_id=tenant_id)
        return OwnerDetailResponse.model_validate(owner)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao criar proprietário: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao criar proprietário: {str(e)}") from e


@router.get("/owner/{owner_id}", response_model=OwnerDetailResponse)
def get_owner(
    owner_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    parsed = parse_uuid(owner_id)
    if parsed is None:
        raise HTTPException(status_code=404, detail="Proprietário não encontrado")
    owner = _get_owner_or_404(session, account, parsed)
    return OwnerDetailResponse.model_validate(owner).model_copy(
        update={"units_owned": _units_owned(session, owner.id)}
    )


@router.put("/owner/{owner_id}", response_model=OwnerDetailResponse)
def update_owner(
    owner_id: str,
    body: OwnerUpdate,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        owner = _get_owner_or_404(session, account, require_uuid(owner_id, "owner_id"))
        changes = body.model_dump(exclude_unset=True)
        logger.info(f"Atualizando proprietário id={owner.id}: campos={sorted(changes)}")
        for field, value in changes.items():
            if value is None and field in ("name", "email"):
                continue
            setattr(owner, field, value)
        owner.updated_at = utc_now()
        session.add(owner)
        session.commit()
        session.refresh(owner)

        record(session, action="UPDATE", entity_type="OWNER", entity_id=owner.id,
               details=f"Proprietário atualizado: {owner.name}", actor=account,
               tenant_id=owner.tenant_id, data={"fields": sorted(changes)})
        return OwnerDetailResponse.model_validate(owner).model_copy(
            update={"units_owned": _units_owned(session, owner.id)}
        )
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao atualizar proprietário: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao atualizar proprietário: {str(e)}") from e


@router.delete("/owner/{owner_id}", status_code=204)
def delete_owner(
    owner_id: str,
    account: Account = Depends(require_role(AccountRole.MASTER, AccountRole.ADMIN)),
    session: Session = Depends(get_session),
):
    try:
        owner = _get_owner_or_404(session, account, require_uuid(owner_id, "owner_id"))
        units_owned = _units_owned(session, owner.id)
        if units_owned > 0:
            logger.warning(f"Não é possível excluir proprietário {owner.id}: {units_owned} unidade(s)")
            raise HTTPException(
                status_code=409,
                detail=f"Não é possível excluir o proprietário. Há {units_owned} unidade(s) vinculada(s).",
            )
        tenant_id, name = owner.tenant_id, owner.name
        session.delete(owner)
        session.commit()
        record(session, action="DELETE", entity_type="OWNER", entity_id=owner_id,
               details=f"Proprietário excluído: {name}", actor=account, tenant_id=tenant_id)
        return Response(status_code=204)
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Erro ao excluir proprietário: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Erro ao excluir proprietário: {str(e)}") from e
