"""
Regras de garantia por unidade.

- Status exibido é derivado (não gravado): Suspensa (manual) > Expirada (data) > Vigente.
- "Expira em breve": Vigente com menos de 90 dias restantes.
- Geração em lote substitui todas as garantias das unidades alvo numa única transação.
"""

from __future__ import annotations

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from sqlmodel import Session, select

from entrega.lib.tenant_format import format_date_for_tenant
from entrega.model.base import utc_now
from entrega.model.unit import Unit
from entrega.model.warranty import UnitWarranty, WarrantyCategory, WarrantyStatus

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 90
# Prazo máximo de categoria (100 anos)
MAX_TERM_MONTHS = 1200


class WarrantyTermError(ValueError):
    """Prazo de categoria que não produz uma data de vencimento válida."""


def add_months(d: date, months: int) -> date:
    """Soma meses mantendo o dia; se o mês destino for menor, usa o último dia (31/01 + 1 → 28/02)."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def compute_expiration_date(start_date: date, term_months: int) -> date:
    return add_months(start_date, term_months)


def derive_status(stored_status: WarrantyStatus | str, expiration_date: date, today: date) -> WarrantyStatus:
    if WarrantyStatus(stored_status) == WarrantyStatus.SUSPENSA:
        return WarrantyStatus.SUSPENSA
    if expiration_date < today:
        return WarrantyStatus.EXPIRADA
    return WarrantyStatus.VIGENTE


def days_remaining(expiration_date: date, today: date) -> int:
    return (expiration_date - today).days


def is_expiring_soon(stored_status: WarrantyStatus | str, expiration_date: date, today: date) -> bool:
    if derive_status(stored_status, expiration_date, today) != WarrantyStatus.VIGENTE:
        return False
    return 0 <= days_remaining(expiration_date, today) < EXPIRING_SOON_DAYS


# ----------------------------------------------------------------------------
# Leitura
# ----------------------------------------------------------------------------

def list_categories(session: Session, tenant_id: uuid.UUID) -> list[WarrantyCategory]:
    return list(
        session.exec(
            select(WarrantyCategory)
            .where(WarrantyCategory.tenant_id == tenant_id)
            .order_by(WarrantyCategory.name)
        ).all()
    )


def list_unit_warranties(
    session: Session, unit_ids: Sequence[uuid.UUID]
) -> list[tuple[UnitWarranty, WarrantyCategory]]:
    """Garantias das unidades com a categoria (join). Lista vazia se não houver unidades."""
    if not unit_ids:
        return []
    rows = session.exec(
        select(UnitWarranty, WarrantyCategory)
        .join(WarrantyCategory, WarrantyCategory.id == UnitWarranty.category_id)
        .where(UnitWarranty.unit_id.in_(list(unit_ids)))  # type: ignore[attr-defined]
        .order_by(WarrantyCategory.name)
    ).all()
    return [(w, c) for w, c in rows]


# ----------------------------------------------------------------------------
# Geração em lote
# ----------------------------------------------------------------------------

def generate_warranties(
    session: Session,
    *,
    tenant_id: uuid.UUID,
    unit_ids: Sequence[uuid.UUID],
    category_ids: Sequence[uuid.UUID],
    start_date: date,
    locale: str = "pt-BR",
    today: date | None = None,
) -> list[UnitWarranty]:
    """
    Substitui as garantias de cada unidade por uma linha por categoria selecionada.

    Categorias inexistentes ou de outro tenant são ignoradas. Se nenhuma categoria
    válida sobrar (ou não houver unidades), nada é apagado.

    Prazo que não gera data válida levanta WarrantyTermError antes de apagar qualquer linha.

    Tudo acontece em uma transação: em caso de erro é feito rollback e a exceção
    propaga para o chamador.
    """
    if not unit_ids or not category_ids:
        return []

    categories = session.exec(
        select(WarrantyCategory).where(
            WarrantyCategory.tenant_id == tenant_id,
            WarrantyCategory.id.in_(list(category_ids)),  # type: ignore[attr-defined]
        )
    ).all()
    category_by_id = {c.id: c for c in categories}
    selected = [category_by_id[cid] for cid in category_ids if cid in category_by_id]
    if not selected:
        logger.warning(f"Nenhuma categoria válida para gerar garantias (tenant_id={tenant_id})")
        return []

    expirations: dict[uuid.UUID, date] = {}
    for category in selected:
        try:
            expirations[category.id] = compute_expiration_date(start_date, category.term_months)
        except (ValueError, OverflowError) as e:
            raise WarrantyTermError(
                f"Prazo da categoria '{category.name}' ({category.term_months} meses) gera vencimento inválido"
            ) from e

    note = f"Gerado automaticamente em {format_date_for_tenant(today or date.today(), locale)}"

    try:
        existing = session.exec(
            select(UnitWarranty).where(UnitWarranty.unit_id.in_(list(unit_ids)))  # type: ignore[attr-defined]
        ).all()
        for w in existing:
            session.delete(w)
        # DELETE antes do INSERT: (unit_id, category_id) é único
        session.flush()

        created: list[UnitWarranty] = []
        for unit_id in unit_ids:
            for category in selected:
                warranty = UnitWarranty(
                    unit_id=unit_id,
                    category_id=category.id,
                    start_date=start_date,
                    expiration_date=expirations[category.id],
                    status=WarrantyStatus.VIGENTE,
                    notes=note,
                )
                session.add(warranty)
                created.append(warranty)

        session.commit()
    except Exception:
        session.rollback()
        raise

    for w in created:
        session.refresh(w)
    logger.info(
        f"Garantias geradas: units={len(unit_ids)}, categories={len(selected)}, "
        f"removed={len(existing)}, created={len(created)}"
    )
    return created


def set_warranty_status(
    session: Session,
    warranty: UnitWarranty,
    status: WarrantyStatus,
    notes: str | None = None,
) -> UnitWarranty:
    """Suspende ou reativa manualmente. Expirada não é um status gravável."""
    if status == WarrantyStatus.EXPIRADA:
        raise ValueError("Status Expirada é calculado e não pode ser definido manualmente")
    warranty.status = status
    if notes is not None:
        warranty.notes = notes
    warranty.updated_at = utc_now()
    session.add(warranty)
    session.commit()
    session.refresh(warranty)
    return warranty


# ----------------------------------------------------------------------------
# Resumo por empreendimento
# ----------------------------------------------------------------------------

@dataclass
class UnitWarrantySummary:
    unit_id: uuid.UUID
    configured: bool = False
    active_count: int = 0
    expired_count: int = 0
    expiring_soon_count: int = 0


def summarize_units(
    units: Iterable[Unit],
    warranties: Iterable[UnitWarranty],
    today: date,
) -> list[UnitWarrantySummary]:
    """Suspensas contam como configuradas mas não entram em ativas nem expiradas."""
    summary = {u.id: UnitWarrantySummary(unit_id=u.id) for u in units}
    for w in warranties:
        s = summary.get(w.unit_id)
        if s is None:
            continue
        s.configured = True
        status = derive_status(w.status, w.expiration_date, today)
        if status == WarrantyStatus.EXPIRADA:
            s.expired_count += 1
        elif status == WarrantyStatus.VIGENTE:
            s.active_count += 1
            if is_expiring_soon(w.status, w.expiration_date, today):
                s.expiring_soon_count += 1
    return list(summary.values())
