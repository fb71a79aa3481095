import uuid

from sqlalchemy import func
from sqlmodel import Session, select

from entrega.model.owner import Owner
from entrega.model.project import Project
from entrega.model.unit import Unit, UnitStatus
from entrega.services.document_service import storage_used


def tenant_stats(session: Session, tenant_id: uuid.UUID) -> dict:
    project_count = session.exec(
        select(func.count()).select_from(Project).where(Project.tenant_id == tenant_id)
    ).one()
    unit_count = session.exec(
        select(func.count())
        .select_from(Unit)
        .join(Project, Project.id == Unit.project_id)
        .where(Project.tenant_id == tenant_id)
    ).one()
    return {
        "project_count": int(project_count),
        "unit_count": int(unit_count),
        "storage_used": storage_used(session, tenant_id),
    }


def tenant_owners(session: Session, tenant_id: uuid.UUID) -> list[Owner]:
    """Proprietários com unidade em algum empreendimento do tenant, sem repetição."""
    owner_ids = session.exec(
        select(Unit.owner_id)
        .join(Project, Project.id == Unit.project_id)
        .where(Project.tenant_id == tenant_id, Unit.owner_id.is_not(None))  # type: ignore[union-attr]
        .distinct()
    ).all()
    if not owner_ids:
        return []
    return list(
        session.exec(select(Owner).where(Owner.id.in_(list(owner_ids))).order_by(Owner.name)).all()  # type: ignore[attr-defined]
    )


def project_unit_counts(session: Session, project_ids: list[uuid.UUID]) -> dict[uuid.UUID, tuple[int, int]]:
    """{project_id: (total_units, delivered_units)}"""
    if not project_ids:
        return {}
    rows = session.exec(
        select(Unit.project_id, Unit.status, func.count())
        .where(Unit.project_id.in_(project_ids))  # type: ignore[attr-defined]
        .group_by(Unit.project_id, Unit.status)
    ).all()
    counts: dict[uuid.UUID, tuple[int, int]] = {pid: (0, 0) for pid in project_ids}
    for project_id, status, n in rows:
        total, delivered = counts[project_id]
        total += n
        if status == UnitStatus.DELIVERED:
            delivered += n
        counts[project_id] = (total, delivered)
    return counts
