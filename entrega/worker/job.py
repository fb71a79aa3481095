from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlmodel import Session, select

from entrega.db.session import engine
from entrega.lib.ids import parse_uuid
from entrega.model.account import Account
from entrega.model.base import utc_now
from entrega.model.job import Job, JobStatus
from entrega.services.email_service import build_reset_link, send_password_reset_email

logger = logging.getLogger(__name__)

STALE_PENDING_WINDOW = timedelta(hours=1)


def _safe_error_message(e: Exception, max_len: int = 500) -> str:
    msg = f"{type(e).__name__}: {str(e)}".strip()
    return msg[:max_len]


def _as_utc(dt: datetime) -> datetime:
    # SQLite devolve datetimes sem tzinfo; o valor gravado já é UTC
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _finish(session: Session, job: Job, status: JobStatus, *, result: dict | None = None, error: str | None = None) -> None:
    now = utc_now()
    job.status = status
    job.result_data = result
    job.error_message = error
    job.completed_at = now
    job.updated_at = now
    session.add(job)
    session.commit()


def run_password_reset_email(session: Session, job_id: str) -> dict[str, Any]:
    """Executa o job de email de reset na sessão informada (separado para testes)."""
    parsed_id = parse_uuid(job_id)
    job = session.get(Job, parsed_id) if parsed_id else None
    if not job:
        return {"ok": False, "error": "job_not_found", "job_id": job_id}
    if job.status != JobStatus.PENDING:
        return {"ok": False, "error": "job_not_pending", "job_id": job_id, "status": job.status}

    now = utc_now()
    job.status = JobStatus.RUNNING
    job.started_at = now
    job.updated_at = now
    session.add(job)
    session.commit()

    try:
        data = job.input_data or {}
        account = session.get(Account, parse_uuid(data.get("account_id")))
        if not account:
            _finish(session, job, JobStatus.FAILED, error="Conta não encontrada")
            return {"ok": False, "error": "account_not_found", "job_id": job_id}

        ok, error_msg = send_password_reset_email(
            to_email=data.get("email") or account.email,
            name=account.name,
            reset_link=build_reset_link(data["token"]),
        )
        if not ok:
            _finish(session, job, JobStatus.FAILED, error=error_msg)
            return {"ok": False, "error": error_msg, "job_id": job_id}

        _finish(session, job, JobStatus.COMPLETED, result={"sent_to": data.get("email") or account.email})
        return {"ok": True, "job_id": job_id}
    except Exception as e:
        logger.error(f"Erro no job de reset de senha (job_id={job_id}): {e}", exc_info=True)
        session.rollback()
        _finish(session, job, JobStatus.FAILED, error=_safe_error_message(e))
        return {"ok": False, "error": _safe_error_message(e), "job_id": job_id}


async def send_password_reset_email_job(ctx: dict[str, Any], job_id: str) -> dict[str, Any]:
    with Session(engine) as session:
        return run_password_reset_email(session, job_id)


def fail_stale_pending_jobs(session: Session, now: datetime | None = None) -> dict[str, Any]:
    """
    Auto-fail de jobs órfãos: PENDING sem started_at por mais de 1h
    (ex.: Redis fora do ar no momento do enqueue).
    """
    now = now or utc_now()
    pending = session.exec(
        select(Job).where(
            Job.status == JobStatus.PENDING,
            Job.started_at.is_(None),  # type: ignore[union-attr]
        )
    ).all()

    failed = 0
    for job in pending:
        if now - _as_utc(job.created_at) <= STALE_PENDING_WINDOW:
            continue
        job.status = JobStatus.FAILED
        job.error_message = "orphan/stale: job permaneceu PENDING por mais de 1h"
        job.completed_at = now
        job.updated_at = now
        session.add(job)
        failed += 1

    if failed:
        session.commit()
        logger.warning(f"Jobs PENDING marcados como FAILED: {failed}")
    return {"ok": True, "scanned": len(pending), "failed": failed}


async def reconcile_pending_orphans(ctx: dict[str, Any]) -> dict[str, Any]:
    with Session(engine) as session:
        return fail_stale_pending_jobs(session)


__all__ = [
    "send_password_reset_email_job",
    "reconcile_pending_orphans",
    "run_password_reset_email",
    "fail_stale_pending_jobs",
]
