"""
Tests for the password reset job and the stale job reconciliation.
"""

from datetime import timedelta

from entrega.model.base import utc_now
from entrega.model.job import Job, JobStatus, JobType
from entrega.services.password_reset import create_password_reset_job
from entrega.worker import job as worker_job
from entrega.worker.job import fail_stale_pending_jobs, run_password_reset_email


def test_job_completes_when_email_is_sent(session, owner_account, monkeypatch):
    sent = []

    def fake_send(to_email, name, reset_link):
        sent.append((to_email, name, reset_link))
        return True, ""

    monkeypatch.setattr(worker_job, "send_password_reset_email", fake_send)
    job = create_password_reset_job(session, owner_account)

    result = run_password_reset_email(session, str(job.id))

    assert result["ok"] is True
    session.refresh(job)
    assert job.status == JobStatus.COMPLETED
    assert job.started_at is not None
    assert job.completed_at is not None
    assert sent[0][0] == "maria@email.com"
    assert sent[0][2].endswith(f"token={job.input_data['token']}")


def test_job_fails_without_email_provider(session, owner_account, monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    job = create_password_reset_job(session, owner_account)

    result = run_password_reset_email(session, str(job.id))

    assert result["ok"] is False
    session.refresh(job)
    assert job.status == JobStatus.FAILED
    assert "RESEND_API_KEY" in job.error_message


def test_job_runs_only_once(session, owner_account, monkeypatch):
    monkeypatch.setattr(worker_job, "send_password_reset_email", lambda **kwargs: (True, ""))
    job = create_password_reset_job(session, owner_account)

    assert run_password_reset_email(session, str(job.id))["ok"] is True
    second = run_password_reset_email(session, str(job.id))
    assert second["error"] == "job_not_pending"


def test_unknown_job():
    class NoSession:
        def get(self, *args):
            return None

    assert run_password_reset_email(NoSession(), "nao-e-uuid")["error"] == "job_not_found"


def test_stale_pending_jobs_are_failed(session):
    now = utc_now()
    old = Job(job_type=JobType.PASSWORD_RESET_EMAIL, created_at=now - timedelta(hours=2))
    recent = Job(job_type=JobType.PASSWORD_RESET_EMAIL, created_at=now - timedelta(minutes=10))
    running = Job(job_type=JobType.PASSWORD_RESET_EMAIL, status=JobStatus.RUNNING,
                  created_at=now - timedelta(hours=3), started_at=now - timedelta(hours=3))
    session.add_all([old, recent, running])
    session.commit()

    result = fail_stale_pending_jobs(session, now=now)

    assert result == {"ok": True, "scanned": 2, "failed": 1}
    session.refresh(old)
    session.refresh(recent)
    session.refresh(running)
    assert old.status == JobStatus.FAILED
    assert old.error_message.startswith("orphan/stale")
    assert recent.status == JobStatus.PENDING
    assert running.status == JobStatus.RUNNING
