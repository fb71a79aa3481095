import logging

from sqlmodel import Session

from entrega.auth.jwt import create_password_reset_token
from entrega.model.account import Account
from entrega.model.job import Job, JobStatus, JobType

logger = logging.getLogger(__name__)

PASSWORD_RESET_JOB = "send_password_reset_email_job"


def create_password_reset_job(session: Session, account: Account) -> Job:
    """Cria o Job PENDING com o token de uso único; o enqueue fica com o chamador."""
    token = create_password_reset_token(str(account.id), account.email, account.password_hash)
    job = Job(
        tenant_id=account.tenant_id,
        job_type=JobType.PASSWORD_RESET_EMAIL,
        status=JobStatus.PENDING,
        input_data={"account_id": str(account.id), "email": account.email, "token": token},
    )
    session.add(job)
    session.commit()
    session.refresh(job)
    logger.info(f"Job de reset de senha criado: job_id={job.id}, account_id={account.id}")
    return job
