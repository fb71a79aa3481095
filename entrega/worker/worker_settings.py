import logging
import os
from urllib.parse import urlsplit

from arq.connections import RedisSettings
from arq.cron import cron

from entrega.worker.job import reconcile_pending_orphans, send_password_reset_email_job

logger = logging.getLogger(__name__)


def redis_dsn() -> str:
    return os.environ.get("REDIS_URL", "redis://localhost:6379/0")


async def on_startup(ctx: dict) -> None:
    # Não loga usuário/senha do DSN
    parts = urlsplit(redis_dsn())
    logger.info(
        f"Worker iniciado (redis={parts.hostname}:{parts.port or 6379}, "
        f"functions={[f.__name__ for f in WorkerSettings.functions]})"
    )


class WorkerSettings:
    # Arq procura estes atributos na classe de settings
    redis_settings = RedisSettings.from_dsn(redis_dsn())
    functions = [send_password_reset_email_job]
    cron_jobs = [
        cron(reconcile_pending_orphans, minute={0, 10, 20, 30, 40, 50}),
    ]
    on_startup = on_startup
    # O job é idempotente (só roda a partir de PENDING); um retry não reenvia email
    max_tries = 1
    job_timeout = 60
