import logging

from arq import create_pool
from arq.connections import RedisSettings

from entrega.worker.worker_settings import redis_dsn

logger = logging.getLogger(__name__)


async def enqueue_job(function_name: str, job_id: str) -> bool:
    """
    Enfileira no Arq. Falha de Redis não derruba a request: o Job fica PENDING
    e o cron de reconciliação o marca como FAILED depois.
    """
    try:
        redis = await create_pool(RedisSettings.from_dsn(redis_dsn()))
        try:
            await redis.enqueue_job(function_name, job_id)
        finally:
            await redis.aclose()
        return True
    except Exception as e:
        logger.error(f"Erro ao enfileirar job {function_name} (job_id={job_id}): {e}")
        return False
