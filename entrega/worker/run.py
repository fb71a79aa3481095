from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Carrega .env antes de qualquer import que use os.getenv (session, redis, etc.)
load_dotenv(Path(__file__).resolve().parents[2] / ".env")

# Configurar logging antes de importar outros módulos
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

from arq.worker import run_worker  # noqa: E402

from entrega.worker.worker_settings import WorkerSettings  # noqa: E402


def main() -> None:
    # Executa o worker do Arq (processo separado da API)
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
