import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Carrega variáveis de ambiente do .env antes de importar módulos que usam os.getenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from fastapi import FastAPI, Request  # noqa: E402
from fastapi.exceptions import RequestValidationError  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402
from starlette.exceptions import HTTPException as StarletteHTTPException  # noqa: E402

from entrega.api.route import router  # noqa: E402
from entrega.middleware.tenant import get_tenant_id, tenant_context_middleware  # noqa: E402

log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Entrega API",
    description="API para gestão de entregas de empreendimentos: unidades, documentos e garantias",
    version="1.0.0",
)

# Origens do frontend (separadas por vírgula)
cors_origins_env = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
cors_origins = [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _tenant_context(request: Request, call_next):
    return await tenant_context_middleware(request, call_next)


app.include_router(router)


def _error_payload(*, code: str, message: str, details: object | None = None) -> dict:
    payload: dict = {"error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return payload


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Normaliza erros HTTP para um payload consistente.
    code = f"HTTP_{exc.status_code}"
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(code=code, message=message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # ctx pode conter a exceção original (não serializável)
    details = [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=_error_payload(code="VALIDATION_ERROR", message="Invalid request", details=details),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Erro não tratado (tenant_id={get_tenant_id(request)}): {exc}", exc_info=True)

    # Fora de dev não devolve a mensagem original
    if os.getenv("APP_ENV", "dev") != "dev":
        error_message = "Internal server error"
    else:
        error_message = str(exc)[:500]
    return JSONResponse(
        status_code=500,
        content=_error_payload(code="INTERNAL_ERROR", message=error_message),
    )
