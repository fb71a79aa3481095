from __future__ import annotations

from typing import Any, Awaitable, Callable

from fastapi import HTTPException, Request

from entrega.auth.jwt import verify_token


async def tenant_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Any]],
):
    """
    Middleware de contexto (não-enforcement):

    - Se houver Authorization: Bearer <token>, decodifica via verify_token()
    - Coloca {account_id, tenant_id, role} em request.state
    - NÃO consulta DB e NÃO bloqueia request em caso de token inválido
      (o enforcement real fica nas dependencies: get_current_account()).
    """
    auth = request.headers.get("authorization")
    if not auth or not auth.startswith("Bearer "):
        return await call_next(request)

    token = auth.removeprefix("Bearer ").strip()
    if not token:
        return await call_next(request)

    try:
        payload = verify_token(token)
    except HTTPException:
        # Não muda o comportamento de endpoints públicos (ex.: /health, /lead).
        return await call_next(request)

    request.state.account_id = payload.get("sub")
    request.state.tenant_id = payload.get("tenant_id")
    request.state.role = payload.get("role")

    return await call_next(request)


def get_tenant_id(request: Request) -> str | None:
    """
    Helper leve para extrair tenant_id do contexto.
    Preferir enforcement via get_current_account().
    """
    return getattr(request.state, "tenant_id", None)
