from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sqlmodel import Session

from entrega.db.session import get_session
from entrega.lib.ids import parse_uuid
from entrega.model.account import Account, AccountRole
from entrega.model.tenant import Tenant, TenantStatus
from entrega.auth.jwt import verify_token

bearer = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(bearer),
) -> dict[str, Any]:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_token(credentials.credentials)


def get_current_account(
    payload: dict[str, Any] = Depends(get_token_payload),
    session: Session = Depends(get_session),
) -> Account:
    """Dependency que retorna a conta autenticada a partir do JWT."""
    account_id = parse_uuid(payload.get("sub"))
    if account_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    account = session.get(Account, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found")

    if account.role == AccountRole.ADMIN:
        # Construtora suspensa perde acesso imediatamente, mesmo com token válido
        tenant = session.get(Tenant, account.tenant_id) if account.tenant_id else None
        if not tenant or tenant.status == TenantStatus.SUSPENDED:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Acesso negado (construtora inexistente ou suspensa)",
            )
    return account


def require_role(*roles: AccountRole):
    """
    Dependency factory para restringir o endpoint a uma ou mais roles.

    Args:
        roles: Roles aceitas (ex: AccountRole.MASTER, AccountRole.ADMIN)

    Returns:
        Dependency function
    """
    allowed = {r.value for r in roles}

    def role_checker(account: Account = Depends(get_current_account)) -> Account:
        if account.role.value not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(sorted(allowed))}",
            )
        return account

    return role_checker


def ensure_tenant_access(account: Account, tenant_id) -> None:
    """MASTER acessa qualquer tenant; ADMIN apenas o próprio."""
    if account.role == AccountRole.MASTER:
        return
    if account.role == AccountRole.ADMIN and account.tenant_id == tenant_id:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso negado")
