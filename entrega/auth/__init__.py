from entrega.auth.jwt import create_access_token, verify_token
from entrega.auth.password import get_password_hash, verify_password
from entrega.auth.dependencies import get_current_account, require_role, ensure_tenant_access

__all__ = [
    "create_access_token",
    "verify_token",
    "get_password_hash",
    "verify_password",
    "get_current_account",
    "require_role",
    "ensure_tenant_access",
]
