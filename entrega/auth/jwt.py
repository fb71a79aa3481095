import os
from pathlib import Path
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from dotenv import load_dotenv
from jose import jwt, JWTError
from fastapi import HTTPException

# Carrega variáveis de ambiente do .env (garante que está carregado antes de usar)
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

JWT_SECRET = os.getenv("JWT_SECRET", "CHANGE_ME")
JWT_ISSUER = os.getenv("JWT_ISSUER", "entrega")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = int(os.getenv("JWT_EXPIRATION_HOURS", "8"))
PASSWORD_RESET_EXPIRATION_MINUTES = 60
PASSWORD_RESET_PURPOSE = "password_reset"


def create_access_token(
    account_id: str,
    role: str,
    email: str,
    name: str,
    tenant_id: Optional[str] = None,
) -> str:
    """
    Cria um token JWT com as informações da conta.

    Args:
        account_id: ID da conta no banco
        role: Role da conta (MASTER, ADMIN, OWNER)
        email: Email da conta
        name: Nome da conta
        tenant_id: ID da construtora (None para MASTER/OWNER)

    Returns:
        Token JWT codificado
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(account_id),
        "email": email,
        "name": name,
        "tenant_id": str(tenant_id) if tenant_id else None,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=JWT_EXPIRATION_HOURS)).timestamp()),
        "iss": JWT_ISSUER,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verifica e decodifica um token JWT de acesso.

    Raises:
        HTTPException: Se o token for inválido ou expirado
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
        )
    except JWTError:
        # Evita vazar detalhes internos no payload de erro.
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("purpose"):
        # Tokens de propósito específico (reset de senha) não autenticam requests
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def _password_fingerprint(password_hash: str) -> str:
    # Muda sempre que a senha muda: o link de reset vale uma única vez
    return password_hash[-12:]


def create_password_reset_token(account_id: str, email: str, password_hash: str) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(account_id),
        "email": email,
        "purpose": PASSWORD_RESET_PURPOSE,
        "pwd": _password_fingerprint(password_hash),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=PASSWORD_RESET_EXPIRATION_MINUTES)).timestamp()),
        "iss": JWT_ISSUER,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_password_reset_token(token: str) -> Dict[str, Any]:
    """Decodifica token de reset; a checagem do fingerprint fica com o chamador."""
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
        )
    except JWTError:
        raise HTTPException(status_code=400, detail="Link de redefinição inválido ou expirado")
    if payload.get("purpose") != PASSWORD_RESET_PURPOSE:
        raise HTTPException(status_code=400, detail="Link de redefinição inválido ou expirado")
    return payload


def reset_token_matches(payload: Dict[str, Any], password_hash: str) -> bool:
    return payload.get("pwd") == _password_fingerprint(password_hash)
