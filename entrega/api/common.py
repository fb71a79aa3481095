import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from entrega.lib.ids import parse_uuid


def require_uuid(value: str | None, field: str = "id") -> uuid.UUID:
    """IDs de escrita: formato inválido responde 400 antes de tocar o banco."""
    parsed = parse_uuid(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"ID inválido ({field})")
    return parsed


def is_unique_violation(e: IntegrityError, constraint: str | None = None) -> bool:
    error_msg = (str(e.orig) if getattr(e, "orig", None) is not None else str(e)).lower()
    if constraint and constraint.lower() in error_msg:
        return True
    return "unique" in error_msg or "duplicate" in error_msg
