"""
Validação de identificadores vindos do cliente.

IDs malformados são descartados antes de chegar no banco: leituras devolvem
vazio e escritas respondem 400.
"""

from __future__ import annotations

import re
import uuid
from typing import Iterable

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_uuid(value: object) -> bool:
    if isinstance(value, uuid.UUID):
        return True
    if not isinstance(value, str):
        return False
    return bool(_UUID_RE.match(value.strip()))


def parse_uuid(value: object) -> uuid.UUID | None:
    """Converte para UUID ou retorna None se o formato for inválido."""
    if isinstance(value, uuid.UUID):
        return value
    if not is_valid_uuid(value):
        return None
    return uuid.UUID(str(value).strip())


def parse_uuid_list(values: Iterable[object]) -> list[uuid.UUID]:
    """Mantém apenas os IDs válidos, sem duplicados e na ordem original."""
    seen: set[uuid.UUID] = set()
    result: list[uuid.UUID] = []
    for v in values:
        parsed = parse_uuid(v)
        if parsed is not None and parsed not in seen:
            seen.add(parsed)
            result.append(parsed)
    return result
