"""JSON serialization fallback used by the structured log formatter."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any


def json_serializer(obj: Any) -> Any:
    """
    ``default=`` hook for json.dumps that keeps numbers numeric.

    - datetime/date -> ISO 8601 string
    - Decimal -> float
    - Path -> string
    - Enum -> value
    - bytes -> UTF-8 text (invalid sequences replaced)
    - anything else -> str()
    """
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")
    return str(obj)


__all__ = ["json_serializer"]
