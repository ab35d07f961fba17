from __future__ import annotations

from typing import Any, Mapping


def drop_none(data: Mapping[str, Any]) -> dict[str, Any]:
    """Убирает ключи со значением None (в ответе их просто нет)."""
    return {k: v for k, v in data.items() if v is not None}


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}
