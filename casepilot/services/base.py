"""Shared helpers for the lifecycle services."""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Type, TypeVar

from ..errors import ValidationError

E = TypeVar("E")


def parse_enum(enum_cls: Type[E], value, field: str) -> E:
    """Coerce a raw value into `enum_cls`, raising ValidationError on bad input."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field}: {value!r}. Allowed: {allowed}")


def require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def normalize_tags(tags) -> List[str]:
    """Accept a list or a comma separated string; drop blanks and duplicates."""
    if tags is None:
        return []
    if isinstance(tags, str):
        items: Iterable[str] = tags.split(",")
    else:
        items = tags
    seen = []
    for tag in items:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; convert aware inputs."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
