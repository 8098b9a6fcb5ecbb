"""Input coercion shared by the resource services."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Type, TypeVar

from braik.services.errors import ValidationError

E = TypeVar("E", bound=Enum)


def require_fields(payload: dict[str, Any], *names: str) -> None:
    missing = [name for name in names if payload.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)


def parse_enum(enum_cls: Type[E], value: Any, field: str, default: E | None = None) -> E | None:
    """Coerce ``value`` to ``enum_cls`` by value or name, case-insensitively."""
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip()
    for member in enum_cls:
        if text in (member.value, member.name) or text.lower() == str(member.value).lower():
            return member
    allowed = ", ".join(str(member.value) for member in enum_cls)
    raise ValidationError(f"Invalid {field}: {value!r} (expected one of {allowed})", field=field)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any, field: str) -> datetime | None:
    """Parse ISO 8601 input into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: expected an ISO 8601 datetime", field=field) from None
    return as_utc(parsed)


def parse_date(value: Any, field: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: expected YYYY-MM-DD", field=field) from None


def parse_int(value: Any, field: str, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: expected an integer", field=field) from None


def parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)

