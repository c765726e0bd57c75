"""Caller identity checks shared by the services."""

from __future__ import annotations

from ..exceptions import ValidationError


def require_caller(caller_id: str | None) -> str:
    """Return the stripped caller id, rejecting a missing or blank one."""
    if not isinstance(caller_id, str) or not caller_id.strip():
        raise ValidationError({"caller_id": ["caller identity is required"]})
    return caller_id.strip()


def require_name(name: object, field: str = "name") -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError({field: ["must be a non-empty string"]})
    return name.strip()
