"""Pydantic model <-> BSON document round-trip (datetime, enum, tuple)."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel

from ...exceptions import InfrastructureError

TModel = TypeVar("TModel", bound=BaseModel)


def to_bson(value: Any) -> Any:
    """Convert Python values to BSON-safe values.

    Datetimes are stored as naive UTC, which is what the driver hands back.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_bson(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_bson(v) for v in value]
    return value


def model_to_doc(model: BaseModel, *, id_field: str = "id") -> dict[str, Any]:
    """Convert a Pydantic model to a BSON-ready document, ``id`` -> ``_id``."""
    try:
        data = model.model_dump(mode="python")
    except Exception as e:
        raise InfrastructureError(str(e)) from e
    data = to_bson(data)
    if id_field in data:
        data["_id"] = data.pop(id_field)
    return data  # type: ignore[no-any-return]


def model_from_doc(
    cls: type[TModel],
    doc: dict[str, Any],
    *,
    id_field: str = "id",
) -> TModel:
    """Convert a BSON document to a Pydantic model instance, ``_id`` -> ``id``."""
    if not isinstance(doc, dict):
        raise InfrastructureError("Document must be a dict")
    doc = dict(doc)
    if "_id" in doc:
        doc[id_field] = doc.pop("_id")
    try:
        return cls.model_validate(doc)
    except Exception as e:
        raise InfrastructureError(str(e)) from e
