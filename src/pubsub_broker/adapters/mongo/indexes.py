"""Index definitions for the broker collections."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .base import store_errors

if TYPE_CHECKING:
    from .connection import MongoConnectionManager

logger = logging.getLogger(__name__)

INDEXES: dict[str, list[tuple[list[tuple[str, int]], dict[str, object]]]] = {
    "queues": [
        ([("owner_id", 1), ("name", 1)], {"name": "owner_name", "unique": True}),
    ],
    "messages": [
        ([("queue_id", 1), ("visibility_state", 1), ("_id", 1)], {"name": "queue_state"}),
        ([("queue_id", 1), ("expires_at", 1)], {"name": "queue_expiry"}),
        ([("expires_at", 1)], {"name": "expiry"}),
    ],
    "topics": [
        ([("owner_id", 1)], {"name": "owner"}),
        ([("subscribed_queues", 1)], {"name": "subscribed_queues"}),
    ],
    "notifications": [
        ([("status", 1), ("created_at", 1)], {"name": "status_created"}),
        (
            [("collection_name", 1), ("payload.resume_token", -1)],
            {"name": "collection_resume_token"},
        ),
    ],
}


async def create_compound_index(
    connection: MongoConnectionManager,
    collection: str,
    keys: list[tuple[str, int]],
    *,
    name: str | None = None,
    unique: bool = False,
) -> str:
    """Create a compound index. keys: [(field, 1|(-1)), ...]. Returns index name."""
    coll = connection.database.get_collection(collection)
    with store_errors():
        return await coll.create_index(keys, name=name, unique=unique)  # type: ignore[no-any-return]


async def ensure_indexes(connection: MongoConnectionManager) -> list[str]:
    """Create every broker index; existing indexes are left untouched."""
    created = []
    for collection, specs in INDEXES.items():
        for keys, options in specs:
            created.append(
                await create_compound_index(
                    connection,
                    collection,
                    keys,
                    name=str(options["name"]),
                    unique=bool(options.get("unique", False)),
                )
            )
    logger.info("Ensured %d indexes", len(created))
    return created
