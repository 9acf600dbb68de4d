"""Typed view of a persisted session document."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class SessionRecord:
    """One session document.

    ``store_key`` is the document ``_id``. It never changes, even when ``id``
    is rotated by ``regenerate_identity``.
    """

    id: str
    data: str
    last_touched_at: datetime | None
    created_at: datetime | None
    store_key: Any

    @classmethod
    def from_document(
        cls,
        document: dict[str, Any],
        *,
        id_field: str,
        data_field: str,
        time_field: str,
        created_field: str,
    ) -> SessionRecord:
        """Build a record from a raw collection document."""
        return cls(
            id=document[id_field],
            data=document.get(data_field) or "",
            last_touched_at=document.get(time_field),
            created_at=document.get(created_field),
            store_key=document["_id"],
        )
