"""MongoDB-backed session store backend.

One document per session in a single collection. Every method issues one
atomic MongoDB call, except ``read`` (find, then upsert on a miss) and
``regenerate_identity`` (find, remove or upsert for the old id around an
update by ``_id``).
Sequences are not atomic: concurrent writers to one session resolve as last
write wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pymongo import ASCENDING, ReturnDocument

from sessiondb.exceptions import SessionConfigurationError, UnknownSessionError
from sessiondb.record import SessionRecord

logger = logging.getLogger(__name__)

DEFAULT_ID_FIELD = "sess_id"
DEFAULT_DATA_FIELD = "sess_data"
DEFAULT_TIME_FIELD = "sess_time"
DEFAULT_CREATED_FIELD = "created_at"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def check_required_options(database_name: str | None, collection_name: str | None) -> None:
    """Raise SessionConfigurationError unless both names are non-blank."""
    if not database_name or not str(database_name).strip():
        raise SessionConfigurationError(
            'You must provide the "database_name" option for the MongoDB session store. '
            "Set SESSION_DATABASE in .env or session.database in sessiondb.yaml."
        )
    if not collection_name or not str(collection_name).strip():
        raise SessionConfigurationError(
            'You must provide the "collection_name" option for the MongoDB session store. '
            "Set SESSION_COLLECTION in .env or session.collection in sessiondb.yaml."
        )


class MongoSessionStore:
    """Session handler storing records in a MongoDB collection.

    ``client`` is anything indexable as ``client[database][collection]``,
    normally a ``pymongo.MongoClient``. The collection handle is resolved once
    here; ``open`` does not touch the database.
    """

    def __init__(
        self,
        client: Any,
        database_name: str | None = None,
        collection_name: str | None = None,
        id_field: str = DEFAULT_ID_FIELD,
        data_field: str = DEFAULT_DATA_FIELD,
        time_field: str = DEFAULT_TIME_FIELD,
        created_field: str = DEFAULT_CREATED_FIELD,
        clock: Callable[[], datetime] | None = None,
    ):
        check_required_options(database_name, collection_name)
        for option, value in (
            ("id_field", id_field),
            ("data_field", data_field),
            ("time_field", time_field),
            ("created_field", created_field),
        ):
            if not value or not str(value).strip():
                raise SessionConfigurationError(f'The "{option}" option must not be empty.')

        self.database_name = database_name.strip()
        self.collection_name = collection_name.strip()
        self.id_field = id_field
        self.data_field = data_field
        self.time_field = time_field
        self.created_field = created_field
        self._clock = clock or _utcnow
        self._collection = client[self.database_name][self.collection_name]

    @property
    def collection(self) -> Any:
        return self._collection

    def ensure_indexes(self) -> None:
        """Create the unique id index and the expiry index used by ``gc``."""
        self._collection.create_index([(self.id_field, ASCENDING)], unique=True)
        self._collection.create_index([(self.time_field, ASCENDING)])
        logger.info(
            "Ensured session indexes on %s.%s", self.database_name, self.collection_name
        )

    # Session handler hooks

    def open(self, path: str | None = None, name: str | None = None) -> bool:
        return True

    def close(self) -> bool:
        return True

    def read(self, session_id: str) -> str:
        """Return the payload for ``session_id``, creating an empty record if unknown."""
        document = self._collection.find_one({self.id_field: session_id})
        if document is not None:
            return document.get(self.data_field) or ""

        # $setOnInsert keeps a record created concurrently by another request.
        now = self._clock()
        document = self._collection.find_one_and_update(
            {self.id_field: session_id},
            {
                "$setOnInsert": {
                    self.data_field: "",
                    self.time_field: now,
                    self.created_field: now,
                }
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        logger.debug("Created session record for %s", session_id)
        if document is None:
            return ""
        return document.get(self.data_field) or ""

    def write(self, session_id: str, data: str) -> bool:
        """Persist ``data`` and refresh the record's timestamp.

        Returns False when no record matched, e.g. it expired after ``read``.
        The payload is lost in that case.
        """
        result = self._collection.update_one(
            {self.id_field: session_id},
            {"$set": {self.data_field: data, self.time_field: self._clock()}},
        )
        if not result.acknowledged:
            return False
        if result.matched_count == 0:
            logger.warning("Session %s has no record; write discarded", session_id)
            return False
        return True

    def destroy(self, session_id: str) -> bool:
        result = self._collection.delete_many({self.id_field: session_id})
        return bool(result.acknowledged)

    def gc(self, lifetime: int) -> bool:
        """Remove records last touched more than ``lifetime`` seconds ago."""
        cutoff = self._clock() - timedelta(seconds=int(lifetime))
        result = self._collection.delete_many({self.time_field: {"$lt": cutoff}})
        if result.acknowledged:
            logger.info("Session gc removed %d expired record(s)", result.deleted_count)
        return True

    # Identity rotation

    def find(self, session_id: str) -> SessionRecord | None:
        document = self._collection.find_one({self.id_field: session_id})
        if document is None:
            return None
        return SessionRecord.from_document(
            document,
            id_field=self.id_field,
            data_field=self.data_field,
            time_field=self.time_field,
            created_field=self.created_field,
        )

    def regenerate_identity(
        self,
        existing_id: str,
        destroy_old: bool,
        issue_id: Callable[[], str],
    ) -> str:
        """Move the record for ``existing_id`` to a freshly issued identifier.

        The update is anchored on the record's ``store_key``, never on the id
        field being rewritten. With ``destroy_old`` no row keeps the old id
        afterwards. Otherwise the old id stays readable with its previous
        payload, served by a copy: a new row with its own ``_id`` is inserted
        unless another row still holds the old id. The old id never keeps the
        original ``store_key``.

        Raises UnknownSessionError when ``existing_id`` has no record.
        """
        record = self.find(existing_id)
        if record is None:
            raise UnknownSessionError(f"No session record for {existing_id}")

        new_id = issue_id()

        if destroy_old:
            # The anchored row survives; it leaves the old id in the update below.
            self._collection.delete_many(
                {self.id_field: existing_id, "_id": {"$ne": record.store_key}}
            )

        result = self._collection.update_one(
            {"_id": record.store_key},
            {"$set": {self.id_field: new_id, self.time_field: self._clock()}},
        )
        if result.acknowledged and result.matched_count == 0:
            raise UnknownSessionError(
                f"Session record for {existing_id} disappeared during regeneration"
            )

        if not destroy_old:
            # Inserts a snapshot only when no other row holds the old id.
            self._collection.update_one(
                {self.id_field: existing_id},
                {
                    "$setOnInsert": {
                        self.data_field: record.data,
                        self.time_field: record.last_touched_at or self._clock(),
                        self.created_field: record.created_at or self._clock(),
                    }
                },
                upsert=True,
            )

        logger.info("Regenerated session id (destroy_old=%s)", destroy_old)
        return new_id
