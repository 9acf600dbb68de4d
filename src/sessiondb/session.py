"""Session handler contract and the framework-facing session wrapper.

Storage is delegated to a ``SessionHandler``: six lifecycle hooks the
wrapper drives (open, close, read, write, destroy, gc). Handlers that can
rotate identifiers themselves also implement ``regenerate_identity``.

Usage:
    # sessiondb.yaml
    session:
      database: app
      collection: sessions
      lifetime: 1440
    mongo:
      url: mongodb://localhost:27017

    # Or via environment variables
    SESSION_MONGO_URL=mongodb://localhost:27017
    SESSION_DATABASE=app
    SESSION_COLLECTION=sessions

    store = create_session_store()
    session = NativeSession(store)
    session_id = session.start(cookie_value)
    session.data = serialize(state)
    session.close()
"""
from __future__ import annotations

import logging
import os
import secrets
from collections.abc import Callable
from dataclasses import replace
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pymongo import MongoClient

from sessiondb.backends.session.mongodb import MongoSessionStore, check_required_options
from sessiondb.exceptions import SessionError, SessionNotStartedError, UnknownSessionError
from sessiondb.settings import SessionConfig, Settings, load_settings

logger = logging.getLogger(__name__)


class SessionHandler(Protocol):
    """Interface for session record storage."""

    def open(self, path: str | None, name: str | None) -> bool:
        """Prepare storage for a session. Returns False to refuse the session."""
        ...

    def close(self) -> bool:
        ...

    def read(self, session_id: str) -> str:
        """Get the payload for session_id. Unknown ids yield an empty payload."""
        ...

    def write(self, session_id: str, data: str) -> bool:
        """Persist the payload. Returns False if nothing was stored."""
        ...

    def destroy(self, session_id: str) -> bool:
        """Remove the session. Removing nothing still succeeds."""
        ...

    def gc(self, lifetime: int) -> bool:
        """Remove sessions idle for more than lifetime seconds."""
        ...


@runtime_checkable
class RegeneratingHandler(Protocol):
    """Handler that moves a stored session to a new identifier itself."""

    def regenerate_identity(
        self,
        existing_id: str,
        destroy_old: bool,
        issue_id: Callable[[], str],
    ) -> str:
        ...


class SessionState(Enum):
    NOT_STARTED = "not_started"
    STARTED = "started"
    CLOSED = "closed"


def generate_session_id() -> str:
    return secrets.token_hex(16)


class NativeSession:
    """Session lifecycle around a SessionHandler.

    Owns the current identifier, the opaque payload string and the session
    state. The payload format belongs to the caller.
    """

    def __init__(
        self,
        handler: SessionHandler,
        *,
        name: str = "SESSID",
        save_path: str = "",
        lifetime: int = 1440,
        id_factory: Callable[[], str] | None = None,
    ):
        self._handler = handler
        self.name = name
        self.save_path = save_path
        self.lifetime = lifetime
        self._issue_id = id_factory or generate_session_id
        self._state = SessionState.NOT_STARTED
        self._id: str | None = None
        self.data = ""

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def handler(self) -> SessionHandler:
        return self._handler

    def get_id(self) -> str | None:
        return self._id

    def _require_started(self) -> str:
        if self._state is not SessionState.STARTED or self._id is None:
            raise SessionNotStartedError("Session has not been started")
        return self._id

    def start(self, session_id: str | None = None) -> str:
        """Start the session and load its payload. A second call is a no-op."""
        if self._state is SessionState.STARTED and self._id is not None:
            return self._id

        if not self._handler.open(self.save_path, self.name):
            raise SessionError(f"Session handler refused to open session {self.name!r}")

        self._id = session_id or self._issue_id()
        self.data = self._handler.read(self._id)
        self._state = SessionState.STARTED
        return self._id

    def save(self) -> bool:
        session_id = self._require_started()
        return self._handler.write(session_id, self.data)

    def close(self) -> bool:
        """Write the payload and release the handler.

        The handler is released even when the write raises; the error
        still propagates.
        """
        try:
            saved = self.save()
        finally:
            closed = self._handler.close()
            self._state = SessionState.CLOSED
        return saved and closed

    def destroy(self) -> bool:
        """Remove the stored session and end it locally."""
        session_id = self._require_started()
        destroyed = self._handler.destroy(session_id)
        self._handler.close()
        self.data = ""
        self._id = None
        self._state = SessionState.NOT_STARTED
        return destroyed

    def gc(self, lifetime: int | None = None) -> bool:
        return self._handler.gc(self.lifetime if lifetime is None else lifetime)

    def regenerate(self, destroy_old: bool = False) -> bool:
        """Replace the session identifier, keeping the payload.

        Returns False when the stored session no longer exists.
        """
        existing_id = self._require_started()

        if isinstance(self._handler, RegeneratingHandler):
            try:
                new_id = self._handler.regenerate_identity(
                    existing_id, destroy_old, self._issue_id
                )
            except UnknownSessionError as e:
                logger.warning("Session regeneration failed: %s", e)
                return False
            self._id = new_id
            return True

        # Handlers without their own rotation: recreate under the new id.
        new_id = self._issue_id()
        if destroy_old:
            self._handler.destroy(existing_id)
        self._handler.read(new_id)
        self._id = new_id
        return self._handler.write(new_id, self.data)


def _load_settings() -> Settings:
    return load_settings()


def _int_with_default(value: str | None, default: int) -> int:
    """Parse int env values safely with fallback."""
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer value %r, using %d", value, default)
        return default


def resolve_lifetime(settings: Settings | None = None) -> int:
    """Session lifetime in seconds. SESSION_LIFETIME > sessiondb.yaml > default."""
    settings = settings or _load_settings()
    return _int_with_default(os.getenv("SESSION_LIFETIME"), settings.session.lifetime)


def resolve_session_options(settings: Settings | None = None) -> SessionConfig:
    """Session options in effect. Precedence: env vars > sessiondb.yaml > defaults."""
    settings = settings or _load_settings()
    session_cfg = settings.session
    return replace(
        session_cfg,
        database=os.getenv("SESSION_DATABASE") or session_cfg.database,
        collection=os.getenv("SESSION_COLLECTION") or session_cfg.collection,
        id_field=os.getenv("SESSION_ID_FIELD") or session_cfg.id_field,
        data_field=os.getenv("SESSION_DATA_FIELD") or session_cfg.data_field,
        time_field=os.getenv("SESSION_TIME_FIELD") or session_cfg.time_field,
        created_field=os.getenv("SESSION_CREATED_FIELD") or session_cfg.created_field,
        lifetime=resolve_lifetime(settings),
    )


def create_session_store(client: Any | None = None) -> MongoSessionStore:
    """Factory to create the MongoDB session store from config.

    Options come from resolve_session_options. Missing database or
    collection names raise SessionConfigurationError before any connection
    is made.
    """
    settings = _load_settings()
    options = resolve_session_options(settings)
    check_required_options(options.database, options.collection)

    if client is None:
        url = (
            os.getenv("SESSION_MONGO_URL")
            or os.getenv("MONGO_URL")
            or settings.mongo.url
        )
        timeout_ms = _int_with_default(os.getenv("SESSION_TIMEOUT_MS"), settings.mongo.timeout_ms)
        # MongoClient connects in the background; construction does no I/O.
        client = MongoClient(
            url,
            tz_aware=True,
            serverSelectionTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )

    return MongoSessionStore(
        client,
        database_name=options.database,
        collection_name=options.collection,
        id_field=options.id_field,
        data_field=options.data_field,
        time_field=options.time_field,
        created_field=options.created_field,
    )
