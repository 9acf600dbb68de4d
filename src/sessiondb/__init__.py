"""sessiondb — MongoDB persistence for web-session records.

File guide
----------
settings.py                   Configuration (sessiondb.yaml, .env)
session.py                    SessionHandler contract, NativeSession wrapper, store factory
record.py                     SessionRecord (typed view of a stored document)
exceptions.py                 Error taxonomy
backends/session/mongodb.py   MongoSessionStore (the six hooks + identity rotation)
cli.py                        Maintenance commands (gc, ensure-indexes, config)

Public API
----------
- ``MongoSessionStore``    — session handler backed by one MongoDB collection
- ``NativeSession``        — framework-facing lifecycle wrapper
- ``create_session_store`` — store built from configuration
"""

from sessiondb.backends.session.mongodb import MongoSessionStore
from sessiondb.exceptions import (
    SessionConfigurationError,
    SessionError,
    SessionNotStartedError,
    UnknownSessionError,
)
from sessiondb.record import SessionRecord
from sessiondb.session import (
    NativeSession,
    SessionHandler,
    SessionState,
    create_session_store,
)

__all__ = [
    "MongoSessionStore",
    "NativeSession",
    "SessionConfigurationError",
    "SessionError",
    "SessionHandler",
    "SessionNotStartedError",
    "SessionRecord",
    "SessionState",
    "UnknownSessionError",
    "create_session_store",
]
