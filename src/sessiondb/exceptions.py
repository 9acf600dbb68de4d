"""Exceptions raised by sessiondb.

Store-call failures are not wrapped: ``pymongo.errors.PyMongoError`` reaches
the caller unchanged.
"""

from __future__ import annotations


class SessionError(Exception):
    """Base class for sessiondb errors."""


class SessionConfigurationError(SessionError, ValueError):
    """A required option is missing or a configured value is invalid."""


class UnknownSessionError(SessionError, LookupError):
    """No session record backs the requested identifier."""


class SessionNotStartedError(SessionError, RuntimeError):
    """A session operation was attempted before ``start()``."""
