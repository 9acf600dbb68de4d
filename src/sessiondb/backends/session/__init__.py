"""Session storage backends (mongodb)."""

from sessiondb.backends.session.mongodb import MongoSessionStore

__all__ = ["MongoSessionStore"]
