"""Durable storage adapters."""

from .session_store import SqliteSessionPersistence

__all__ = ["SqliteSessionPersistence"]
