"""SQLite-backed session persistence with a versioned envelope."""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from agentura.session.models import SESSION_VERSION

LOGGER = logging.getLogger(__name__)


class SqliteSessionPersistence:
    """Save/load serialized session state for one session id.

    Each row records the schema version it was written with. Loading a row
    with a different version deletes it and reports nothing saved.
    """

    def __init__(self, db_path: str = "data/sessions.db", session_id: str = "default", version: int = SESSION_VERSION):
        """Initialize the persistence adapter.

        Args:
            db_path: Path to SQLite database file
            session_id: Key of the session row to read and write
            version: Schema version stamped on saved state
        """
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        self.db_path = db_path
        self.session_id = session_id
        self.version = version
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self) -> None:
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    version INTEGER NOT NULL,
                    state_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def save(self, serialized: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        conn = self._connect()
        try:
            conn.execute(
                """INSERT INTO sessions (session_id, version, state_json, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(session_id) DO UPDATE SET
                       version = excluded.version,
                       state_json = excluded.state_json,
                       updated_at = excluded.updated_at""",
                (self.session_id, self.version, serialized, now, now),
            )
            conn.commit()
        finally:
            conn.close()
        LOGGER.debug(f"Saved session {self.session_id} ({len(serialized)} chars)")

    def load(self) -> Optional[str]:
        """Return the saved state, or None when absent or written by another version."""

        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT version, state_json FROM sessions WHERE session_id = ?",
                (self.session_id,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        version, state_json = row
        if version != self.version:
            LOGGER.warning(
                f"Discarding session {self.session_id}: saved with version {version}, expected {self.version}"
            )
            self.delete()
            return None
        return state_json

    def delete(self) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM sessions WHERE session_id = ?", (self.session_id,))
            conn.commit()
        finally:
            conn.close()

    def list_sessions(self) -> List[tuple]:
        """List (session_id, version, updated_at) for all saved sessions."""

        conn = self._connect()
        try:
            return conn.execute(
                "SELECT session_id, version, updated_at FROM sessions ORDER BY updated_at DESC"
            ).fetchall()
        finally:
            conn.close()
