"""
User document store.

One row per user. The user's bank records live inside a JSON document
column; the username is indexed case-insensitively through a lowercased
key column with a UNIQUE constraint.

Every write bumps a ``version`` column and is issued as a compare-and-swap
(``WHERE id = ? AND version = ?``) so that two read-modify-write sequences
against the same user cannot silently overwrite each other.

Lifecycle is explicit:

    store = UserStore("data/lockbox.db")
    store.open()
    ...
    store.close()

or ``with UserStore(path) as store: ...``.
"""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.db import connect as db_connect
from ..exceptions import ConcurrentModificationError, StorageError, UsernameTaken

logger = logging.getLogger(__name__)

# Fields kept in dedicated columns rather than inside the JSON document
_COLUMN_FIELDS = ("id", "username", "version", "createdAt", "updatedAt")


def username_key(username: str) -> str:
    """Normalised lookup key for case-insensitive username matching."""
    return username.lower()


class UserStore:
    """SQLite-backed document store for User documents.

    Documents are plain dicts shaped like::

        {
            "id": "...", "username": "...", "masterPassword": "<blob>",
            "banks": [{...}, ...], "version": 3,
            "createdAt": "...", "updatedAt": "...",
        }

    Args:
        db_path: Path to the SQLite file, or ":memory:".
    """

    def __init__(self, db_path: str):
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    # ── Lifecycle ────────────────────────────────────────────────────

    def open(self) -> "UserStore":
        """Connect and create the schema if needed. Idempotent."""
        with self._lock:
            if self._conn is not None:
                return self
            try:
                # One connection shared by FastAPI's worker threads, serialized by _lock
                self._conn = db_connect(self.db_path, row_factory=True, check_same_thread=False)
                self._init_schema()
            except (sqlite3.Error, OSError) as e:
                self._conn = None
                logger.error(f"Failed to open user store at {self.db_path}: {e}")
                raise StorageError(f"Failed to open user store: {e}") from e
            logger.info(f"User store opened: {self.db_path}")
            return self

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("User store closed")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> "UserStore":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                username TEXT NOT NULL,
                username_key TEXT NOT NULL UNIQUE,
                document TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("User store is not open. Call open() first.")
        return self._conn

    # ── Reads ────────────────────────────────────────────────────────

    def get_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a user document by id, or None."""
        return self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))

    def get_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        """Fetch a user document by username, ignoring case, or None."""
        return self._fetch_one(
            "SELECT * FROM users WHERE username_key = ?", (username_key(username),)
        )

    def _fetch_one(self, query: str, params: tuple) -> Optional[Dict[str, Any]]:
        with self._lock:
            try:
                row = self._require_conn().execute(query, params).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to read user: {e}") from e
        return self._row_to_document(row) if row else None

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Dict[str, Any]:
        document = json.loads(row["document"])
        document["id"] = row["id"]
        document["username"] = row["username"]
        document["version"] = row["version"]
        document["createdAt"] = row["created_at"]
        document["updatedAt"] = row["updated_at"]
        document.setdefault("banks", [])
        return document

    # ── Writes ───────────────────────────────────────────────────────

    def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new user document.

        Returns:
            The stored document (with version and timestamps filled in)

        Raises:
            UsernameTaken: If the username (ignoring case) already exists
        """
        now = datetime.utcnow().isoformat()
        body = self._document_body(document)
        with self._lock:
            conn = self._require_conn()
            try:
                conn.execute(
                    """INSERT INTO users
                       (id, username, username_key, document, version, created_at, updated_at)
                       VALUES (?, ?, ?, ?, 1, ?, ?)""",
                    (
                        document["id"],
                        document["username"],
                        username_key(document["username"]),
                        json.dumps(body),
                        now,
                        now,
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise UsernameTaken() from e
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageError(f"Failed to insert user: {e}") from e

        stored = dict(document)
        stored.update({"version": 1, "createdAt": now, "updatedAt": now})
        stored.setdefault("banks", [])
        return stored

    def replace(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Write back a document previously read from this store.

        The write only applies if nobody else wrote the user since it was
        read (``document["version"]`` still matches).

        Raises:
            ConcurrentModificationError: If the stored version moved on
        """
        now = datetime.utcnow().isoformat()
        expected = document["version"]
        with self._lock:
            conn = self._require_conn()
            try:
                cur = conn.execute(
                    """UPDATE users
                       SET document = ?, version = version + 1, updated_at = ?
                       WHERE id = ? AND version = ?""",
                    (json.dumps(self._document_body(document)), now, document["id"], expected),
                )
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageError(f"Failed to update user: {e}") from e

        if cur.rowcount == 0:
            logger.warning(
                f"Version conflict writing user {document['id']} (expected version {expected})"
            )
            raise ConcurrentModificationError()

        stored = dict(document)
        stored.update({"version": expected + 1, "updatedAt": now})
        return stored

    @staticmethod
    def _document_body(document: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in document.items() if k not in _COLUMN_FIELDS}

