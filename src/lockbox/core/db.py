# Core - SQLite Connection Helper
#
# Every Lockbox SQLite connection is opened through `connect()` so the
# PRAGMAs are consistent:
#
#   - WAL journal mode (concurrent readers + one writer)
#   - busy_timeout to avoid SQLITE_BUSY under contention
#   - foreign_keys enforcement on every connection
#
# `parse_database_url()` turns the configured connection string into the
# path sqlite3 expects.

import sqlite3
from pathlib import Path
from typing import Union

MEMORY_DATABASE = ":memory:"
SQLITE_SCHEME = "sqlite:///"


def parse_database_url(url: str) -> str:
    """Translate a connection string into a sqlite3 database path.

    Accepted forms:
        sqlite:///relative/or/absolute/path.db
        sqlite:///:memory:
        /plain/path.db  (no scheme)

    Raises:
        ValueError: For empty strings or unsupported schemes.
    """
    url = (url or "").strip()
    if not url:
        raise ValueError("Database URL is empty")

    if url.startswith(SQLITE_SCHEME):
        path = url[len(SQLITE_SCHEME):]
        if not path:
            raise ValueError(f"Database URL has no path: {url}")
        return path

    if "://" in url:
        raise ValueError(f"Unsupported database URL scheme: {url.split('://', 1)[0]}")

    return url


def connect(
    db_path: Union[str, Path],
    *,
    row_factory: bool = False,
    check_same_thread: bool = True,
) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode and safe PRAGMAs.

    Args:
        db_path: Path to the database file, or ":memory:".
        row_factory: If True, set conn.row_factory = sqlite3.Row.
        check_same_thread: Passed to sqlite3.connect().

    Returns:
        sqlite3.Connection with WAL mode (file databases only),
        busy_timeout, and foreign_keys.
    """
    db_path = str(db_path)
    if db_path != MEMORY_DATABASE:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=check_same_thread)
    if db_path != MEMORY_DATABASE:
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA foreign_keys=ON")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn
