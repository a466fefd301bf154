from __future__ import annotations

import logging
import sqlite3
from typing import Iterable

logger = logging.getLogger(__name__)

# A cached snapshot missing any of these is discarded and the seed reloaded.
# Add table names here when the schema evolves.
REQUIRED_TABLES = ("company", "days", "sales", "settings")


def existing_tables(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return [r[0] for r in rows]


def is_current(conn: sqlite3.Connection, required: Iterable[str] = REQUIRED_TABLES) -> bool:
    """True when every required table exists. Extra tables are allowed."""
    try:
        existing = set(existing_tables(conn))
    except sqlite3.DatabaseError as e:
        logger.warning("Snapshot is not a readable database: %s", e)
        return False
    missing = [t for t in required if t not in existing]
    if missing:
        logger.info("Snapshot missing tables: %s", ", ".join(missing))
        return False
    return True
