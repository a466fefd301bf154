from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

from .errors import SeedUnavailable

SQLITE_HEADER = b"SQLite format 3\x00"


def build_image(schema_sql: str) -> bytes:
    """Execute `schema_sql` into a fresh in-memory database and return its image."""
    conn = sqlite3.connect(":memory:")
    try:
        conn.executescript(schema_sql)
        conn.commit()
        return conn.serialize()
    finally:
        conn.close()


def _read_seed(path: Path) -> bytes:
    if not path.is_file():
        raise SeedUnavailable(f"seed not found: {path}")
    try:
        if path.suffix.lower() == ".sql":
            return build_image(path.read_text(encoding="utf-8"))
        data = path.read_bytes()
    except (OSError, UnicodeDecodeError, sqlite3.Error) as e:
        raise SeedUnavailable(f"seed unreadable: {path}: {e}") from e
    if not data.startswith(SQLITE_HEADER):
        raise SeedUnavailable(f"seed is not an SQLite image: {path}")
    return data


async def load_seed(locator: Path | str) -> bytes:
    """
    Load the seed image named by `locator`.

    `*.sql` files are built into an image on the fly; anything else must be a
    ready-made SQLite database file. Raises SeedUnavailable on any failure.
    """
    return await asyncio.to_thread(_read_seed, Path(locator))
