from __future__ import annotations

# gasledger/engine.py
import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, NamedTuple, Sequence

from .errors import InvalidSnapshot, NotInitialized, SeedUnavailable, TransactionFailure
from .providers.blob_store import BlobStore
from .schema_guard import REQUIRED_TABLES, is_current
from .seed import load_seed

logger = logging.getLogger(__name__)


class Statement(NamedTuple):
    sql: str
    params: Sequence[Any] = ()


@dataclass(frozen=True)
class WriteResult:
    rows_changed: int
    last_insert_id: int | None


@dataclass(frozen=True)
class _Step:
    result: WriteResult | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def open_image(data: bytes) -> sqlite3.Connection:
    """Load a full database image into a new in-memory connection."""
    conn = sqlite3.connect(":memory:", check_same_thread=False, isolation_level=None)
    try:
        conn.deserialize(bytes(data))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
    except sqlite3.Error as e:
        conn.close()
        raise InvalidSnapshot(f"unreadable database image: {e}") from e
    return conn


def _as_statement(op: Statement | str | Sequence[Any]) -> Statement:
    if isinstance(op, str):
        return Statement(op)
    sql, *rest = op
    return Statement(sql, tuple(rest[0]) if rest else ())


class Engine:
    """
    Owner of the live database handle.

    The whole database lives in memory; after every committed write the full
    image is stored in the BlobStore (no write-ahead log). The dirty flag
    records "memory changed since the last stored image" and gates persist().
    """

    def __init__(
        self,
        store: BlobStore,
        blob_key: str = "gas.db",
        required_tables: Iterable[str] = REQUIRED_TABLES,
    ):
        self._store = store
        self._blob_key = blob_key
        self._required = tuple(required_tables)
        self._conn: sqlite3.Connection | None = None
        self._dirty = False
        # bumped on every committed change; persist() only clears dirty when
        # no write landed while the store write was suspended
        self._generation = 0
        # overlapping init() calls must build a single handle
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._conn is not None

    @property
    def dirty(self) -> bool:
        return self._dirty

    def _require(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotInitialized("database not initialised; call Engine.init() first")
        return self._conn

    # ---------- init ----------

    async def init(self, seed_locator: Path | str) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        async with self._init_lock:
            if self._conn is not None:
                return self._conn
            return await self._load(seed_locator)

    async def _load(self, seed_locator: Path | str) -> sqlite3.Connection:
        saved = await self._store.get(self._blob_key)
        if saved is not None:
            candidate = self._try_open(saved)
            if candidate is not None and is_current(candidate, self._required):
                self._adopt(candidate)
                logger.info("Loaded snapshot from store, schema current")
                return candidate
            if candidate is not None:
                candidate.close()
            logger.warning("Stored snapshot outdated or unreadable, reloading seed")
            conn = await self._reseed(seed_locator)
            logger.info("Reloaded database from seed")
            return conn

        conn = await self._reseed(seed_locator)
        logger.info("First run, seed database loaded")
        return conn

    @staticmethod
    def _try_open(data: bytes) -> sqlite3.Connection | None:
        try:
            return open_image(data)
        except InvalidSnapshot as e:
            logger.warning("%s", e)
            return None

    async def _reseed(self, seed_locator: Path | str) -> sqlite3.Connection:
        image = await load_seed(seed_locator)
        try:
            conn = open_image(image)
        except InvalidSnapshot as e:
            raise SeedUnavailable(str(e)) from e
        if not is_current(conn, self._required):
            conn.close()
            raise SeedUnavailable(f"seed {seed_locator} lacks required tables {self._required}")
        try:
            await self._store.put(self._blob_key, conn.serialize())
        except BaseException:
            conn.close()
            raise
        self._adopt(conn)
        return conn

    def _adopt(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._dirty = False

    # ---------- reads ----------

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict]:
        """Run a read-only statement and return rows as dicts, in result order."""
        conn = self._require()
        conn.execute("PRAGMA query_only = ON;")
        try:
            rows = conn.execute(sql, tuple(params)).fetchall()
        finally:
            conn.execute("PRAGMA query_only = OFF;")
        return [dict(r) for r in rows]

    # ---------- writes ----------

    @staticmethod
    def _execute(conn: sqlite3.Connection, sql: str, params: Sequence[Any]) -> WriteResult:
        cur = conn.execute(sql, tuple(params))
        changed = max(cur.rowcount, 0)
        is_insert = sql.lstrip().upper().startswith(("INSERT", "REPLACE"))
        last_id = cur.lastrowid if is_insert and changed else None
        cur.close()
        return WriteResult(rows_changed=changed, last_insert_id=last_id)

    def _mark_dirty(self) -> None:
        self._dirty = True
        self._generation += 1

    async def run(self, sql: str, params: Sequence[Any] = ()) -> WriteResult:
        """Execute one write statement and persist the new image."""
        conn = self._require()
        result = self._execute(conn, sql, params)
        self._mark_dirty()
        await self.persist()
        return result

    def _write_in_tx(self, conn: sqlite3.Connection, op: Statement) -> _Step:
        # no persist here; the transaction persists once after COMMIT
        try:
            return _Step(result=self._execute(conn, op.sql, op.params))
        except Exception as e:
            # sqlite3 errors and parameter binding errors (e.g. OverflowError)
            return _Step(error=e)

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK;")

    async def transaction(self, operations: Iterable[Statement | str]) -> list[WriteResult]:
        """
        Apply `operations` atomically.

        On the first failing statement everything is rolled back, the dirty
        flag keeps its previous value and TransactionFailure is raised.
        An empty list is a no-op and stores nothing.
        """
        conn = self._require()
        ops = [_as_statement(op) for op in operations]
        if not ops:
            return []
        conn.execute("BEGIN;")
        results: list[WriteResult] = []
        try:
            for index, op in enumerate(ops):
                step = self._write_in_tx(conn, op)
                if not step.ok:
                    self._rollback(conn)
                    logger.warning("Transaction rolled back at operation %d: %s", index, step.error)
                    raise TransactionFailure(index, step.error) from step.error
                results.append(step.result)
            try:
                conn.execute("COMMIT;")
            except sqlite3.Error as e:
                self._rollback(conn)
                logger.warning("Transaction commit failed: %s", e)
                raise TransactionFailure(len(ops), e) from e
        except BaseException:
            self._rollback(conn)
            raise
        self._mark_dirty()
        await self.persist()
        return results

    # ---------- persistence ----------

    async def persist(self) -> bool:
        """Store the current image if dirty. Returns True when a store write happened."""
        if self._conn is None or not self._dirty:
            return False
        generation = self._generation
        await self._store.put(self._blob_key, self._conn.serialize())
        if generation == self._generation:
            self._dirty = False
        return True

    def export_snapshot(self) -> bytes:
        return self._require().serialize()

    async def restore_snapshot(self, data: bytes) -> None:
        """Replace the live database with `data` and store it."""
        candidate = open_image(data)
        if not is_current(candidate, self._required):
            candidate.close()
            raise InvalidSnapshot(f"backup lacks required tables {self._required}")
        if self._conn is not None:
            self._conn.close()
        self._conn = candidate
        self._mark_dirty()
        await self.persist()
        logger.info("Database restored from backup image")

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
        self._conn = None
        self._dirty = False
