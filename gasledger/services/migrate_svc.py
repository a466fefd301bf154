# gasledger/services/migrate_svc.py
"""
One-time import of the predecessor key/value store into the ledger schema.

Old keys:
  dailySales_YYYY-MM-DD  -> CSV string (historical days)
  salesChunk_0, _1 ...   -> list of {gas, price, comments} (today's live rows)
  salesMeta              -> {unitPrice, newStock, lastUpdated}

The run is idempotent: days already present are skipped, and a marker
setting stops any later run. A bad record is logged and skipped; the marker
is set at the end regardless, so a flaky source is never re-imported.
"""
from __future__ import annotations

import logging
import math
import sqlite3
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

from ..domain.legacy_csv import parse_daily_csv
from ..domain.money import line_amount, round_amount, round_kg
from ..engine import Engine
from ..errors import LegacyStoreUnavailable, TransactionFailure
from ..logs import LogContext, ensure_log_schema
from ..providers.legacy_store import LegacyStore
from ..repository import day_repo, sale_repo
from .config_svc import MIGRATION_DONE_KEY, get_setting, save_setting
from .utils import is_iso_date, to_float_safe, today_iso

logger = logging.getLogger(__name__)

DAILY_PREFIX = "dailySales_"
CHUNK_PREFIX = "salesChunk_"
META_KEY = "salesMeta"

# data problems in one record; decimal.InvalidOperation is an ArithmeticError
BAD_RECORD_ERRORS = (ValueError, ArithmeticError)


@dataclass
class ImportResult:
    migrated_days: int = 0
    migrated_sales: int = 0
    skipped_days: int = 0
    skipped: bool = False

    def to_dict(self) -> dict:
        if self.skipped:
            return {"skipped": True}
        out = asdict(self)
        out.pop("skipped")
        return out


def split_keys(keys: list[str]) -> tuple[list[tuple[str, str]], list[tuple[int, str]]]:
    """
    Partition legacy keys into (date, key) pairs sorted by date and
    (index, key) pairs sorted by numeric index. Other keys are ignored.
    """
    daily: list[tuple[str, str]] = []
    chunks: list[tuple[int, str]] = []
    for key in keys:
        if key.startswith(DAILY_PREFIX):
            date = key[len(DAILY_PREFIX):]
            if is_iso_date(date):
                daily.append((date, key))
            else:
                logger.info("Ignoring legacy key with bad date: %s", key)
        elif key.startswith(CHUNK_PREFIX):
            raw = key[len(CHUNK_PREFIX):]
            if raw.isdigit():
                chunks.append((int(raw), key))
            else:
                logger.info("Ignoring legacy chunk key: %s", key)
    daily.sort()
    chunks.sort()
    return daily, chunks


def _positive(x: Any) -> float:
    v = to_float_safe(x, 0.0)
    return v if v and v > 0 and math.isfinite(v) else 0.0


class LegacyImporter:
    def __init__(
        self,
        engine: Engine,
        open_store: Callable[[], LegacyStore],
        today: Callable[[], str] = today_iso,
    ):
        self.engine = engine
        self.open_store = open_store
        self.today = today
        self._progress: Optional[Callable[[str], None]] = None

    def is_done(self) -> bool:
        return get_setting(self.engine, MIGRATION_DONE_KEY) == "1"

    def _log(self, msg: str, *args) -> None:
        logger.info(msg, *args)
        if self._progress:
            self._progress(msg % args if args else msg)

    async def _mark_done(self) -> None:
        await save_setting(self.engine, MIGRATION_DONE_KEY, "1")

    async def run(self, on_progress: Optional[Callable[[str], None]] = None) -> ImportResult:
        self._progress = on_progress
        if self.is_done():
            self._log("Migration already completed, skipping.")
            return ImportResult(skipped=True)

        log = LogContext("MIGRATE_LEGACY")
        result = ImportResult()
        try:
            store = self.open_store()
            keys = await store.keys()
        except LegacyStoreUnavailable as e:
            self._log("Old store not found, nothing to migrate (%s).", e)
            await self._mark_done()
            await self._record(log, result, "NO_SOURCE")
            return result

        if not keys:
            self._log("Old store is empty, nothing to migrate.")
            await self._mark_done()
            await self._record(log, result, "NO_SOURCE")
            return result

        daily, chunks = split_keys(keys)
        self._log("Found %d keys: %d daily records, %d chunk keys.", len(keys), len(daily), len(chunks))

        for date, key in daily:
            try:
                await self._import_day(store, date, key, result)
            except BAD_RECORD_ERRORS as e:
                self._log("Skipping %s, bad values (%s).", date, e)

        if chunks:
            try:
                await self._import_live_chunks(store, chunks, result)
            except BAD_RECORD_ERRORS as e:
                self._log("Skipping live chunks, bad values (%s).", e)

        await self._mark_done()
        self._log("Done: %d days, %d sales migrated, %d days skipped.",
                  result.migrated_days, result.migrated_sales, result.skipped_days)
        await self._record(log, result, "OK")
        return result

    async def _record(self, log: LogContext, result: ImportResult, outcome: str) -> None:
        await ensure_log_schema(self.engine)
        log.set_after(result.to_dict())
        await log.write(self.engine, outcome)

    async def _import_day(self, store: LegacyStore, date: str, key: str, result: ImportResult) -> None:
        if day_repo.get_by_date(self.engine, date):
            self._log("Skipping %s, already in the ledger.", date)
            result.skipped_days += 1
            return

        csv_text = await store.get_item(key)
        if not csv_text or not isinstance(csv_text, str):
            self._log("Skipping %s, empty or invalid CSV.", date)
            return

        parsed = parse_daily_csv(csv_text)
        if parsed is None or not parsed.sales:
            self._log("Skipping %s, no valid sales rows.", date)
            return

        rows = [(s.seq, round_kg(s.kg), round_amount(s.price), s.comments) for s in parsed.sales]
        if await self._insert_day(date, max(0.0, parsed.opening_stock), parsed.unit_price, rows, result):
            self._log("Migrated %s, %d entries.", date, len(rows))

    async def _import_live_chunks(self, store: LegacyStore, chunks: list[tuple[int, str]], result: ImportResult) -> None:
        today = self.today()
        if day_repo.get_by_date(self.engine, today):
            self._log("Today (%s) already in the ledger, live chunks not imported.", today)
            return

        meta = await store.get_item(META_KEY)
        meta = meta if isinstance(meta, dict) else {}
        unit_price = _positive(meta.get("unitPrice"))
        opening_stock = _positive(meta.get("newStock"))

        entries: list[dict] = []
        for _, key in chunks:
            chunk = await store.get_item(key)
            if isinstance(chunk, list):
                entries.extend(e for e in chunk if isinstance(e, dict))

        valid = [e for e in entries if _positive(e.get("gas")) > 0]
        if not valid:
            self._log("Live chunks hold no sales for today.")
            return

        rows = []
        for seq, e in enumerate(valid, start=1):
            kg = round_kg(_positive(e.get("gas")))
            price = _positive(e.get("price"))
            price = round_amount(price) if price else line_amount(kg, unit_price)
            rows.append((seq, kg, price, str(e.get("comments") or "")))

        if await self._insert_day(today, opening_stock, unit_price, rows, result):
            self._log("Migrated today (%s) from live chunks, %d entries.", today, len(rows))

    async def _insert_day(self, date: str, opening_stock: float, unit_price: float, rows: list, result: ImportResult) -> bool:
        """Insert one day and its sales atomically. False when the day was not imported."""
        ops = [day_repo.insert_stmt(date, opening_stock, unit_price)]
        ops.extend(sale_repo.insert_for_date_stmt(date, *row) for row in rows)
        try:
            await self.engine.transaction(ops)
        except TransactionFailure as e:
            if isinstance(e.cause, sqlite3.IntegrityError) and day_repo.get_by_date(self.engine, date):
                self._log("Skipping %s, created while importing.", date)
                result.skipped_days += 1
            else:
                logger.warning("Failed to import %s: %s", date, e.cause)
                self._log("Skipping %s, rows rejected by the database.", date)
            return False
        result.migrated_days += 1
        result.migrated_sales += len(rows)
        return True


def migration_status(engine: Engine) -> dict:
    return {"done": get_setting(engine, MIGRATION_DONE_KEY) == "1"}
