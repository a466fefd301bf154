from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

import pytest

from gasledger.db import DEFAULT_SEED
from gasledger.engine import Engine, Statement
from gasledger.errors import InvalidSnapshot, NotInitialized, SeedUnavailable, TransactionFailure
from gasledger.providers.blob_store import FileBlobStore, MemoryBlobStore
from gasledger.seed import build_image


def _insert_day(date, stock=0, price=0):
    return Statement("INSERT INTO days(date, opening_stock, unit_price) VALUES(?,?,?)", (date, stock, price))


def test_first_init_loads_seed_and_persists_it(store):
    eng = Engine(store)
    conn = asyncio.run(eng.init(DEFAULT_SEED))
    assert conn is not None
    assert store.writes == 1
    assert asyncio.run(store.get("gas.db")) is not None
    assert eng.query("SELECT id FROM company") == [{"id": 1}]


def test_second_init_returns_same_handle_without_side_effects(engine, store):
    writes = store.writes
    first = asyncio.run(engine.init(DEFAULT_SEED))
    second = asyncio.run(engine.init("/nonexistent/seed.sql"))
    assert first is second
    assert store.writes == writes


def test_operations_before_init_raise_not_initialized():
    eng = Engine(MemoryBlobStore())
    with pytest.raises(NotInitialized):
        eng.query("SELECT 1")
    with pytest.raises(NotInitialized):
        asyncio.run(eng.run("DELETE FROM days"))
    with pytest.raises(NotInitialized):
        asyncio.run(eng.transaction(["DELETE FROM days"]))
    with pytest.raises(NotInitialized):
        eng.export_snapshot()


def test_query_returns_dicts_in_order_and_empty_list(engine):
    asyncio.run(engine.transaction([_insert_day("2026-01-02"), _insert_day("2026-01-01")]))
    rows = engine.query("SELECT date FROM days ORDER BY date")
    assert rows == [{"date": "2026-01-01"}, {"date": "2026-01-02"}]
    assert engine.query("SELECT * FROM days WHERE date=?", ("1999-01-01",)) == []


def test_query_is_read_only(engine, store):
    with pytest.raises(sqlite3.DatabaseError):
        engine.query("INSERT INTO days(date) VALUES('2026-01-01')")
    assert engine.query("SELECT COUNT(1) AS c FROM days")[0]["c"] == 0
    # writes still work afterwards
    res = asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-01')"))
    assert res.rows_changed == 1


def test_run_reports_changes_and_persists(engine, store):
    writes = store.writes
    res = asyncio.run(engine.run("INSERT INTO days(date, opening_stock, unit_price) VALUES(?,?,?)", ("2026-01-01", 10, 5)))
    assert res.rows_changed == 1
    assert res.last_insert_id is not None
    assert store.writes == writes + 1
    assert engine.dirty is False

    upd = asyncio.run(engine.run("UPDATE days SET unit_price=7"))
    assert upd.rows_changed == 1
    assert upd.last_insert_id is None


def test_run_failure_propagates_and_leaves_state(engine, store):
    asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-01')"))
    writes = store.writes
    with pytest.raises(sqlite3.IntegrityError):
        asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-01')"))
    assert engine.dirty is False
    assert store.writes == writes


def test_two_persists_write_once(engine, store):
    # a failed store write leaves the image dirty
    store.fail_next = 1
    with pytest.raises(OSError):
        asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-01')"))
    assert engine.dirty is True
    writes = store.writes

    assert asyncio.run(engine.persist()) is True
    assert asyncio.run(engine.persist()) is False
    assert store.writes == writes + 1
    assert engine.dirty is False


def test_transaction_commits_and_persists_once(engine, store):
    writes = store.writes
    results = asyncio.run(engine.transaction([
        _insert_day("2026-01-01"),
        _insert_day("2026-01-02"),
        "UPDATE days SET unit_price = 100",
    ]))
    assert [r.rows_changed for r in results] == [1, 1, 2]
    assert store.writes == writes + 1
    assert engine.query("SELECT COUNT(1) AS c FROM days")[0]["c"] == 2


def test_transaction_failure_rolls_back_everything(engine, store):
    asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-05')"))
    writes = store.writes
    with pytest.raises(TransactionFailure) as exc:
        asyncio.run(engine.transaction([
            _insert_day("2026-01-01"),
            _insert_day("2026-01-05"),  # duplicate date
            _insert_day("2026-01-06"),
        ]))
    assert exc.value.index == 1
    assert isinstance(exc.value.cause, sqlite3.IntegrityError)
    assert engine.query("SELECT date FROM days") == [{"date": "2026-01-05"}]
    assert engine.dirty is False
    assert store.writes == writes


def test_transaction_failure_keeps_previous_dirty_flag(engine, store):
    store.fail_next = 1
    with pytest.raises(OSError):
        asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-01')"))
    assert engine.dirty is True
    with pytest.raises(TransactionFailure):
        asyncio.run(engine.transaction([_insert_day("2026-01-02"), "INSERT INTO nope VALUES (1)"]))
    assert engine.dirty is True
    assert engine.query("SELECT date FROM days") == [{"date": "2026-01-01"}]


def test_transaction_rolls_back_on_unbindable_parameter(engine, store):
    writes = store.writes
    with pytest.raises(TransactionFailure) as exc:
        asyncio.run(engine.transaction([
            _insert_day("2026-01-01"),
            _insert_day("2026-01-02", stock=10**30),
        ]))
    assert exc.value.index == 1
    assert isinstance(exc.value.cause, OverflowError)
    assert engine.query("SELECT date FROM days") == []
    assert store.writes == writes

    # the connection is not left inside an open transaction
    asyncio.run(engine.transaction([_insert_day("2026-01-03")]))
    assert engine.query("SELECT date FROM days") == [{"date": "2026-01-03"}]


def test_empty_transaction_stores_nothing(engine, store):
    writes = store.writes
    assert asyncio.run(engine.transaction([])) == []
    assert engine.dirty is False
    assert store.writes == writes


class _SlowStore(MemoryBlobStore):
    def __init__(self):
        super().__init__()
        self.gets = 0

    async def get(self, key):
        self.gets += 1
        await asyncio.sleep(0.01)
        return await super().get(key)


def test_overlapping_init_builds_one_handle():
    store = _SlowStore()
    eng = Engine(store)

    async def both():
        return await asyncio.gather(eng.init(DEFAULT_SEED), eng.init(DEFAULT_SEED))

    first, second = asyncio.run(both())
    assert first is second
    assert store.gets == 1
    assert store.writes == 1
    eng.close()


def test_reload_from_store_keeps_data(store):
    first = Engine(store)
    asyncio.run(first.init(DEFAULT_SEED))
    asyncio.run(first.run("INSERT INTO days(date, opening_stock) VALUES('2026-01-01', 50)"))
    first.close()

    second = Engine(store)
    asyncio.run(second.init(DEFAULT_SEED))
    assert second.query("SELECT opening_stock FROM days") == [{"opening_stock": 50.0}]


def test_outdated_snapshot_is_replaced_by_seed():
    old = build_image(
        "CREATE TABLE company (id INTEGER PRIMARY KEY);"
        "CREATE TABLE days (id INTEGER PRIMARY KEY, date TEXT UNIQUE);"
        "CREATE TABLE settings (key TEXT UNIQUE, value TEXT);"
        "INSERT INTO days(date) VALUES ('2020-01-01');"
    )
    store = MemoryBlobStore({"gas.db": old})
    eng = Engine(store)
    asyncio.run(eng.init(DEFAULT_SEED))
    assert store.writes == 1
    assert eng.query("SELECT COUNT(1) AS c FROM days")[0]["c"] == 0
    assert eng.query("SELECT COUNT(1) AS c FROM sales")[0]["c"] == 0


def test_unreadable_snapshot_is_replaced_by_seed():
    store = MemoryBlobStore({"gas.db": b"definitely not sqlite" * 100})
    eng = Engine(store)
    asyncio.run(eng.init(DEFAULT_SEED))
    assert eng.initialized
    assert store.writes == 1


def test_missing_seed_is_fatal(tmp_path):
    store = MemoryBlobStore()
    eng = Engine(store)
    with pytest.raises(SeedUnavailable):
        asyncio.run(eng.init(tmp_path / "missing.sql"))
    assert not eng.initialized
    assert store.writes == 0
    with pytest.raises(NotInitialized):
        eng.query("SELECT 1")


def test_seed_without_required_tables_is_fatal(tmp_path):
    seed = tmp_path / "partial.sql"
    seed.write_text("CREATE TABLE days (id INTEGER PRIMARY KEY);", encoding="utf-8")
    eng = Engine(MemoryBlobStore())
    with pytest.raises(SeedUnavailable):
        asyncio.run(eng.init(seed))
    assert not eng.initialized


def test_binary_seed_file(tmp_path):
    seed = tmp_path / "gas.db"
    seed.write_bytes(build_image(Path(DEFAULT_SEED).read_text(encoding="utf-8")))
    eng = Engine(MemoryBlobStore())
    asyncio.run(eng.init(seed))
    assert eng.query("SELECT COUNT(1) AS c FROM settings")[0]["c"] == 0


def test_export_and_restore_snapshot(engine, store):
    asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-01')"))
    image = engine.export_snapshot()
    asyncio.run(engine.run("DELETE FROM days"))
    writes = store.writes

    asyncio.run(engine.restore_snapshot(image))
    assert engine.query("SELECT date FROM days") == [{"date": "2026-01-01"}]
    assert store.writes == writes + 1
    assert asyncio.run(store.get("gas.db")) == engine.export_snapshot()


def test_restore_rejects_invalid_image(engine):
    asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-01')"))
    with pytest.raises(InvalidSnapshot):
        asyncio.run(engine.restore_snapshot(build_image("CREATE TABLE other (x);")))
    assert engine.query("SELECT date FROM days") == [{"date": "2026-01-01"}]


def test_deleting_day_cascades_to_sales(engine):
    asyncio.run(engine.run("INSERT INTO days(date) VALUES('2026-01-01')"))
    asyncio.run(engine.run("INSERT INTO sales(day_id, seq, kg) VALUES((SELECT id FROM days), 1, 3)"))
    asyncio.run(engine.run("DELETE FROM days"))
    assert engine.query("SELECT COUNT(1) AS c FROM sales")[0]["c"] == 0


def test_file_blob_store_survives_new_engine(tmp_path):
    store = FileBlobStore(tmp_path, "gasledger_store", 1)
    eng = Engine(store)
    asyncio.run(eng.init(DEFAULT_SEED))
    asyncio.run(eng.run("INSERT INTO settings(key, value) VALUES('k', 'v')"))
    eng.close()

    assert (tmp_path / "gasledger_store_v1" / "gas.db").is_file()
    again = Engine(FileBlobStore(tmp_path, "gasledger_store", 1))
    asyncio.run(again.init(DEFAULT_SEED))
    assert again.query("SELECT value FROM settings WHERE key='k'") == [{"value": "v"}]
