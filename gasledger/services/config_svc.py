# gasledger/services/config_svc.py
from __future__ import annotations

from ..engine import Engine
from ..logs import LogContext

MIGRATION_DONE_KEY = "migration_v1_done"

DEFAULTS = {
    "currency": "NGN",
}


def get_setting(engine: Engine, key: str) -> str | None:
    rows = engine.query("SELECT value FROM settings WHERE key=?", (key,))
    return rows[0]["value"] if rows else None


async def save_setting(engine: Engine, key: str, value: str) -> None:
    await engine.run(
        "INSERT INTO settings(key, value) VALUES(?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
        (key, str(value)),
    )


def all_settings(engine: Engine) -> dict:
    return {r["key"]: r["value"] for r in engine.query("SELECT key, value FROM settings")}


async def ensure_default_settings(engine: Engine):
    """Make sure default settings exist (never overwrites existing values)."""
    missing = [k for k in DEFAULTS if get_setting(engine, k) is None]
    if not missing:
        return
    await engine.transaction(
        ("INSERT INTO settings(key, value) VALUES (?, ?) ON CONFLICT(key) DO NOTHING", (k, DEFAULTS[k]))
        for k in missing
    )


async def update_settings(engine: Engine, upd: dict, log: LogContext) -> list[str]:
    before = all_settings(engine)
    await engine.transaction(
        (
            "INSERT INTO settings(key,value) VALUES(?,?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (k, str(v)),
        )
        for k, v in upd.items()
    )
    log.set_before(before)
    log.set_after(all_settings(engine))
    return list(upd)
