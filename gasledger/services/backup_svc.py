# gasledger/services/backup_svc.py
from __future__ import annotations

from datetime import datetime

from ..engine import Engine
from ..logs import LogContext, ensure_log_schema
from ..schema_guard import REQUIRED_TABLES

BACKUP_PREFIX = "gasledger-backup"


def table_counts(engine: Engine) -> dict:
    return {t: int(engine.query(f"SELECT COUNT(1) AS c FROM {t}")[0]["c"]) for t in REQUIRED_TABLES}


def export_backup(engine: Engine, now: datetime | None = None) -> tuple[str, bytes]:
    """Full database image plus a timestamped file name for it."""
    now = now or datetime.now()
    filename = f"{BACKUP_PREFIX}_{now.strftime('%Y-%m-%d')}_{now.strftime('%H%M')}.db"
    return filename, engine.export_snapshot()


async def restore_backup(engine: Engine, data: bytes, log: LogContext) -> dict:
    """Replace the live database with a backup image (validated first)."""
    log.set_before(table_counts(engine))
    await engine.restore_snapshot(data)
    await ensure_log_schema(engine)
    after = table_counts(engine)
    log.set_after(after)
    return {"message": "ok", "tables": after}
