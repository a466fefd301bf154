from __future__ import annotations

import json
import time
import uuid
import datetime as dt
from typing import Any, Optional

from .engine import Engine

DDL = [
    """CREATE TABLE IF NOT EXISTS operation_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  user TEXT NOT NULL,
  action TEXT NOT NULL,
  entity_type TEXT,
  entity_id TEXT,
  request_id TEXT,
  before_json TEXT,
  after_json TEXT,
  payload_json TEXT,
  result TEXT,
  err_msg TEXT,
  latency_ms INTEGER
)""",
    "CREATE INDEX IF NOT EXISTS idx_log_ts ON operation_log(ts)",
    "CREATE INDEX IF NOT EXISTS idx_log_action ON operation_log(action)",
]


def _has_log_table(engine: Engine) -> bool:
    rows = engine.query("SELECT name FROM sqlite_master WHERE type='table' AND name='operation_log'")
    return bool(rows)


async def ensure_log_schema(engine: Engine):
    """Older snapshots may predate operation_log; create it without a reseed."""
    if _has_log_table(engine):
        return
    await engine.transaction(DDL)


def _dumps(obj: Any) -> Optional[str]:
    return json.dumps(obj, ensure_ascii=False, default=str) if obj is not None else None


class LogContext:
    def __init__(self, action: str, user: str = "owner"):
        self.action = action
        self.user = user
        self.request_id = str(uuid.uuid4())
        self.start = time.perf_counter()
        self.before = None
        self.after = None
        self.payload = None
        self.entity_type = None
        self.entity_id = None

    def set_entity(self, etype: str, eid: str):
        self.entity_type = etype
        self.entity_id = str(eid)

    def set_before(self, obj): self.before = obj
    def set_after(self, obj): self.after = obj
    def set_payload(self, obj): self.payload = obj

    async def write(self, engine: Engine, result: str = "OK", err: Optional[str] = None):
        elapsed_ms = int((time.perf_counter() - self.start) * 1000)
        rec = {
            "ts": dt.datetime.now().astimezone().isoformat(timespec="seconds"),
            "user": self.user,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "request_id": self.request_id,
            "before_json": _dumps(self.before),
            "after_json": _dumps(self.after),
            "payload_json": _dumps(self.payload),
            "result": result,
            "err_msg": err,
            "latency_ms": elapsed_ms,
        }
        await engine.run(
            """INSERT INTO operation_log
            (ts,user,action,entity_type,entity_id,request_id,before_json,after_json,payload_json,result,err_msg,latency_ms)
            VALUES(?,?,?,?,?,?,?,?,?,?,?,?)""",
            tuple(rec.values()),
        )


def search_logs(engine: Engine, q: str | None, action: str | None, ts_from: str | None, ts_to: str | None, page: int, size: int):
    where = []
    params: list[Any] = []
    if q:
        where.append("(payload_json LIKE ? OR before_json LIKE ? OR after_json LIKE ?)")
        params.extend([f"%{q}%"] * 3)
    if action:
        where.append("action = ?")
        params.append(action)
    if ts_from:
        where.append("ts >= ?")
        params.append(ts_from)
    if ts_to:
        where.append("ts <= ?")
        params.append(ts_to)
    wh = " WHERE " + " AND ".join(where) if where else ""
    total = engine.query(f"SELECT COUNT(1) AS cnt FROM operation_log{wh}", params)[0]["cnt"]
    rows = engine.query(
        f"SELECT * FROM operation_log{wh} ORDER BY ts DESC, id DESC LIMIT ? OFFSET ?",
        [*params, size, (page - 1) * size],
    )
    return total, rows
