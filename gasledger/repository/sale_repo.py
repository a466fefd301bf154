from __future__ import annotations

from typing import Any

from ..engine import Engine, Statement, WriteResult


def get(engine: Engine, sale_id: int) -> dict | None:
    rows = engine.query("SELECT * FROM sales WHERE id=?", (int(sale_id),))
    return rows[0] if rows else None


def list_for_day(engine: Engine, day_id: int) -> list[dict]:
    return engine.query("SELECT * FROM sales WHERE day_id=? ORDER BY seq ASC, id ASC", (int(day_id),))


def next_seq(engine: Engine, day_id: int) -> int:
    row = engine.query(
        "SELECT COALESCE(MAX(seq), 0) + 1 AS next_seq FROM sales WHERE day_id=?",
        (int(day_id),),
    )[0]
    return int(row["next_seq"])


def insert_stmt(day_id: int, seq: int, kg: float, price: float, comments: str) -> Statement:
    return Statement(
        "INSERT INTO sales(day_id, seq, kg, price, comments) VALUES(?,?,?,?,?)",
        (int(day_id), int(seq), float(kg), float(price), comments or ""),
    )


def insert_for_date_stmt(date: str, seq: int, kg: float, price: float, comments: str) -> Statement:
    """Insert resolving day_id by date, for use in the same transaction that creates the day."""
    return Statement(
        "INSERT INTO sales(day_id, seq, kg, price, comments) "
        "VALUES((SELECT id FROM days WHERE date=?),?,?,?,?)",
        (date, int(seq), float(kg), float(price), comments or ""),
    )


async def insert(engine: Engine, day_id: int, seq: int, kg: float, price: float, comments: str) -> WriteResult:
    stmt = insert_stmt(day_id, seq, kg, price, comments)
    return await engine.run(stmt.sql, stmt.params)


async def update_fields(engine: Engine, sale_id: int, fields: dict[str, Any]) -> WriteResult | None:
    # fields are whitelisted by the service layer
    if not fields:
        return None
    parts = ", ".join(f"{k}=?" for k in fields)
    params = [*fields.values(), int(sale_id)]
    return await engine.run(f"UPDATE sales SET {parts} WHERE id=?", params)


def delete_stmt(sale_id: int) -> Statement:
    return Statement("DELETE FROM sales WHERE id=?", (int(sale_id),))


def set_seq_stmt(sale_id: int, seq: int) -> Statement:
    return Statement("UPDATE sales SET seq=? WHERE id=?", (int(seq), int(sale_id)))


def reprice_stmt(day_id: int, unit_price: float) -> Statement:
    return Statement("UPDATE sales SET price=ROUND(kg * ?, 2) WHERE day_id=?", (float(unit_price), int(day_id)))


def count_all(engine: Engine) -> int:
    return int(engine.query("SELECT COUNT(1) AS c FROM sales")[0]["c"])
