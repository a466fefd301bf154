from __future__ import annotations

from ..engine import Engine, Statement, WriteResult

_TOTALS_SELECT = (
    "SELECT d.id, d.date, d.opening_stock, d.unit_price, "
    "COALESCE(SUM(s.kg), 0) AS kg_sum, "
    "COALESCE(SUM(s.price), 0) AS price_sum, "
    "d.opening_stock - COALESCE(SUM(s.kg), 0) AS balance, "
    "COUNT(s.id) AS sale_count "
    "FROM days d LEFT JOIN sales s ON s.day_id = d.id "
)


def get_by_date(engine: Engine, date: str) -> dict | None:
    rows = engine.query("SELECT * FROM days WHERE date=?", (date,))
    return rows[0] if rows else None


def get_by_id(engine: Engine, day_id: int) -> dict | None:
    rows = engine.query("SELECT * FROM days WHERE id=?", (int(day_id),))
    return rows[0] if rows else None


def latest_before(engine: Engine, date: str) -> dict | None:
    """Most recent day strictly before `date`, with its kg sold."""
    rows = engine.query(
        "SELECT d.opening_stock, d.unit_price, COALESCE(SUM(s.kg), 0) AS kg_sold "
        "FROM days d LEFT JOIN sales s ON s.day_id = d.id "
        "WHERE d.date < ? GROUP BY d.id ORDER BY d.date DESC LIMIT 1",
        (date,),
    )
    return rows[0] if rows else None


def insert_stmt(date: str, opening_stock: float, unit_price: float, or_ignore: bool = False) -> Statement:
    verb = "INSERT OR IGNORE" if or_ignore else "INSERT"
    return Statement(
        f"{verb} INTO days(date, opening_stock, unit_price) VALUES(?,?,?)",
        (date, float(opening_stock), float(unit_price)),
    )


async def insert_if_missing(engine: Engine, date: str, opening_stock: float, unit_price: float) -> WriteResult:
    stmt = insert_stmt(date, opening_stock, unit_price, or_ignore=True)
    return await engine.run(stmt.sql, stmt.params)


def set_unit_price_stmt(day_id: int, unit_price: float) -> Statement:
    return Statement("UPDATE days SET unit_price=? WHERE id=?", (float(unit_price), int(day_id)))


async def set_opening_stock(engine: Engine, day_id: int, opening_stock: float) -> WriteResult:
    return await engine.run("UPDATE days SET opening_stock=? WHERE id=?", (float(opening_stock), int(day_id)))


async def delete(engine: Engine, day_id: int) -> WriteResult:
    # sales rows go with it (ON DELETE CASCADE)
    return await engine.run("DELETE FROM days WHERE id=?", (int(day_id),))


def totals(engine: Engine, day_id: int) -> dict | None:
    rows = engine.query(_TOTALS_SELECT + "WHERE d.id = ? GROUP BY d.id", (int(day_id),))
    return rows[0] if rows else None


def history(engine: Engine) -> list[dict]:
    return engine.query(_TOTALS_SELECT + "GROUP BY d.id ORDER BY d.date DESC")


def count_all(engine: Engine) -> int:
    return int(engine.query("SELECT COUNT(1) AS c FROM days")[0]["c"])
