# gasledger/services/sales_svc.py
from __future__ import annotations

from typing import Optional

from ..domain.money import line_amount, round_amount, round_kg
from ..engine import Engine
from ..repository import day_repo, sale_repo
from .utils import is_iso_date, today_iso

EMPTY_TOTALS = {
    "opening_stock": 0.0,
    "unit_price": 0.0,
    "kg_sum": 0.0,
    "price_sum": 0.0,
    "balance": 0.0,
}


def _non_negative(name: str, value) -> float:
    v = float(value)
    if v < 0:
        raise ValueError(f"{name} must be >= 0")
    return v


def _require_day(engine: Engine, day_id: int) -> dict:
    day = day_repo.get_by_id(engine, day_id)
    if day is None:
        raise ValueError(f"Day {day_id} not found")
    return day


# ---------- days ----------

def get_day(engine: Engine, date: str) -> dict | None:
    return day_repo.get_by_date(engine, date)


def get_day_by_id(engine: Engine, day_id: int) -> dict | None:
    return day_repo.get_by_id(engine, day_id)


def carry_forward(engine: Engine, date: str) -> tuple[float, float]:
    """
    Opening stock and unit price for a new day at `date`.

    opening_stock = previous day's closing balance (opening - kg sold, floored
    at 0); unit_price = previous day's price. Both 0 with no previous day.
    """
    prev = day_repo.latest_before(engine, date)
    if prev is None:
        return 0.0, 0.0
    opening = max(0.0, round_kg(float(prev["opening_stock"]) - float(prev["kg_sold"])))
    return opening, float(prev["unit_price"])


async def get_or_create_today(engine: Engine, today: Optional[str] = None) -> dict:
    """Today's day row, created with carried-forward stock and price if missing."""
    date = validate_date(today) if today else today_iso()
    existing = day_repo.get_by_date(engine, date)
    if existing:
        return existing
    opening, unit_price = carry_forward(engine, date)
    await day_repo.insert_if_missing(engine, date, opening, unit_price)
    return day_repo.get_by_date(engine, date)


async def update_unit_price(engine: Engine, day_id: int, unit_price: float) -> None:
    """Set the day's price and recompute every sale amount of that day."""
    price = _non_negative("unit_price", unit_price)
    _require_day(engine, day_id)
    await engine.transaction([
        day_repo.set_unit_price_stmt(day_id, price),
        sale_repo.reprice_stmt(day_id, price),
    ])


async def update_opening_stock(engine: Engine, day_id: int, opening_stock: float) -> None:
    stock = _non_negative("opening_stock", opening_stock)
    _require_day(engine, day_id)
    await day_repo.set_opening_stock(engine, day_id, stock)


async def delete_day(engine: Engine, day_id: int) -> bool:
    res = await day_repo.delete(engine, day_id)
    return res.rows_changed > 0


# ---------- sales ----------

def list_sales(engine: Engine, day_id: int) -> list[dict]:
    return sale_repo.list_for_day(engine, day_id)


async def add_sale(
    engine: Engine,
    day_id: int,
    kg: float = 0.0,
    price: Optional[float] = None,
    comments: str = "",
) -> dict:
    """Append a sale; seq = max(seq) + 1, price defaults to kg * day unit price."""
    day = _require_day(engine, day_id)
    kg_v = round_kg(_non_negative("kg", kg))
    if price is None:
        price_v = line_amount(kg_v, day["unit_price"])
    else:
        price_v = round_amount(_non_negative("price", price))
    seq = sale_repo.next_seq(engine, day_id)
    res = await sale_repo.insert(engine, day_id, seq, kg_v, price_v, comments or "")
    return {"id": res.last_insert_id, "seq": seq, "kg": kg_v, "price": price_v}


async def update_sale(
    engine: Engine,
    sale_id: int,
    kg: Optional[float] = None,
    price: Optional[float] = None,
    comments: Optional[str] = None,
) -> bool:
    """Partial update; only the given fields change. False when nothing to do."""
    fields: dict = {}
    if kg is not None:
        fields["kg"] = round_kg(_non_negative("kg", kg))
    if price is not None:
        fields["price"] = round_amount(_non_negative("price", price))
    if comments is not None:
        fields["comments"] = comments
    if not fields:
        return False
    if sale_repo.get(engine, sale_id) is None:
        raise ValueError(f"Sale {sale_id} not found")
    await sale_repo.update_fields(engine, sale_id, fields)
    return True


async def delete_sale(engine: Engine, sale_id: int) -> bool:
    """
    Delete one sale and renumber the rest of its day to 1..count,
    keeping their relative order. Runs as a single transaction.
    """
    sale = sale_repo.get(engine, sale_id)
    if sale is None:
        return False
    remaining = [r for r in sale_repo.list_for_day(engine, sale["day_id"]) if r["id"] != sale["id"]]
    ops = [sale_repo.delete_stmt(sale["id"])]
    ops.extend(sale_repo.set_seq_stmt(r["id"], i) for i, r in enumerate(remaining, start=1))
    await engine.transaction(ops)
    return True


# ---------- totals / history ----------

def get_day_totals(engine: Engine, day_id: int) -> dict:
    row = day_repo.totals(engine, day_id)
    if row is None:
        return dict(EMPTY_TOTALS)
    return {k: row[k] for k in EMPTY_TOTALS}


def get_history(engine: Engine) -> list[dict]:
    """All days with totals, most recent first."""
    return day_repo.history(engine)


def validate_date(date: str) -> str:
    if not is_iso_date(date):
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {date}")
    return date
