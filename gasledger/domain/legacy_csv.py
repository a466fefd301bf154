from __future__ import annotations

import csv
import math
from dataclasses import dataclass, field

HEADER_PREFIX = "S/NO"
MIN_COLUMNS = 4
# sales.seq is a 64-bit SQLite integer
MAX_SEQ = 2**63 - 1


@dataclass
class ParsedSale:
    seq: int
    kg: float
    price: float
    comments: str = ""


@dataclass
class ParsedDay:
    unit_price: float = 0.0
    opening_stock: float = 0.0
    sales: list[ParsedSale] = field(default_factory=list)


def _num(cols: list[str], i: int) -> float:
    if i >= len(cols):
        return 0.0
    try:
        v = float(cols[i].strip())
    except ValueError:
        return 0.0
    return v if math.isfinite(v) else 0.0


def _seq(raw: str) -> int:
    try:
        v = int(float(raw.strip()))
    except (ValueError, OverflowError):
        return 0
    return v if 0 < v <= MAX_SEQ else 0


def parse_daily_csv(text: str) -> ParsedDay | None:
    """
    Parse one legacy day export.

    Format (one row per sale, header optional):
        S/NO,GAS,PRICE,COMMENTS,UNIT,BALANCE
        1,5,6250,Paid,1250,115.00

    opening_stock comes from the first row with kg > 0 only
    (balance after that row + its kg). unit_price is the last positive UNIT
    value in file order. Every row with at least four columns feeds both
    derivations; only rows with kg > 0 and a positive S/NO become sales.
    Each line is parsed on its own, so a broken quote only loses its own line.
    Blank lines, the header and rows with fewer than four columns are skipped.
    Non-numeric or non-finite numbers count as 0.
    Returns None when the text holds no data lines at all.
    """
    lines = [ln.strip() for ln in text.splitlines()]
    lines = [ln for ln in lines if ln and not ln.upper().startswith(HEADER_PREFIX)]
    if not lines:
        return None

    out = ParsedDay()
    opening_found = False
    for line in lines:
        try:
            cols = next(csv.reader([line]), [])
        except csv.Error:
            continue
        if len(cols) < MIN_COLUMNS:
            continue
        seq = _seq(cols[0])
        kg = _num(cols, 1)
        price = _num(cols, 2)
        comments = cols[3].strip()
        unit = _num(cols, 4)
        balance = _num(cols, 5)

        if unit > 0:
            out.unit_price = unit
        if not opening_found and kg > 0:
            out.opening_stock = balance + kg
            opening_found = True
        if kg > 0 and seq > 0:
            out.sales.append(ParsedSale(seq=seq, kg=kg, price=price, comments=comments))
    return out
