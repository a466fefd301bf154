from __future__ import annotations

# gasledger/services/utils.py
from datetime import date


def today_iso() -> str:
    """Today's local date as YYYY-MM-DD; the key of the days table."""
    return date.today().isoformat()


def is_iso_date(s: str) -> bool:
    try:
        return date.fromisoformat(s).isoformat() == s
    except (TypeError, ValueError):
        return False


def to_float_safe(x, default=None):
    try:
        return float(x)
    except (TypeError, ValueError):
        return default
