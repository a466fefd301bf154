"""gasledger: offline sales ledger with a snapshot-persisted SQLite core."""
from __future__ import annotations

__version__ = "0.1.0"
