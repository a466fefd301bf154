from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Mapping

from ..errors import LegacyStoreUnavailable


class LegacyStore(ABC):
    """
    Read-only view of the predecessor key/value store.

    Keys used by the importer:
      dailySales_YYYY-MM-DD  -> CSV text of one past day
      salesChunk_<n>         -> list of {gas, price, comments} (today's live rows)
      salesMeta              -> {unitPrice, newStock, lastUpdated}
    """

    @abstractmethod
    async def keys(self) -> list[str]:
        """All keys in the store. Raises LegacyStoreUnavailable if it cannot be read."""
        pass

    @abstractmethod
    async def get_item(self, key: str) -> Any:
        """Value for `key`, or None."""
        pass


class MemoryLegacyStore(LegacyStore):
    def __init__(self, items: Mapping[str, Any] | None = None):
        self._items = dict(items or {})

    async def keys(self) -> list[str]:
        return list(self._items)

    async def get_item(self, key: str) -> Any:
        return self._items.get(key)


class JsonLegacyStore(LegacyStore):
    """The old store exported as one JSON object ({key: value})."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._items: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise LegacyStoreUnavailable(f"cannot read legacy store {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise LegacyStoreUnavailable(f"legacy store {self.path} is not a key/value object")
        return raw

    async def _items_loaded(self) -> dict[str, Any]:
        if self._items is None:
            self._items = await asyncio.to_thread(self._load)
        return self._items

    async def keys(self) -> list[str]:
        return list(await self._items_loaded())

    async def get_item(self, key: str) -> Any:
        return (await self._items_loaded()).get(key)


def open_legacy_store(path: Path | str | None) -> LegacyStore:
    if path is None:
        raise LegacyStoreUnavailable("no legacy store configured")
    return JsonLegacyStore(path)
