from __future__ import annotations

# gasledger/db.py
import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from fastapi import Request

from .engine import Engine
from .providers.blob_store import BlobStore, FileBlobStore, MemoryBlobStore

# Settings resolution order:
# 1) environment variables LEDGER_* (highest priority)
# 2) config.yaml at the project root
# 3) defaults: ~/.gasledger data dir, bundled schema.sql seed, file blob backend
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
DEFAULT_SEED = os.path.join(os.path.dirname(__file__), "schema.sql")

STORE_NAME = "gasledger_store"
STORE_VERSION = 1
BLOB_KEY = "gas.db"

ENV_KEYS = {
    "data_dir": "LEDGER_DATA_DIR",
    "seed_path": "LEDGER_SEED_PATH",
    "legacy_path": "LEDGER_LEGACY_PATH",
    "blob_backend": "LEDGER_BLOB_BACKEND",
}


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    seed_path: Path
    legacy_path: Path | None = None
    blob_backend: str = "file"
    store_name: str = STORE_NAME
    store_version: int = STORE_VERSION
    blob_key: str = BLOB_KEY


def _read_config_yaml(cfg_path: str | None = None) -> dict:
    cfg_path = cfg_path or os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(cfg, dict):
        return {}
    out = {}
    for k in ENV_KEYS:
        v = cfg.get(k)
        if isinstance(v, str) and v.strip():
            out[k] = v.strip()
    return out


def get_settings(cfg_path: str | None = None) -> Settings:
    cfg = _read_config_yaml(cfg_path)
    resolved = {}
    for key, env_name in ENV_KEYS.items():
        env_val = os.environ.get(env_name)
        resolved[key] = env_val if env_val else cfg.get(key)

    data_dir = Path(resolved["data_dir"] or Path.home() / ".gasledger").expanduser().resolve()
    seed_path = Path(resolved["seed_path"] or DEFAULT_SEED).expanduser()
    legacy = resolved["legacy_path"]
    backend = (resolved["blob_backend"] or "file").lower()
    if backend not in ("file", "memory"):
        raise ValueError(f"Unsupported blob backend: {backend}")

    return Settings(
        data_dir=data_dir,
        seed_path=seed_path,
        legacy_path=Path(legacy).expanduser() if legacy else None,
        blob_backend=backend,
    )


def make_blob_store(settings: Settings) -> BlobStore:
    if settings.blob_backend == "memory":
        return MemoryBlobStore()
    return FileBlobStore(settings.data_dir, settings.store_name, settings.store_version)


def make_engine(settings: Settings, store: BlobStore | None = None) -> Engine:
    return Engine(store or make_blob_store(settings), blob_key=settings.blob_key)


async def get_engine(request: Request) -> Engine:
    """
    FastAPI dependency: the Engine owned by the running app.

    The engine holds one sqlite3 connection and is not thread safe. Routes
    that use it are `async def` so every access runs on the event loop,
    never in the threadpool.
    """
    return request.app.state.engine
