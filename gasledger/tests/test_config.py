import asyncio

import pytest

from gasledger.db import DEFAULT_SEED, ENV_KEYS, Settings, get_settings, make_blob_store, make_engine
from gasledger.providers.blob_store import FileBlobStore, MemoryBlobStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_KEYS.values():
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_config(tmp_path):
    s = get_settings(str(tmp_path / "missing.yaml"))
    assert s.data_dir.name == ".gasledger"
    assert str(s.seed_path) == DEFAULT_SEED
    assert s.legacy_path is None
    assert s.blob_backend == "file"


def test_yaml_values(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        f"data_dir: {tmp_path / 'data'}\nlegacy_path: {tmp_path / 'old.json'}\nblob_backend: Memory\n",
        encoding="utf-8",
    )
    s = get_settings(str(cfg))
    assert s.data_dir == (tmp_path / "data").resolve()
    assert s.legacy_path == tmp_path / "old.json"
    assert s.blob_backend == "memory"


def test_env_overrides_yaml(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(f"data_dir: {tmp_path / 'from_yaml'}\n", encoding="utf-8")
    monkeypatch.setenv("LEDGER_DATA_DIR", str(tmp_path / "from_env"))
    assert get_settings(str(cfg)).data_dir == (tmp_path / "from_env").resolve()


def test_broken_yaml_is_ignored(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("data_dir: [unclosed\n", encoding="utf-8")
    assert get_settings(str(cfg)).blob_backend == "file"


def test_unknown_backend_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("LEDGER_BLOB_BACKEND", "s3")
    with pytest.raises(ValueError):
        get_settings(str(tmp_path / "missing.yaml"))


def test_make_blob_store(tmp_path):
    s = Settings(data_dir=tmp_path, seed_path=tmp_path / "seed.sql")
    store = make_blob_store(s)
    assert isinstance(store, FileBlobStore)
    assert store.directory == tmp_path / "gasledger_store_v1"

    mem = make_blob_store(Settings(data_dir=tmp_path, seed_path=tmp_path, blob_backend="memory"))
    assert isinstance(mem, MemoryBlobStore)


def test_make_engine_uses_file_store(tmp_path):
    s = Settings(data_dir=tmp_path, seed_path=DEFAULT_SEED)
    engine = make_engine(s)
    asyncio.run(engine.init(s.seed_path))
    assert (tmp_path / "gasledger_store_v1" / "gas.db").exists()
    engine.close()
