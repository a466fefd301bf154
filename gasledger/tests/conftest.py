import asyncio
from pathlib import Path

import pytest

from gasledger.db import DEFAULT_SEED, Settings
from gasledger.engine import Engine
from gasledger.providers.blob_store import MemoryBlobStore

TODAY = "2026-03-01"


class FlakyBlobStore(MemoryBlobStore):
    """Fails the next `fail_next` puts, then behaves like MemoryBlobStore."""

    def __init__(self):
        super().__init__()
        self.fail_next = 0

    async def put(self, key, data):
        if self.fail_next:
            self.fail_next -= 1
            raise OSError("disk unavailable")
        await super().put(key, data)


@pytest.fixture()
def store():
    return FlakyBlobStore()


@pytest.fixture()
def engine(store):
    eng = Engine(store)
    asyncio.run(eng.init(DEFAULT_SEED))
    yield eng
    eng.close()


@pytest.fixture()
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", seed_path=Path(DEFAULT_SEED))


@pytest.fixture()
def client(settings):
    from fastapi.testclient import TestClient
    from gasledger.api import create_app

    app = create_app(settings)
    with TestClient(app) as c:
        yield c
