from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from quillpost.main import create_app
from quillpost.settings import Settings
from quillpost.storage import DatabaseStorage, MemoryStorage


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        storage_backend="memory",
        metrics_enabled=False,
        otel_enabled=False,
        admin_enabled=False,
        log_level="DEBUG",
    )


@pytest.fixture(params=["memory", "database"])
async def storage(request, tmp_path):
    """Every storage contract test runs against both backends."""
    if request.param == "memory":
        yield MemoryStorage()
    else:
        db = DatabaseStorage(f"sqlite+aiosqlite:///{tmp_path / 'quillpost.db'}")
        await db.start()
        yield db
        await db.close()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def client(memory_storage, test_settings):
    app = create_app(storage=memory_storage, app_settings=test_settings)
    with TestClient(app) as c:
        yield c
