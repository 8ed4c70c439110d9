from __future__ import annotations

from quillpost.settings import Settings
from quillpost.storage.base import Storage
from quillpost.storage.database import DatabaseStorage
from quillpost.storage.memory import MemoryStorage

__all__ = ["DatabaseStorage", "MemoryStorage", "Storage", "build_storage"]


def build_storage(settings: Settings) -> Storage:
    """Construct the backend named by ``settings.storage_backend``."""
    if settings.storage_backend == "database":
        return DatabaseStorage(settings.database_url, create_schema=settings.create_tables)
    return MemoryStorage()
