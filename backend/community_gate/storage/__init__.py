# community_gate/storage/__init__.py
"""
Persistence adapters.

Three interchangeable backends implement the Store contract:
- json: single flat JSON file
- json-collections: one JSON file per collection
- database: Tortoise ORM document tables
"""
from pathlib import Path

from .base import (
    CommunityLimitReached,
    CommunityNameTaken,
    ConflictError,
    StorageError,
    Store,
    UsernameTaken,
    split_allowed_users,
)
from .database import DatabaseStore
from .json_store import JsonCollectionStore, JsonFileStore

BACKENDS = ("json", "json-collections", "database")


def create_store(settings) -> Store:
    """
    Instantiate the backend named by settings.storage_backend.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = settings.storage_backend
    if backend == "json":
        return JsonFileStore(Path(settings.data_dir) / settings.data_file)
    if backend == "json-collections":
        return JsonCollectionStore(settings.data_dir)
    if backend == "database":
        return DatabaseStore(settings.database_url, generate_schemas=settings.db_generate_schemas)
    raise ValueError(f"Unknown STORAGE_BACKEND {backend!r}; expected one of {', '.join(BACKENDS)}")
