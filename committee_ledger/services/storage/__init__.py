"""
Storage Services Package

Provides the abstract entity store interface and concrete implementations.
SQLite is the default durable backend; the in-memory store is used for
tests and throwaway sessions.
"""

from typing import Optional

from committee_ledger.config import StorageSettings, get_settings
from committee_ledger.services.storage.interface import (
    ALL_COLLECTIONS,
    Collection,
    ConflictError,
    EntityStore,
    Index,
    LedgerError,
    NotFoundError,
    Record,
    StorageError,
    StorageTransaction,
    StoreNotOpenError,
)
from committee_ledger.services.storage.memory import InMemoryEntityStore
from committee_ledger.services.storage.sqlite import SqliteEntityStore


def create_store(settings: Optional[StorageSettings] = None) -> EntityStore:
    """
    Build the configured entity store (not yet opened).

    Args:
        settings: Storage settings; loaded from the environment if None
    """
    settings = settings or get_settings().storage
    if settings.backend == "memory":
        return InMemoryEntityStore()
    return SqliteEntityStore(settings.database_path)


__all__ = [
    # Interfaces
    "ALL_COLLECTIONS",
    "Collection",
    "EntityStore",
    "Index",
    "Record",
    "StorageTransaction",
    # Exceptions
    "ConflictError",
    "LedgerError",
    "NotFoundError",
    "StorageError",
    "StoreNotOpenError",
    # Implementations
    "InMemoryEntityStore",
    "SqliteEntityStore",
    "create_store",
]
