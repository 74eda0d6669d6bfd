"""Services package."""

from committee_ledger.services.storage import (
    Collection,
    ConflictError,
    EntityStore,
    Index,
    InMemoryEntityStore,
    LedgerError,
    NotFoundError,
    SqliteEntityStore,
    StorageError,
    StorageTransaction,
    StoreNotOpenError,
    create_store,
)

__all__ = [
    "Collection",
    "ConflictError",
    "EntityStore",
    "Index",
    "InMemoryEntityStore",
    "LedgerError",
    "NotFoundError",
    "SqliteEntityStore",
    "StorageError",
    "StorageTransaction",
    "StoreNotOpenError",
    "create_store",
]
