"""
Abstract Entity Store Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the SQLite file for any transactional key-value store later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally small - five collections of plain dict
records, two secondary indexes, and one way to group writes into an
all-or-nothing transaction. Backends only implement open/close and
run_transaction; every single-operation call is a one-step transaction.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar, Union


Record = dict[str, Any]
T = TypeVar("T")


class Collection(str, Enum):
    """The five entity collections."""
    COMMITTEES = "committees"
    MEMBERS = "members"
    PAIRS = "pairs"
    PAYMENTS = "payments"
    DRAWS = "draws"


class Index(str, Enum):
    """Secondary indexes available for lookups."""
    COMMITTEE_ID = "committeeId"
    PAYER = "payer"


ALL_COLLECTIONS: tuple[Collection, ...] = tuple(Collection)

# Record keys each index is built from
INDEX_KEY_PATHS: dict[Index, tuple[str, ...]] = {
    Index.COMMITTEE_ID: ("committeeId",),
    Index.PAYER: ("payerId", "payerType"),
}

COLLECTION_INDEXES: dict[Collection, tuple[Index, ...]] = {
    Collection.COMMITTEES: (),
    Collection.MEMBERS: (Index.COMMITTEE_ID,),
    Collection.PAIRS: (Index.COMMITTEE_ID,),
    Collection.PAYMENTS: (Index.COMMITTEE_ID, Index.PAYER),
    Collection.DRAWS: (Index.COMMITTEE_ID,),
}


# =============================================================================
# ERRORS
# =============================================================================

class LedgerError(Exception):
    """Base exception for every error the ledger raises on purpose."""
    pass


class NotFoundError(LedgerError):
    """Referenced entity does not exist."""
    pass


class ConflictError(LedgerError):
    """Operation would violate a ledger invariant."""
    pass


class StorageError(LedgerError):
    """The underlying store failed; the transaction was rolled back."""
    pass


class StoreNotOpenError(StorageError):
    """Store used before open() or after close()."""
    pass


# =============================================================================
# HELPERS
# =============================================================================

def index_key_for(index: Index, key: Union[Any, tuple]) -> tuple:
    """Normalize a lookup key to a tuple matching the index key path."""
    width = len(INDEX_KEY_PATHS[index])
    if not isinstance(key, tuple):
        key = (key,)
    if len(key) != width:
        raise StorageError(
            f"Index {index.value} expects {width} key part(s), got {len(key)}"
        )
    # enum members compare by value in records
    return tuple(part.value if isinstance(part, Enum) else part for part in key)


def record_index_key(index: Index, record: Record) -> tuple:
    """Extract the index key of a stored record."""
    return tuple(record.get(path) for path in INDEX_KEY_PATHS[index])


def require_index(collection: Collection, index: Index) -> None:
    if index not in COLLECTION_INDEXES[collection]:
        raise StorageError(
            f"Collection {collection.value} has no index {index.value}"
        )


# =============================================================================
# INTERFACES
# =============================================================================

class StorageTransaction(ABC):
    """
    Handle passed to a transaction body.

    Every mutation made through the handle is applied together when the
    body returns, or discarded together when it raises.
    """

    def __init__(self, collections: Iterable[Collection]):
        self._collections = frozenset(Collection(c) for c in collections)

    @property
    def collections(self) -> frozenset[Collection]:
        return self._collections

    def _check_scope(self, collection: Collection) -> Collection:
        collection = Collection(collection)
        if collection not in self._collections:
            raise StorageError(
                f"Collection {collection.value} is not part of this transaction"
            )
        return collection

    @abstractmethod
    async def create(self, collection: Collection, record: Record) -> int:
        """
        Insert a record and return its id.

        If the record already carries an id it is kept (used by import);
        otherwise the next id is assigned.

        Raises:
            StorageError: If the id is already taken
        """
        pass

    @abstractmethod
    async def replace(self, collection: Collection, record: Record) -> None:
        """
        Replace a stored record by its id.

        Raises:
            NotFoundError: If no record has that id
        """
        pass

    @abstractmethod
    async def delete(self, collection: Collection, record_id: int) -> None:
        """Delete a record by id. Deleting a missing id is a no-op."""
        pass

    @abstractmethod
    async def get(self, collection: Collection, record_id: int) -> Optional[Record]:
        pass

    @abstractmethod
    async def get_all(self, collection: Collection) -> list[Record]:
        """All records of a collection, ordered by id."""
        pass

    @abstractmethod
    async def get_by_index(
        self,
        collection: Collection,
        index: Index,
        key: Any,
    ) -> list[Record]:
        """
        Records whose index key equals key, ordered by id.

        Args:
            collection: Collection to search
            index: Index declared for that collection
            key: Scalar for single-part indexes, tuple for composite ones
        """
        pass

    @abstractmethod
    async def clear(self, collection: Collection) -> None:
        """Remove every record from a collection."""
        pass


class EntityStore(ABC):
    """
    Abstract entity store.

    Any storage implementation (SQLite, in-memory, ...) must implement
    open/close and run_transaction. Stores are constructed explicitly and
    injected; there is no global handle.

    Usage:
        async with SqliteEntityStore("ledger.db") as store:
            committee_id = await store.create(Collection.COMMITTEES, record)
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @abstractmethod
    async def open(self) -> None:
        """
        Open the store, creating its schema if needed.

        Raises:
            StorageError: If the backend cannot be opened
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def run_transaction(
        self,
        collections: Iterable[Collection],
        body: Callable[[StorageTransaction], Awaitable[T]],
    ) -> T:
        """
        Run body against a transaction spanning the given collections.

        Returns:
            Whatever body returns

        Raises:
            StorageError: If the backend fails or body raises anything
                other than a LedgerError; nothing is applied
            LedgerError: Raised by body; nothing is applied
        """
        pass

    async def __aenter__(self) -> "EntityStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _require_open(self) -> None:
        if not self.is_open:
            raise StoreNotOpenError(f"{type(self).__name__} is not open")

    # Single-operation conveniences

    async def create(self, collection: Collection, record: Record) -> int:
        return await self.run_transaction(
            [collection], lambda tx: tx.create(collection, record)
        )

    async def replace(self, collection: Collection, record: Record) -> None:
        await self.run_transaction(
            [collection], lambda tx: tx.replace(collection, record)
        )

    async def delete(self, collection: Collection, record_id: int) -> None:
        await self.run_transaction(
            [collection], lambda tx: tx.delete(collection, record_id)
        )

    async def get(self, collection: Collection, record_id: int) -> Optional[Record]:
        return await self.run_transaction(
            [collection], lambda tx: tx.get(collection, record_id)
        )

    async def get_all(self, collection: Collection) -> list[Record]:
        return await self.run_transaction(
            [collection], lambda tx: tx.get_all(collection)
        )

    async def get_by_index(
        self,
        collection: Collection,
        index: Index,
        key: Any,
    ) -> list[Record]:
        return await self.run_transaction(
            [collection], lambda tx: tx.get_by_index(collection, index, key)
        )

    async def clear(self, collection: Collection) -> None:
        await self.run_transaction(
            [collection], lambda tx: tx.clear(collection)
        )
