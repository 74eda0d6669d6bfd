"""
In-Memory Entity Store

Keeps all five collections in process memory. Used by the test suite and
for throwaway sessions; nothing survives close().

Transactions work on a deep copy of the state and swap it in only when
the body returns, so a failing body leaves the store untouched.
"""

import copy
from typing import Any, Awaitable, Callable, Iterable, Optional

from committee_ledger.services.storage.interface import (
    ALL_COLLECTIONS,
    Collection,
    EntityStore,
    Index,
    LedgerError,
    NotFoundError,
    Record,
    StorageError,
    StorageTransaction,
    T,
    index_key_for,
    record_index_key,
    require_index,
)


class _MemoryState:
    """Records per collection plus the next id to hand out."""

    def __init__(self):
        self.records: dict[Collection, dict[int, Record]] = {
            c: {} for c in ALL_COLLECTIONS
        }
        self.next_ids: dict[Collection, int] = {c: 1 for c in ALL_COLLECTIONS}


class _MemoryTransaction(StorageTransaction):

    def __init__(self, state: _MemoryState, collections: Iterable[Collection]):
        super().__init__(collections)
        self._state = state

    async def create(self, collection: Collection, record: Record) -> int:
        collection = self._check_scope(collection)
        table = self._state.records[collection]
        record = copy.deepcopy(record)

        record_id = record.get("id")
        if record_id is None:
            record_id = self._state.next_ids[collection]
        elif record_id in table:
            raise StorageError(
                f"Duplicate id {record_id} in {collection.value}"
            )

        record["id"] = record_id
        table[record_id] = record
        self._state.next_ids[collection] = max(
            self._state.next_ids[collection], record_id + 1
        )
        return record_id

    async def replace(self, collection: Collection, record: Record) -> None:
        collection = self._check_scope(collection)
        table = self._state.records[collection]
        record_id = record.get("id")
        if record_id not in table:
            raise NotFoundError(f"No record {record_id} in {collection.value}")
        table[record_id] = copy.deepcopy(record)

    async def delete(self, collection: Collection, record_id: int) -> None:
        collection = self._check_scope(collection)
        self._state.records[collection].pop(record_id, None)

    async def get(self, collection: Collection, record_id: int) -> Optional[Record]:
        collection = self._check_scope(collection)
        record = self._state.records[collection].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def get_all(self, collection: Collection) -> list[Record]:
        collection = self._check_scope(collection)
        table = self._state.records[collection]
        return [copy.deepcopy(table[i]) for i in sorted(table)]

    async def get_by_index(
        self,
        collection: Collection,
        index: Index,
        key: Any,
    ) -> list[Record]:
        collection = self._check_scope(collection)
        index = Index(index)
        require_index(collection, index)
        wanted = index_key_for(index, key)
        table = self._state.records[collection]
        return [
            copy.deepcopy(table[i])
            for i in sorted(table)
            if record_index_key(index, table[i]) == wanted
        ]

    async def clear(self, collection: Collection) -> None:
        collection = self._check_scope(collection)
        self._state.records[collection].clear()


class InMemoryEntityStore(EntityStore):
    """Entity store backed by plain dicts."""

    def __init__(self):
        self._state: Optional[_MemoryState] = None

    @property
    def is_open(self) -> bool:
        return self._state is not None

    async def open(self) -> None:
        if self._state is None:
            self._state = _MemoryState()

    async def close(self) -> None:
        self._state = None

    async def run_transaction(
        self,
        collections: Iterable[Collection],
        body: Callable[[StorageTransaction], Awaitable[T]],
    ) -> T:
        self._require_open()
        try:
            working = copy.deepcopy(self._state)
        except Exception as e:
            raise StorageError(f"Failed to start transaction: {e}") from e

        try:
            result = await body(_MemoryTransaction(working, collections))
        except LedgerError:
            raise
        except Exception as e:
            raise StorageError(f"Transaction failed: {e}") from e
        self._state = working
        return result
