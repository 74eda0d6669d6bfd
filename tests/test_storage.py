"""
Storage contract tests.

Every test runs against both entity store implementations so they stay
interchangeable.
"""

import asyncio

import pytest

from committee_ledger.services.storage import (
    ALL_COLLECTIONS,
    Collection,
    ConflictError,
    Index,
    InMemoryEntityStore,
    NotFoundError,
    SqliteEntityStore,
    StorageError,
    StoreNotOpenError,
    create_store,
)
from committee_ledger.config import StorageSettings


class Boom(Exception):
    pass


def member(committee_id: int, name: str, **extra) -> dict:
    return {"committeeId": committee_id, "name": name, "shareType": "Full", **extra}


def payment(committee_id: int, payer_id: int, payer_type: str, month: int) -> dict:
    return {
        "committeeId": committee_id,
        "payerId": payer_id,
        "payerType": payer_type,
        "month": month,
        "status": "Paid",
    }


class TestStoreLifecycle:
    """Tests for opening and closing stores."""

    def test_operations_require_open_store(self, make_store):
        """Test that a closed store refuses work."""

        async def scenario():
            store = make_store()
            assert store.is_open is False
            with pytest.raises(StoreNotOpenError):
                await store.get_all(Collection.COMMITTEES)

        asyncio.run(scenario())

    def test_context_manager_opens_and_closes(self, make_store):
        """Test async with opens then closes the store."""

        async def scenario():
            store = make_store()
            async with store:
                assert store.is_open is True
            assert store.is_open is False

        asyncio.run(scenario())

    def test_create_store_from_settings(self, tmp_path):
        """Test the factory honours the configured backend."""
        memory = create_store(StorageSettings(backend="memory"))
        sqlite = create_store(
            StorageSettings(backend="sqlite", database_path=str(tmp_path / "x.db"))
        )
        assert isinstance(memory, InMemoryEntityStore)
        assert isinstance(sqlite, SqliteEntityStore)

    def test_sqlite_data_survives_reopen(self, tmp_path):
        """Test that the SQLite store is durable across close/open."""
        path = str(tmp_path / "ledger.db")

        async def scenario():
            async with SqliteEntityStore(path) as store:
                await store.create(Collection.COMMITTEES, {"name": "Kept"})
            async with SqliteEntityStore(path) as store:
                return await store.get_all(Collection.COMMITTEES)

        records = asyncio.run(scenario())
        assert [r["name"] for r in records] == ["Kept"]

    def test_sqlite_open_failure_is_storage_error(self, tmp_path):
        """Test an unusable database path surfaces as StorageError."""
        store = SqliteEntityStore(str(tmp_path / "missing" / "ledger.db"))
        with pytest.raises(StorageError):
            asyncio.run(store.open())


class TestStoreCrud:
    """Tests for single-record operations."""

    def test_create_assigns_increasing_ids(self, make_store):
        """Test that ids are assigned and returned."""

        async def scenario():
            async with make_store() as store:
                first = await store.create(Collection.MEMBERS, member(1, "Ali"))
                second = await store.create(Collection.MEMBERS, member(1, "Sara"))
                return first, second, await store.get(Collection.MEMBERS, second)

        first, second, record = asyncio.run(scenario())
        assert second > first
        assert record["id"] == second
        assert record["name"] == "Sara"

    def test_ids_are_not_reused_after_delete(self, make_store):
        """Test that a deleted id is never handed out again."""

        async def scenario():
            async with make_store() as store:
                first = await store.create(Collection.MEMBERS, member(1, "Ali"))
                await store.delete(Collection.MEMBERS, first)
                return first, await store.create(Collection.MEMBERS, member(1, "Sara"))

        first, second = asyncio.run(scenario())
        assert second != first

    def test_create_keeps_explicit_id(self, make_store):
        """Test that a record carrying an id is stored under it."""

        async def scenario():
            async with make_store() as store:
                record_id = await store.create(Collection.DRAWS, {"id": 42, "month": 0})
                return record_id, await store.get(Collection.DRAWS, 42)

        record_id, record = asyncio.run(scenario())
        assert record_id == 42
        assert record["month"] == 0

    def test_duplicate_explicit_id_fails(self, make_store):
        """Test that creating over an existing id is rejected."""

        async def scenario():
            async with make_store() as store:
                await store.create(Collection.DRAWS, {"id": 1, "month": 0})
                await store.create(Collection.DRAWS, {"id": 1, "month": 1})

        with pytest.raises(StorageError):
            asyncio.run(scenario())

    def test_replace_missing_record(self, make_store):
        """Test replacing a record that does not exist."""

        async def scenario():
            async with make_store() as store:
                await store.replace(Collection.MEMBERS, {"id": 99, **member(1, "Ghost")})

        with pytest.raises(NotFoundError):
            asyncio.run(scenario())

    def test_delete_missing_record_is_noop(self, make_store):
        """Test deleting an unknown id does nothing."""

        async def scenario():
            async with make_store() as store:
                await store.delete(Collection.MEMBERS, 99)
                return await store.get_all(Collection.MEMBERS)

        assert asyncio.run(scenario()) == []

    def test_returned_records_are_copies(self, make_store):
        """Test that mutating a returned record does not change the store."""

        async def scenario():
            async with make_store() as store:
                record_id = await store.create(Collection.MEMBERS, member(1, "Ali"))
                record = await store.get(Collection.MEMBERS, record_id)
                record["name"] = "Changed"
                return await store.get(Collection.MEMBERS, record_id)

        assert asyncio.run(scenario())["name"] == "Ali"


class TestIndexes:
    """Tests for index lookups."""

    def test_committee_index(self, make_store):
        """Test lookup of members by committee id."""

        async def scenario():
            async with make_store() as store:
                await store.create(Collection.MEMBERS, member(1, "Ali"))
                await store.create(Collection.MEMBERS, member(2, "Sara"))
                await store.create(Collection.MEMBERS, member(1, "Omar"))
                return await store.get_by_index(Collection.MEMBERS, Index.COMMITTEE_ID, 1)

        records = asyncio.run(scenario())
        assert [r["name"] for r in records] == ["Ali", "Omar"]

    def test_payer_index_distinguishes_kind(self, make_store):
        """Test that (id, member) and (id, pair) are different payers."""

        async def scenario():
            async with make_store() as store:
                await store.create(Collection.PAYMENTS, payment(1, 5, "member", 0))
                await store.create(Collection.PAYMENTS, payment(1, 5, "pair", 0))
                await store.create(Collection.PAYMENTS, payment(1, 5, "member", 1))
                return await store.get_by_index(Collection.PAYMENTS, Index.PAYER, (5, "member"))

        records = asyncio.run(scenario())
        assert [r["month"] for r in records] == [0, 1]
        assert all(r["payerType"] == "member" for r in records)

    def test_unknown_index_is_rejected(self, make_store):
        """Test that committees have no committeeId index."""

        async def scenario():
            async with make_store() as store:
                await store.get_by_index(Collection.COMMITTEES, Index.COMMITTEE_ID, 1)

        with pytest.raises(StorageError):
            asyncio.run(scenario())


class TestTransactions:
    """Tests for transaction atomicity and scope."""

    def test_failed_transaction_rolls_back(self, make_store):
        """Test that a failing body leaves no partial writes."""

        async def scenario():
            async with make_store() as store:
                await store.create(Collection.MEMBERS, member(1, "Before"))

                async def body(tx):
                    await tx.create(Collection.MEMBERS, member(1, "During"))
                    await tx.clear(Collection.PAIRS)
                    raise ConflictError("rejected")

                with pytest.raises(ConflictError, match="rejected"):
                    await store.run_transaction([Collection.MEMBERS, Collection.PAIRS], body)
                return await store.get_all(Collection.MEMBERS)

        records = asyncio.run(scenario())
        assert [r["name"] for r in records] == ["Before"]

    def test_unexpected_error_becomes_storage_error(self, make_store):
        """Test a non-ledger error in the body is wrapped and rolled back."""

        async def scenario():
            async with make_store() as store:
                await store.create(Collection.MEMBERS, member(1, "Before"))

                async def body(tx):
                    await tx.create(Collection.MEMBERS, member(1, "During"))
                    raise Boom("unexpected")

                with pytest.raises(StorageError, match="unexpected") as info:
                    await store.run_transaction([Collection.MEMBERS], body)
                return info.value, await store.get_all(Collection.MEMBERS)

        error, records = asyncio.run(scenario())
        assert isinstance(error.__cause__, Boom)
        assert [r["name"] for r in records] == ["Before"]

    def test_transaction_commits_all_writes(self, make_store):
        """Test that a successful body commits every write."""

        async def scenario():
            async with make_store() as store:

                async def body(tx):
                    committee_id = await tx.create(Collection.COMMITTEES, {"name": "C"})
                    await tx.create(Collection.MEMBERS, member(committee_id, "Ali"))
                    return committee_id

                committee_id = await store.run_transaction(ALL_COLLECTIONS, body)
                return await store.get_by_index(
                    Collection.MEMBERS, Index.COMMITTEE_ID, committee_id
                )

        assert len(asyncio.run(scenario())) == 1

    def test_transaction_scope_is_enforced(self, make_store):
        """Test touching a collection outside the declared scope."""

        async def scenario():
            async with make_store() as store:

                async def body(tx):
                    await tx.get_all(Collection.DRAWS)

                await store.run_transaction([Collection.MEMBERS], body)

        with pytest.raises(StorageError):
            asyncio.run(scenario())

    def test_clear_then_reinsert_with_ids(self, make_store):
        """Test the replace-everything pattern used by import."""

        async def scenario():
            async with make_store() as store:
                await store.create(Collection.MEMBERS, member(1, "Old"))

                async def body(tx):
                    await tx.clear(Collection.MEMBERS)
                    await tx.create(Collection.MEMBERS, {"id": 10, **member(1, "New")})

                await store.run_transaction([Collection.MEMBERS], body)
                return await store.get_all(Collection.MEMBERS)

        records = asyncio.run(scenario())
        assert [(r["id"], r["name"]) for r in records] == [(10, "New")]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
