"""Tests for backup export and import."""

import asyncio
import json

import pytest
from datetime import date

from committee_ledger.ledger import (
    BackupService,
    CascadeManager,
    CommitteeRegistry,
    PairingEngine,
    PaymentLedger,
    dumps_backup,
    loads_backup,
)
from committee_ledger.models.audit import AuditEventType
from committee_ledger.models.ledger import (
    LedgerSnapshot,
    PayerType,
    ShareholderRef,
    ShareType,
)
from committee_ledger.services.storage import Collection, ConflictError, StorageError


async def seed(store):
    committee = await CommitteeRegistry(store).create_committee(
        "Backup", 750, date(2024, 5, 1), allow_half_share=True
    )
    pairing = PairingEngine(store)
    ali, _ = await pairing.add_member(committee.id, "Ali", "0300")
    await pairing.add_member(committee.id, "B", share_type=ShareType.HALF)
    await pairing.add_member(committee.id, "C", share_type=ShareType.HALF)
    await PaymentLedger(store).record_payment(
        committee.id,
        ShareholderRef(kind=PayerType.MEMBER, id=ali.id),
        0,
        date(2024, 5, 12),
    )
    return committee


EMPTY_DOCUMENT = {"committees": [], "members": [], "pairs": [], "payments": [], "draws": []}


class TestBackupCodec:
    """Tests for dumps_backup / loads_backup."""

    def test_document_shape(self, run_with_store):
        """Test the exported document uses the five camelCase collections."""

        async def scenario(store):
            await seed(store)
            return await BackupService(store).export_snapshot()

        document = json.loads(dumps_backup(run_with_store(scenario)))
        assert sorted(document) == ["committees", "draws", "members", "pairs", "payments"]
        assert document["committees"][0]["startDate"] == "2024-05-01"
        assert document["committees"][0]["allowHalfShare"] is True
        assert document["pairs"][0]["member1Id"] == document["members"][1]["id"]
        assert document["payments"][0]["status"] == "Late"
        assert document["payments"][0]["paidOn"] == "2024-05-12"

    def test_loads_empty_document(self):
        """Test an empty but complete document is accepted."""
        snapshot = loads_backup(json.dumps(EMPTY_DOCUMENT))
        assert snapshot.record_count == 0

    @pytest.mark.parametrize("text,message", [
        ("not json", "not valid JSON"),
        ("[]", "must be a JSON object"),
        (json.dumps({"committees": []}), "missing keys"),
        (json.dumps({**EMPTY_DOCUMENT, "audit": []}), "unexpected keys"),
        (
            json.dumps({**EMPTY_DOCUMENT, "committees": [{"id": 1, "name": "X"}]}),
            "invalid value",
        ),
    ])
    def test_rejects_malformed_documents(self, text, message):
        """Test every malformed shape is a ConflictError."""
        with pytest.raises(ConflictError, match=message):
            loads_backup(text)


class TestImport:
    """Tests for BackupService.import_snapshot."""

    def test_round_trip_into_fresh_store(self, run_with_store, audit_logger):
        """Test export then import reproduces the same records and ids."""

        async def export(store):
            await seed(store)
            return await BackupService(store).export_json()

        text = run_with_store(export)

        async def restore(store):
            service = BackupService(store, audit_logger)
            counts = await service.import_json(text)
            return counts, await service.export_json()

        counts, restored = run_with_store(restore)
        assert counts == {"committees": 1, "members": 3, "pairs": 1, "payments": 1, "draws": 0}
        assert json.loads(restored) == json.loads(text)
        assert len(audit_logger.of_type(AuditEventType.DATA_IMPORTED)) == 1

    def test_import_replaces_existing_data(self, run_with_store):
        """Test that import wipes what was there."""

        async def scenario(store):
            await seed(store)
            await BackupService(store).import_snapshot(loads_backup(json.dumps(EMPTY_DOCUMENT)))
            return [len(await store.get_all(c)) for c in Collection]

        assert run_with_store(scenario) == [0, 0, 0, 0, 0]

    def test_records_without_ids_are_rejected(self, run_with_store):
        """Test that nothing changes when a record lacks an id."""
        document = {
            **EMPTY_DOCUMENT,
            "committees": [
                {"name": "No id", "contribution": 1, "startDate": "2024-01-01"},
            ],
        }

        async def scenario(store):
            await seed(store)
            with pytest.raises(ConflictError, match="without an id"):
                await BackupService(store).import_snapshot(loads_backup(json.dumps(document)))
            return await store.get_all(Collection.COMMITTEES)

        committees = run_with_store(scenario)
        assert [c["name"] for c in committees] == ["Backup"]

    def test_duplicate_ids_are_rejected(self, run_with_store):
        """Test duplicate ids in one collection."""
        committee = {"id": 1, "name": "A", "contribution": 1, "startDate": "2024-01-01"}
        snapshot = LedgerSnapshot.model_validate(
            {**EMPTY_DOCUMENT, "committees": [committee, committee]}
        )

        async def scenario(store):
            await BackupService(store).import_snapshot(snapshot)

        with pytest.raises(ConflictError, match="duplicate id 1"):
            run_with_store(scenario)

    def test_new_ids_follow_imported_ids(self, run_with_store):
        """Test records created after an import do not collide with it."""
        document = {
            **EMPTY_DOCUMENT,
            "committees": [
                {"id": 40, "name": "Imported", "contribution": 1, "startDate": "2024-01-01"},
            ],
        }

        async def scenario(store):
            await BackupService(store).import_json(json.dumps(document))
            created = await CommitteeRegistry(store).create_committee(
                "After", 1, date(2024, 1, 1)
            )
            return created.id

        assert run_with_store(scenario) > 40


class TestAtomicity:
    """A storage failure part way through a bulk write changes nothing."""

    def test_failed_import_keeps_existing_data(self, make_store, fail_transaction_call):
        """Test an import that fails on its third insert leaves the old data."""

        async def scenario():
            async with make_store() as store:
                await seed(store)
                service = BackupService(store)
                before = await service.export_json()
                fail_transaction_call(store, "create", 3)
                with pytest.raises(StorageError, match="create failed on call 3"):
                    await service.import_json(before)
                return before, await service.export_json()

        before, after = asyncio.run(scenario())
        assert after == before

    def test_failed_committee_delete_keeps_every_record(
        self, make_store, fail_transaction_call
    ):
        """Test a committee delete that fails on its third removal is undone."""

        async def scenario():
            async with make_store() as store:
                committee = await seed(store)
                service = BackupService(store)
                before = await service.export_json()
                fail_transaction_call(store, "delete", 3)
                with pytest.raises(StorageError, match="delete failed on call 3"):
                    await CascadeManager(store).delete_committee(committee.id)
                return before, await service.export_json()

        before, after = asyncio.run(scenario())
        assert after == before
        assert len(json.loads(after)["members"]) == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
