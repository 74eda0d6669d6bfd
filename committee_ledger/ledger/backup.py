"""
Backup export/import.

A backup is one JSON object with exactly five keys (committees, members,
pairs, payments, draws), each an array of camelCase records. Import
replaces everything in a single transaction: if any insert fails the
previous data is still there.
"""

import json
from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from committee_ledger.audit import AuditLogger
from committee_ledger.models.audit import AuditEventBuilder
from committee_ledger.models.ledger import (
    Committee,
    Draw,
    LedgerSnapshot,
    Member,
    Pair,
    Payment,
)
from committee_ledger.services.storage import (
    ALL_COLLECTIONS,
    Collection,
    ConflictError,
    EntityStore,
    StorageTransaction,
)


BACKUP_KEYS = tuple(c.value for c in ALL_COLLECTIONS)


def dumps_backup(snapshot: LedgerSnapshot, indent: Optional[int] = 2) -> str:
    return json.dumps(snapshot.to_document(), indent=indent, ensure_ascii=False)


def loads_backup(text: str) -> LedgerSnapshot:
    """
    Parse a backup document.

    Raises:
        ConflictError: If the text is not a valid backup document
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConflictError(f"Backup is not valid JSON: {e.msg}") from e

    if not isinstance(document, dict):
        raise ConflictError("Backup must be a JSON object")

    missing = [k for k in BACKUP_KEYS if k not in document]
    if missing:
        raise ConflictError(f"Backup is missing keys: {', '.join(missing)}")
    extra = sorted(set(document) - set(BACKUP_KEYS))
    if extra:
        raise ConflictError(f"Backup has unexpected keys: {', '.join(extra)}")

    try:
        return LedgerSnapshot.model_validate(document)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first["loc"])
        raise ConflictError(
            f"Backup has {e.error_count()} invalid value(s), first at {location}: {first['msg']}"
        ) from e


def check_snapshot_ids(snapshot: LedgerSnapshot) -> None:
    """
    Every imported record must carry a unique id.

    Raises:
        ConflictError: If a record has no id or an id repeats in a collection
    """
    for collection in ALL_COLLECTIONS:
        seen = set()
        for record in getattr(snapshot, collection.value):
            if record.id is None:
                raise ConflictError(f"Backup {collection.value} record without an id")
            if record.id in seen:
                raise ConflictError(
                    f"Backup {collection.value} has duplicate id {record.id}"
                )
            seen.add(record.id)


class BackupService:
    """Exports and imports the whole ledger."""

    def __init__(
        self,
        store: EntityStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def export_snapshot(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerSnapshot:
        """Read all five collections in one consistent pass."""

        async def body(tx: StorageTransaction) -> LedgerSnapshot:
            return LedgerSnapshot(
                committees=[Committee.from_record(r) for r in await tx.get_all(Collection.COMMITTEES)],
                members=[Member.from_record(r) for r in await tx.get_all(Collection.MEMBERS)],
                pairs=[Pair.from_record(r) for r in await tx.get_all(Collection.PAIRS)],
                payments=[Payment.from_record(r) for r in await tx.get_all(Collection.PAYMENTS)],
                draws=[Draw.from_record(r) for r in await tx.get_all(Collection.DRAWS)],
            )

        snapshot = await self._store.run_transaction(ALL_COLLECTIONS, body)

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.data_exported(
                    counts=_counts(snapshot),
                    correlation_id=correlation_id,
                )
            )
        return snapshot

    async def import_snapshot(
        self,
        snapshot: LedgerSnapshot,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, int]:
        """
        Replace all stored data with the snapshot.

        Returns:
            Record count per collection

        Raises:
            ConflictError: If the snapshot fails validation (nothing changes)
            StorageError: If the store fails mid-import (rolled back)
        """
        check_snapshot_ids(snapshot)

        async def body(tx: StorageTransaction) -> None:
            for collection in ALL_COLLECTIONS:
                await tx.clear(collection)
            for collection in ALL_COLLECTIONS:
                for record in getattr(snapshot, collection.value):
                    await tx.create(collection, record.to_record())

        await self._store.run_transaction(ALL_COLLECTIONS, body)

        counts = _counts(snapshot)
        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.data_imported(
                    counts=counts,
                    correlation_id=correlation_id,
                )
            )
        return counts

    async def export_json(self, correlation_id: Optional[UUID] = None) -> str:
        return dumps_backup(await self.export_snapshot(correlation_id))

    async def import_json(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, int]:
        return await self.import_snapshot(loads_backup(text), correlation_id)


def _counts(snapshot: LedgerSnapshot) -> dict[str, int]:
    return {c.value: len(getattr(snapshot, c.value)) for c in ALL_COLLECTIONS}
