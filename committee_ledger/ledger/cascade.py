"""
Cascade/Integrity Manager

Every delete in the ledger goes through here. Each operation:
1. Checks its preconditions before touching anything
2. Collects the child records with explicit index lookups
3. Deletes the whole batch inside ONE transaction

So a committee is never gone while its members remain, and a pair is
never gone while one of its members remains.
"""

from typing import Optional
from uuid import UUID

from committee_ledger.audit import AuditLogger
from committee_ledger.ledger.records import list_for_committee, require
from committee_ledger.models.audit import AuditEventBuilder
from committee_ledger.models.ledger import CascadeResult, PayerType
from committee_ledger.services.storage import (
    ALL_COLLECTIONS,
    Collection,
    ConflictError,
    EntityStore,
    Index,
    StorageTransaction,
)


async def _delete_payer_payments(
    tx: StorageTransaction,
    payer_id: int,
    payer_type: PayerType,
) -> int:
    payments = await tx.get_by_index(Collection.PAYMENTS, Index.PAYER, (payer_id, payer_type))
    for payment in payments:
        await tx.delete(Collection.PAYMENTS, payment["id"])
    return len(payments)


class CascadeManager:
    """Atomic deletes of committees, members and pairs."""

    def __init__(
        self,
        store: EntityStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def delete_committee(
        self,
        committee_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> CascadeResult:
        """
        Delete a committee with all of its members, pairs, payments and draws.

        Raises:
            NotFoundError: If the committee does not exist
        """

        async def body(tx: StorageTransaction) -> CascadeResult:
            await require(tx, Collection.COMMITTEES, committee_id)

            result = CascadeResult(committees=1)
            for collection in (
                Collection.MEMBERS,
                Collection.PAIRS,
                Collection.PAYMENTS,
                Collection.DRAWS,
            ):
                records = await tx.get_by_index(collection, Index.COMMITTEE_ID, committee_id)
                for record in records:
                    await tx.delete(collection, record["id"])
                setattr(result, collection.value, len(records))

            await tx.delete(Collection.COMMITTEES, committee_id)
            return result

        result = await self._store.run_transaction(ALL_COLLECTIONS, body)

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.committee_deleted(
                    committee_id=committee_id,
                    removed=result.model_dump(),
                    correlation_id=correlation_id,
                )
            )
        return result

    async def delete_member(
        self,
        member_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> CascadeResult:
        """
        Delete an unpaired member and its payments.

        Raises:
            NotFoundError: If the member does not exist
            ConflictError: If the member belongs to a pair (delete the pair)
        """

        async def body(tx: StorageTransaction) -> tuple[int, CascadeResult]:
            member = await require(tx, Collection.MEMBERS, member_id)
            if member.pair_id is not None:
                raise ConflictError(
                    f"Member {member_id} is part of pair {member.pair_id}; delete the pair instead"
                )

            payments = await _delete_payer_payments(tx, member_id, PayerType.MEMBER)
            await tx.delete(Collection.MEMBERS, member_id)
            return member.committee_id, CascadeResult(members=1, payments=payments)

        committee_id, result = await self._store.run_transaction(
            [Collection.MEMBERS, Collection.PAYMENTS], body
        )

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.member_deleted(
                    member_id=member_id,
                    committee_id=committee_id,
                    removed=result.model_dump(),
                    correlation_id=correlation_id,
                )
            )
        return result

    async def delete_pair(
        self,
        pair_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> CascadeResult:
        """
        Delete a pair together with both of its members and the pair's payments.

        Payments recorded against either member on their own are not
        touched; once paired, payments are keyed to the pair.

        Raises:
            NotFoundError: If the pair does not exist
        """

        async def body(tx: StorageTransaction) -> tuple[int, CascadeResult]:
            pair = await require(tx, Collection.PAIRS, pair_id)

            members = 0
            for member_id in pair.member_ids:
                if await tx.get(Collection.MEMBERS, member_id) is not None:
                    await tx.delete(Collection.MEMBERS, member_id)
                    members += 1

            payments = await _delete_payer_payments(tx, pair_id, PayerType.PAIR)
            await tx.delete(Collection.PAIRS, pair_id)
            return pair.committee_id, CascadeResult(members=members, pairs=1, payments=payments)

        committee_id, result = await self._store.run_transaction(
            [Collection.MEMBERS, Collection.PAIRS, Collection.PAYMENTS], body
        )

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.pair_deleted(
                    pair_id=pair_id,
                    committee_id=committee_id,
                    removed=result.model_dump(),
                    correlation_id=correlation_id,
                )
            )
        return result

    async def orphaned_members(self, committee_id: int) -> list[int]:
        """
        Ids of half-share members whose pair_id points at no existing pair.

        Only reachable through an inconsistent import.
        """

        async def body(tx: StorageTransaction) -> list[int]:
            await require(tx, Collection.COMMITTEES, committee_id)
            members = await list_for_committee(tx, Collection.MEMBERS, committee_id)
            pairs = await list_for_committee(tx, Collection.PAIRS, committee_id)
            pair_ids = {p.id for p in pairs}
            return [m.id for m in members if m.pair_id is not None and m.pair_id not in pair_ids]

        return await self._store.run_transaction(
            [Collection.COMMITTEES, Collection.MEMBERS, Collection.PAIRS], body
        )
