"""
Pairing Engine

Half-share members join a committee one at a time. The first one waits;
the next one to join is paired with it, and from then on the two act as
a single full shareholder (one Pair).

Adding a half-share member runs as ONE transaction over members and
pairs: insert the member, create the pair, point both members at it.
A failure at any step leaves no half-built pair behind.
"""

from typing import Optional
from uuid import UUID

from committee_ledger.audit import AuditLogger
from committee_ledger.ledger import calculator
from committee_ledger.ledger.records import (
    fetch,
    list_for_committee,
    require,
    validate_entity,
)
from committee_ledger.models.audit import AuditEventBuilder
from committee_ledger.models.ledger import Member, Pair, ShareType
from committee_ledger.services.storage import (
    Collection,
    ConflictError,
    EntityStore,
    StorageTransaction,
)


MEMBERSHIP_COLLECTIONS = [Collection.COMMITTEES, Collection.MEMBERS, Collection.PAIRS]


class PairingEngine:
    """Adds and edits members while keeping the half-share pairing invariant."""

    def __init__(
        self,
        store: EntityStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def add_member(
        self,
        committee_id: int,
        name: str,
        phone: str = "",
        share_type: ShareType = ShareType.FULL,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Member, Optional[Pair]]:
        """
        Add a member to a committee, pairing half shares as they arrive.

        Returns:
            (member, pair) - pair is the Pair just formed, or None if the
            member is a full share or is now the waiting half share

        Raises:
            NotFoundError: If the committee does not exist
            ConflictError: If half shares are not allowed or input is invalid
        """
        share_type = ShareType(share_type)
        member = validate_entity(
            Member,
            committee_id=committee_id,
            name=name,
            phone=phone,
            share_type=share_type,
        )

        async def body(tx: StorageTransaction) -> tuple[Member, Optional[Pair]]:
            committee = await require(tx, Collection.COMMITTEES, committee_id)
            if share_type == ShareType.HALF and not committee.allow_half_share:
                raise ConflictError(
                    f"Committee {committee_id} does not allow half shares"
                )

            waiting = None
            if share_type == ShareType.HALF:
                existing = await list_for_committee(tx, Collection.MEMBERS, committee_id)
                waiting = calculator.waiting_member(existing)

            member.id = await tx.create(Collection.MEMBERS, member.to_record())
            if waiting is None:
                return member, None

            pair = Pair(
                committee_id=committee_id,
                member1_id=waiting.id,
                member2_id=member.id,
                name=Pair.display_name(waiting.name, member.name),
            )
            pair.id = await tx.create(Collection.PAIRS, pair.to_record())

            waiting.pair_id = pair.id
            member.pair_id = pair.id
            await tx.replace(Collection.MEMBERS, waiting.to_record())
            await tx.replace(Collection.MEMBERS, member.to_record())
            return member, pair

        member, pair = await self._store.run_transaction(MEMBERSHIP_COLLECTIONS, body)

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.member_added(
                    member_id=member.id,
                    committee_id=committee_id,
                    share_type=share_type.value,
                    correlation_id=correlation_id,
                )
            )
            if pair is not None:
                await self._audit_logger.log(
                    AuditEventBuilder.pair_created(
                        pair_id=pair.id,
                        committee_id=committee_id,
                        member_ids=pair.member_ids,
                        correlation_id=correlation_id,
                    )
                )
        return member, pair

    async def update_member(
        self,
        member_id: int,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Member:
        """
        Edit a member's name or phone.

        Share type, committee and pair never change here. If the member
        is paired, the pair's display name follows the new name.
        """

        async def body(tx: StorageTransaction) -> Member:
            current = await require(tx, Collection.MEMBERS, member_id)
            updated = await self._rename_member(tx, current, name, phone)
            if updated.pair_id is not None:
                pair = await require(tx, Collection.PAIRS, updated.pair_id)
                await self._refresh_pair_name(tx, pair)
            return updated

        member = await self._store.run_transaction(
            [Collection.MEMBERS, Collection.PAIRS], body
        )

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.member_updated(
                    member_id=member.id,
                    committee_id=member.committee_id,
                    correlation_id=correlation_id,
                )
            )
        return member

    async def update_pair(
        self,
        pair_id: int,
        member1_name: Optional[str] = None,
        member1_phone: Optional[str] = None,
        member2_name: Optional[str] = None,
        member2_phone: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Pair:
        """Edit both members of a pair and re-derive its name, atomically."""

        async def body(tx: StorageTransaction) -> Pair:
            pair = await require(tx, Collection.PAIRS, pair_id)
            first = await require(tx, Collection.MEMBERS, pair.member1_id)
            second = await require(tx, Collection.MEMBERS, pair.member2_id)
            await self._rename_member(tx, first, member1_name, member1_phone)
            await self._rename_member(tx, second, member2_name, member2_phone)
            return await self._refresh_pair_name(tx, pair)

        pair = await self._store.run_transaction(
            [Collection.MEMBERS, Collection.PAIRS], body
        )

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.pair_updated(
                    pair_id=pair.id,
                    committee_id=pair.committee_id,
                    correlation_id=correlation_id,
                )
            )
        return pair

    async def _rename_member(
        self,
        tx: StorageTransaction,
        member: Member,
        name: Optional[str],
        phone: Optional[str],
    ) -> Member:
        changes = {}
        if name is not None:
            changes["name"] = name
        if phone is not None:
            changes["phone"] = phone
        if not changes:
            return member
        updated = validate_entity(Member, **{**member.model_dump(), **changes})
        await tx.replace(Collection.MEMBERS, updated.to_record())
        return updated

    async def _refresh_pair_name(self, tx: StorageTransaction, pair: Pair) -> Pair:
        first = await require(tx, Collection.MEMBERS, pair.member1_id)
        second = await require(tx, Collection.MEMBERS, pair.member2_id)
        pair.name = Pair.display_name(first.name, second.name)
        await tx.replace(Collection.PAIRS, pair.to_record())
        return pair

    async def get_member(self, member_id: int) -> Member:
        return await require(self._store, Collection.MEMBERS, member_id)

    async def get_pair(self, pair_id: int) -> Pair:
        return await require(self._store, Collection.PAIRS, pair_id)

    async def list_members(self, committee_id: int) -> list[Member]:
        await require(self._store, Collection.COMMITTEES, committee_id)
        return await list_for_committee(self._store, Collection.MEMBERS, committee_id)

    async def list_pairs(self, committee_id: int) -> list[Pair]:
        await require(self._store, Collection.COMMITTEES, committee_id)
        return await list_for_committee(self._store, Collection.PAIRS, committee_id)

    async def waiting_member(self, committee_id: int) -> Optional[Member]:
        """The half-share member still waiting for a partner, if any."""
        return calculator.waiting_member(await self.list_members(committee_id))

    async def partner_of(self, member_id: int) -> Optional[Member]:
        """The other half of a paired member, or None if unpaired."""
        member = await require(self._store, Collection.MEMBERS, member_id)
        if member.pair_id is None:
            return None
        pair = await fetch(self._store, Collection.PAIRS, member.pair_id)
        if pair is None:
            return None
        other_id = pair.member2_id if pair.member1_id == member_id else pair.member1_id
        return await fetch(self._store, Collection.MEMBERS, other_id)
