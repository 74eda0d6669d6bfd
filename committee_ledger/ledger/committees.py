"""
Committee registry: create, edit and read committees and their headline
figures.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from committee_ledger.audit import AuditLogger
from committee_ledger.config import get_settings
from committee_ledger.ledger import calculator
from committee_ledger.ledger.records import (
    list_for_committee,
    load_committee_state,
    require,
    validate_entity,
)
from committee_ledger.models.audit import AuditEventBuilder
from committee_ledger.models.ledger import (
    Committee,
    CommitteeState,
    CommitteeSummary,
    Draw,
    Member,
    MonthSlot,
    Pair,
    Payment,
    Shareholder,
)
from committee_ledger.services.storage import (
    ALL_COLLECTIONS,
    Collection,
    ConflictError,
    EntityStore,
    StorageTransaction,
)


class CommitteeRegistry:
    """
    Committee CRUD plus the derived figures shown for each committee.

    Deleting a committee is not here: it cascades to every child record
    and goes through CascadeManager.
    """

    def __init__(
        self,
        store: EntityStore,
        audit_logger: Optional[AuditLogger] = None,
        due_day: Optional[int] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._due_day = due_day or get_settings().app.payment_due_day

    async def create_committee(
        self,
        name: str,
        contribution: int,
        start_date: date,
        allow_half_share: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Committee:
        committee = validate_entity(
            Committee,
            name=name,
            contribution=contribution,
            start_date=start_date,
            allow_half_share=allow_half_share,
        )
        committee.id = await self._store.create(Collection.COMMITTEES, committee.to_record())

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.committee_created(
                    committee_id=committee.id,
                    name=committee.name,
                    contribution=committee.contribution,
                    correlation_id=correlation_id,
                )
            )
        return committee

    async def update_committee(
        self,
        committee_id: int,
        name: Optional[str] = None,
        contribution: Optional[int] = None,
        start_date: Optional[date] = None,
        allow_half_share: Optional[bool] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Committee:
        """
        Edit a committee's name, contribution or start date.

        allow_half_share can be passed but must match the stored value.

        Raises:
            NotFoundError: If the committee does not exist
            ConflictError: If allow_half_share would change or input is invalid
        """
        changes = {
            key: value
            for key, value in (
                ("name", name),
                ("contribution", contribution),
                ("start_date", start_date),
            )
            if value is not None
        }

        async def body(tx: StorageTransaction) -> Committee:
            current = await require(tx, Collection.COMMITTEES, committee_id)
            if allow_half_share is not None and allow_half_share != current.allow_half_share:
                raise ConflictError("Half-share setting cannot change after creation")
            updated = validate_entity(
                Committee, **{**current.model_dump(), **changes}
            )
            await tx.replace(Collection.COMMITTEES, updated.to_record())
            return updated

        committee = await self._store.run_transaction([Collection.COMMITTEES], body)

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.committee_updated(
                    committee_id=committee_id,
                    changes={k: str(v) for k, v in changes.items()},
                    correlation_id=correlation_id,
                )
            )
        return committee

    async def get_committee(self, committee_id: int) -> Committee:
        return await require(self._store, Collection.COMMITTEES, committee_id)

    async def list_committees(self) -> list[Committee]:
        records = await self._store.get_all(Collection.COMMITTEES)
        return [Committee.from_record(r) for r in records]

    async def load_state(self, committee_id: int) -> CommitteeState:
        return await self._store.run_transaction(
            ALL_COLLECTIONS, lambda tx: load_committee_state(tx, committee_id)
        )

    async def committee_summary(self, committee_id: int) -> CommitteeSummary:
        return calculator.summarize(await self.load_state(committee_id))

    async def list_committee_summaries(self) -> list[CommitteeSummary]:
        """Summaries for every committee, read in one pass."""

        async def body(tx: StorageTransaction) -> list[CommitteeSummary]:
            committees = [Committee.from_record(r) for r in await tx.get_all(Collection.COMMITTEES)]
            members = [Member.from_record(r) for r in await tx.get_all(Collection.MEMBERS)]
            pairs = [Pair.from_record(r) for r in await tx.get_all(Collection.PAIRS)]
            payments = [Payment.from_record(r) for r in await tx.get_all(Collection.PAYMENTS)]
            draws = [Draw.from_record(r) for r in await tx.get_all(Collection.DRAWS)]

            return [
                calculator.summarize(
                    CommitteeState(
                        committee=c,
                        members=[m for m in members if m.committee_id == c.id],
                        pairs=[p for p in pairs if p.committee_id == c.id],
                        payments=[p for p in payments if p.committee_id == c.id],
                        draws=[d for d in draws if d.committee_id == c.id],
                    )
                )
                for c in committees
            ]

        return await self._store.run_transaction(ALL_COLLECTIONS, body)

    async def shareholders(self, committee_id: int) -> list[Shareholder]:
        async def body(tx: StorageTransaction) -> list[Shareholder]:
            await require(tx, Collection.COMMITTEES, committee_id)
            members = await list_for_committee(tx, Collection.MEMBERS, committee_id)
            pairs = await list_for_committee(tx, Collection.PAIRS, committee_id)
            return calculator.shareholders(members, pairs)

        return await self._store.run_transaction(
            [Collection.COMMITTEES, Collection.MEMBERS, Collection.PAIRS], body
        )

    async def month_calendar(self, committee_id: int) -> list[MonthSlot]:
        """Month slots for the whole cycle, one per shareholder."""
        state = await self.load_state(committee_id)
        months = calculator.duration(state.members, state.pairs)
        return calculator.month_calendar(state.committee.start_date, months, self._due_day)
