"""
Draw Eligibility Engine

Each month of a committee moves from NO_DRAW to DRAWN exactly once.

A draw can be conducted for a month when:
1. The committee has at least one shareholder
2. Every shareholder has a Paid or Late payment for that month
3. No draw exists for that month yet

Winner selection excludes anyone who already won a different month.
When editing a month's draw, that month's current winner stays
selectable. Draws are edited, never deleted.
"""

from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from committee_ledger.audit import AuditLogger
from committee_ledger.ledger import calculator
from committee_ledger.ledger.records import list_for_committee, load_committee_state, require
from committee_ledger.models.audit import AuditEventBuilder
from committee_ledger.models.ledger import (
    CommitteeState,
    Draw,
    DrawState,
    Shareholder,
    ShareholderRef,
)
from committee_ledger.services.storage import (
    ALL_COLLECTIONS,
    Collection,
    ConflictError,
    EntityStore,
    NotFoundError,
    StorageTransaction,
)


# =============================================================================
# PURE RULES
# =============================================================================

def draw_state(state: CommitteeState, month: int) -> DrawState:
    if calculator.draw_for_month(state.draws, month) is not None:
        return DrawState.DRAWN
    return DrawState.NO_DRAW


def can_conduct_draw(state: CommitteeState, month: int) -> bool:
    holders = calculator.shareholders(state.members, state.pairs)
    if not holders:
        return False
    fully_collected = calculator.settled_count(state.payments, month) == len(holders)
    return fully_collected and draw_state(state, month) == DrawState.NO_DRAW


def eligible_winners(state: CommitteeState, month: int) -> list[Shareholder]:
    """Shareholders who have not won any other month."""
    won_elsewhere = {d.winner for d in state.draws if d.month != month}
    return [
        s for s in calculator.shareholders(state.members, state.pairs)
        if s not in won_elsewhere
    ]


def winner_of(draw: Draw, holders: Iterable[Shareholder]) -> Optional[Shareholder]:
    """The shareholder a draw points at, or None if it no longer exists."""
    for holder in holders:
        if holder == draw.winner:
            return holder
    return None


# =============================================================================
# ENGINE
# =============================================================================

class DrawEligibilityEngine:
    """Reads draw state and conducts or edits draws."""

    def __init__(
        self,
        store: EntityStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger

    async def _state(self, committee_id: int) -> CommitteeState:
        return await self._store.run_transaction(
            ALL_COLLECTIONS, lambda tx: load_committee_state(tx, committee_id)
        )

    async def draw_state(self, committee_id: int, month: int) -> DrawState:
        return draw_state(await self._state(committee_id), month)

    async def can_conduct_draw(self, committee_id: int, month: int) -> bool:
        return can_conduct_draw(await self._state(committee_id), month)

    async def eligible_winners(self, committee_id: int, month: int) -> list[Shareholder]:
        return eligible_winners(await self._state(committee_id), month)

    async def list_draws(self, committee_id: int) -> list[Draw]:
        await require(self._store, Collection.COMMITTEES, committee_id)
        draws = await list_for_committee(self._store, Collection.DRAWS, committee_id)
        return sorted(draws, key=lambda d: d.month)

    async def conduct_draw(
        self,
        committee_id: int,
        month: int,
        winner: ShareholderRef,
        draw_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Draw:
        """
        Record the winner of a month's draw.

        Raises:
            NotFoundError: If the committee does not exist
            ConflictError: If the month cannot be drawn or the winner is
                not eligible
        """

        async def body(tx: StorageTransaction) -> Draw:
            state = await load_committee_state(tx, committee_id)
            if not can_conduct_draw(state, month):
                if draw_state(state, month) == DrawState.DRAWN:
                    raise ConflictError(f"Month {month} has already been drawn")
                raise ConflictError(
                    f"Month {month} cannot be drawn until every shareholder has paid"
                )
            if winner not in eligible_winners(state, month):
                raise ConflictError(
                    f"{winner.kind.value} {winner.id} is not eligible for month {month}"
                )

            draw = Draw(
                committee_id=committee_id,
                month=month,
                winner_id=winner.id,
                winner_type=winner.kind,
                draw_date=draw_date or date.today(),
            )
            draw.id = await tx.create(Collection.DRAWS, draw.to_record())
            return draw

        draw = await self._store.run_transaction(ALL_COLLECTIONS, body)

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.draw_conducted(
                    draw_id=draw.id,
                    committee_id=committee_id,
                    month=month,
                    winner=f"{winner.kind.value}-{winner.id}",
                    correlation_id=correlation_id,
                )
            )
        return draw

    async def update_draw_winner(
        self,
        committee_id: int,
        month: int,
        winner: ShareholderRef,
        correlation_id: Optional[UUID] = None,
    ) -> Draw:
        """
        Change the winner of an existing draw.

        Raises:
            NotFoundError: If the committee or the month's draw does not exist
            ConflictError: If the new winner is not eligible
        """

        async def body(tx: StorageTransaction) -> tuple[Draw, ShareholderRef]:
            state = await load_committee_state(tx, committee_id)
            draw = calculator.draw_for_month(state.draws, month)
            if draw is None:
                raise NotFoundError(f"No draw for month {month} in committee {committee_id}")
            if winner not in eligible_winners(state, month):
                raise ConflictError(
                    f"{winner.kind.value} {winner.id} is not eligible for month {month}"
                )

            previous = draw.winner
            draw.winner_id = winner.id
            draw.winner_type = winner.kind
            await tx.replace(Collection.DRAWS, draw.to_record())
            return draw, previous

        draw, previous = await self._store.run_transaction(ALL_COLLECTIONS, body)

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.draw_updated(
                    draw_id=draw.id,
                    committee_id=committee_id,
                    month=month,
                    previous_winner=f"{previous.kind.value}-{previous.id}",
                    winner=f"{winner.kind.value}-{winner.id}",
                    correlation_id=correlation_id,
                )
            )
        return draw
