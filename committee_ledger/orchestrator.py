"""
Main Orchestrator for Committee Ledger

This module ties together all the components behind one facade that the
UI talks to:
1. Committees (create → edit → summarize → delete)
2. Membership (add members, pair half shares, edit, delete)
3. Monthly cycle (record payments → conduct draw → edit winner)
4. Backup (export ↔ import)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every component shares the one injected store
- Every multi-step change runs inside a single store transaction
- Every change is audited, and so is every rejected change

The UI re-reads whatever it displays after a call returns; nothing here
caches state between calls.
"""

from datetime import date
from typing import Awaitable, Optional, TypeVar
from uuid import UUID

from committee_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from committee_ledger.config import Settings, get_settings
from committee_ledger.ledger import (
    BackupService,
    CascadeManager,
    CommitteeRegistry,
    DrawEligibilityEngine,
    PairingEngine,
    PaymentLedger,
)
from committee_ledger.models.ledger import (
    CascadeResult,
    Committee,
    CommitteeState,
    CommitteeSummary,
    Draw,
    DrawState,
    LedgerSnapshot,
    Member,
    MonthSlot,
    Pair,
    Payment,
    PaymentCell,
    PaymentStatus,
    Shareholder,
    ShareholderRef,
    ShareType,
)
from committee_ledger.services.storage import EntityStore, LedgerError, create_store


T = TypeVar("T")


class CommitteeLedgerService:
    """
    UI-facing API over one entity store.

    Every mutating call takes an optional correlation_id; one is created
    when it is not given so all audit events of the call can be tied
    together.
    """

    def __init__(
        self,
        store: EntityStore,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        due_day = settings.app.payment_due_day

        self._store = store
        self._audit_logger = audit_logger
        self._committees = CommitteeRegistry(store, audit_logger, due_day=due_day)
        self._pairing = PairingEngine(store, audit_logger)
        self._payments = PaymentLedger(store, audit_logger, due_day=due_day)
        self._draws = DrawEligibilityEngine(store, audit_logger)
        self._cascade = CascadeManager(store, audit_logger)
        self._backup = BackupService(store, audit_logger)

    @property
    def store(self) -> EntityStore:
        return self._store

    async def _guarded(
        self,
        operation: str,
        call: Awaitable[T],
        correlation_id: UUID,
    ) -> T:
        """Await a ledger call, auditing it if it is rejected."""
        try:
            return await call
        except LedgerError as e:
            if self._audit_logger:
                await self._audit_logger.log_operation_failed(
                    operation=operation,
                    error=e,
                    correlation_id=correlation_id,
                )
            raise

    # =========================================================================
    # COMMITTEES
    # =========================================================================

    async def create_committee(
        self,
        name: str,
        contribution: int,
        start_date: date,
        allow_half_share: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Committee:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "create_committee",
            self._committees.create_committee(
                name, contribution, start_date, allow_half_share, correlation_id
            ),
            correlation_id,
        )

    async def update_committee(
        self,
        committee_id: int,
        name: Optional[str] = None,
        contribution: Optional[int] = None,
        start_date: Optional[date] = None,
        allow_half_share: Optional[bool] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Committee:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "update_committee",
            self._committees.update_committee(
                committee_id,
                name=name,
                contribution=contribution,
                start_date=start_date,
                allow_half_share=allow_half_share,
                correlation_id=correlation_id,
            ),
            correlation_id,
        )

    async def delete_committee(
        self,
        committee_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> CascadeResult:
        """Delete a committee and everything recorded under it."""
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "delete_committee",
            self._cascade.delete_committee(committee_id, correlation_id),
            correlation_id,
        )

    async def get_committee(self, committee_id: int) -> Committee:
        return await self._committees.get_committee(committee_id)

    async def list_committees(self) -> list[Committee]:
        return await self._committees.list_committees()

    async def load_state(self, committee_id: int) -> CommitteeState:
        return await self._committees.load_state(committee_id)

    async def committee_summary(self, committee_id: int) -> CommitteeSummary:
        return await self._committees.committee_summary(committee_id)

    async def list_committee_summaries(self) -> list[CommitteeSummary]:
        return await self._committees.list_committee_summaries()

    async def shareholders(self, committee_id: int) -> list[Shareholder]:
        return await self._committees.shareholders(committee_id)

    async def month_calendar(self, committee_id: int) -> list[MonthSlot]:
        return await self._committees.month_calendar(committee_id)

    # =========================================================================
    # MEMBERS & PAIRS
    # =========================================================================

    async def add_member(
        self,
        committee_id: int,
        name: str,
        phone: str = "",
        share_type: ShareType = ShareType.FULL,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Member, Optional[Pair]]:
        """
        Add a member; a half share is paired with the waiting one if any.

        Returns:
            (member, pair) - pair is None unless this call formed one
        """
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "add_member",
            self._pairing.add_member(committee_id, name, phone, share_type, correlation_id),
            correlation_id,
        )

    async def update_member(
        self,
        member_id: int,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Member:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "update_member",
            self._pairing.update_member(member_id, name, phone, correlation_id),
            correlation_id,
        )

    async def delete_member(
        self,
        member_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> CascadeResult:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "delete_member",
            self._cascade.delete_member(member_id, correlation_id),
            correlation_id,
        )

    async def get_member(self, member_id: int) -> Member:
        return await self._pairing.get_member(member_id)

    async def list_members(self, committee_id: int) -> list[Member]:
        return await self._pairing.list_members(committee_id)

    async def waiting_member(self, committee_id: int) -> Optional[Member]:
        return await self._pairing.waiting_member(committee_id)

    async def partner_of(self, member_id: int) -> Optional[Member]:
        return await self._pairing.partner_of(member_id)

    async def update_pair(
        self,
        pair_id: int,
        member1_name: Optional[str] = None,
        member1_phone: Optional[str] = None,
        member2_name: Optional[str] = None,
        member2_phone: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Pair:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "update_pair",
            self._pairing.update_pair(
                pair_id,
                member1_name=member1_name,
                member1_phone=member1_phone,
                member2_name=member2_name,
                member2_phone=member2_phone,
                correlation_id=correlation_id,
            ),
            correlation_id,
        )

    async def delete_pair(
        self,
        pair_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> CascadeResult:
        """Delete a pair and both of its members."""
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "delete_pair",
            self._cascade.delete_pair(pair_id, correlation_id),
            correlation_id,
        )

    async def get_pair(self, pair_id: int) -> Pair:
        return await self._pairing.get_pair(pair_id)

    async def list_pairs(self, committee_id: int) -> list[Pair]:
        return await self._pairing.list_pairs(committee_id)

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    async def record_payment(
        self,
        committee_id: int,
        payer: ShareholderRef,
        month: int,
        paid_on: date,
        correlation_id: Optional[UUID] = None,
    ) -> Payment:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "record_payment",
            self._payments.record_payment(committee_id, payer, month, paid_on, correlation_id),
            correlation_id,
        )

    async def payment_for(
        self,
        committee_id: int,
        payer: ShareholderRef,
        month: int,
    ) -> Optional[Payment]:
        return await self._payments.payment_for(committee_id, payer, month)

    async def payment_status(
        self,
        committee_id: int,
        payer: ShareholderRef,
        month: int,
    ) -> PaymentStatus:
        return await self._payments.payment_status(committee_id, payer, month)

    async def list_payments(self, committee_id: int) -> list[Payment]:
        return await self._payments.list_payments(committee_id)

    async def payment_grid(self, committee_id: int) -> list[PaymentCell]:
        return await self._payments.payment_grid(committee_id)

    # =========================================================================
    # DRAWS
    # =========================================================================

    async def draw_state(self, committee_id: int, month: int) -> DrawState:
        return await self._draws.draw_state(committee_id, month)

    async def can_conduct_draw(self, committee_id: int, month: int) -> bool:
        return await self._draws.can_conduct_draw(committee_id, month)

    async def eligible_winners(self, committee_id: int, month: int) -> list[Shareholder]:
        return await self._draws.eligible_winners(committee_id, month)

    async def list_draws(self, committee_id: int) -> list[Draw]:
        return await self._draws.list_draws(committee_id)

    async def conduct_draw(
        self,
        committee_id: int,
        month: int,
        winner: ShareholderRef,
        draw_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Draw:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "conduct_draw",
            self._draws.conduct_draw(committee_id, month, winner, draw_date, correlation_id),
            correlation_id,
        )

    async def update_draw_winner(
        self,
        committee_id: int,
        month: int,
        winner: ShareholderRef,
        correlation_id: Optional[UUID] = None,
    ) -> Draw:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "update_draw_winner",
            self._draws.update_draw_winner(committee_id, month, winner, correlation_id),
            correlation_id,
        )

    # =========================================================================
    # BACKUP
    # =========================================================================

    async def export_snapshot(self, correlation_id: Optional[UUID] = None) -> LedgerSnapshot:
        return await self._backup.export_snapshot(correlation_id or create_correlation_id())

    async def export_json(self, correlation_id: Optional[UUID] = None) -> str:
        """The whole ledger as a backup document (writing it out is up to the caller)."""
        return await self._backup.export_json(correlation_id or create_correlation_id())

    async def import_snapshot(
        self,
        snapshot: LedgerSnapshot,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, int]:
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "import_snapshot",
            self._backup.import_snapshot(snapshot, correlation_id),
            correlation_id,
        )

    async def import_json(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, int]:
        """
        Replace all data with a backup document.

        Malformed documents are rejected before anything is touched.
        """
        correlation_id = correlation_id or create_correlation_id()
        return await self._guarded(
            "import_json",
            self._backup.import_json(text, correlation_id),
            correlation_id,
        )


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[CommitteeLedgerService, EntityStore]:
    """
    Factory function to create all application components.

    The store is returned unopened; the caller opens it (or uses it as an
    async context manager) before the first call.

    Returns:
        (ledger_service, store)
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)

    store = create_store(settings.storage)
    audit_logger = AuditLogger()
    service = CommitteeLedgerService(store, audit_logger, settings)
    return service, store
