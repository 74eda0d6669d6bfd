"""
Payment Ledger

Records monthly contributions. Status is derived from the payment date:
paid on or before day 10 of the month is Paid, after that it is Late.
Pending is never written; a shareholder with no row for a month is
pending by definition.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from committee_ledger.audit import AuditLogger
from committee_ledger.config import get_settings
from committee_ledger.ledger import calculator
from committee_ledger.ledger.records import (
    Reader,
    list_for_committee,
    require,
)
from committee_ledger.models.audit import AuditEventBuilder
from committee_ledger.models.ledger import (
    Payment,
    PaymentCell,
    PaymentStatus,
    ShareholderRef,
)
from committee_ledger.services.storage import (
    Collection,
    ConflictError,
    EntityStore,
    Index,
    NotFoundError,
    StorageTransaction,
)


PAYMENT_COLLECTIONS = [
    Collection.COMMITTEES,
    Collection.MEMBERS,
    Collection.PAIRS,
    Collection.PAYMENTS,
]


class PaymentLedger:
    """Records and reads shareholder payments."""

    def __init__(
        self,
        store: EntityStore,
        audit_logger: Optional[AuditLogger] = None,
        due_day: Optional[int] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._due_day = due_day or get_settings().app.payment_due_day

    async def record_payment(
        self,
        committee_id: int,
        payer: ShareholderRef,
        month: int,
        paid_on: date,
        correlation_id: Optional[UUID] = None,
    ) -> Payment:
        """
        Record (or re-record) a shareholder's payment for a month.

        Submitting again for the same shareholder and month updates the
        existing row instead of adding a second one.

        Raises:
            NotFoundError: If the committee or shareholder does not exist
            ConflictError: If the month is outside the committee cycle
        """

        async def body(tx: StorageTransaction) -> Payment:
            committee = await require(tx, Collection.COMMITTEES, committee_id)
            members = await list_for_committee(tx, Collection.MEMBERS, committee_id)
            pairs = await list_for_committee(tx, Collection.PAIRS, committee_id)

            holders = calculator.shareholders(members, pairs)
            if payer not in holders:
                raise NotFoundError(
                    f"No {payer.kind.value} shareholder {payer.id} in committee {committee_id}"
                )
            months = len(holders)
            if not 0 <= month < months:
                raise ConflictError(
                    f"Month {month} is outside the {months}-month cycle"
                )

            status = calculator.payment_status_for(
                committee.start_date, month, paid_on, self._due_day
            )
            existing = await self._find(tx, committee_id, payer, month)
            if existing is not None:
                existing.status = status
                existing.paid_on = paid_on
                await tx.replace(Collection.PAYMENTS, existing.to_record())
                return existing

            payment = Payment(
                committee_id=committee_id,
                payer_id=payer.id,
                payer_type=payer.kind,
                month=month,
                status=status,
                paid_on=paid_on,
            )
            payment.id = await tx.create(Collection.PAYMENTS, payment.to_record())
            return payment

        payment = await self._store.run_transaction(PAYMENT_COLLECTIONS, body)

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.payment_recorded(
                    payment_id=payment.id,
                    committee_id=committee_id,
                    payer=f"{payer.kind.value}-{payer.id}",
                    month=month,
                    status=payment.status.value,
                    correlation_id=correlation_id,
                )
            )
        return payment

    async def _find(
        self,
        reader: Reader,
        committee_id: int,
        payer: ShareholderRef,
        month: int,
    ) -> Optional[Payment]:
        records = await reader.get_by_index(
            Collection.PAYMENTS, Index.PAYER, (payer.id, payer.kind)
        )
        payments = [
            Payment.from_record(r) for r in records if r.get("committeeId") == committee_id
        ]
        return calculator.find_payment(payments, payer, month)

    async def payment_for(
        self,
        committee_id: int,
        payer: ShareholderRef,
        month: int,
    ) -> Optional[Payment]:
        """The payment row for (payer, month); None means Pending."""
        return await self._find(self._store, committee_id, payer, month)

    async def payment_status(
        self,
        committee_id: int,
        payer: ShareholderRef,
        month: int,
    ) -> PaymentStatus:
        payment = await self.payment_for(committee_id, payer, month)
        return payment.status if payment else PaymentStatus.PENDING

    async def list_payments(self, committee_id: int) -> list[Payment]:
        await require(self._store, Collection.COMMITTEES, committee_id)
        return await list_for_committee(self._store, Collection.PAYMENTS, committee_id)

    async def payment_grid(self, committee_id: int) -> list[PaymentCell]:
        """Status of every shareholder for every month of the cycle."""

        async def body(tx: StorageTransaction) -> list[PaymentCell]:
            await require(tx, Collection.COMMITTEES, committee_id)
            members = await list_for_committee(tx, Collection.MEMBERS, committee_id)
            pairs = await list_for_committee(tx, Collection.PAIRS, committee_id)
            payments = await list_for_committee(tx, Collection.PAYMENTS, committee_id)
            holders = calculator.shareholders(members, pairs)
            return calculator.payment_grid(holders, payments, len(holders))

        return await self._store.run_transaction(PAYMENT_COLLECTIONS, body)
