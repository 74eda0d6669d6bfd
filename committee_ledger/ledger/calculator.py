"""
Committee Ledger Calculations

DESIGN DECISION: Everything here is a pure function of stored records.
Duration, draw amount, due dates, payment status and progress are derived
on every read and never written back, so they can never drift from the
membership they are computed from.

Key rules:
- A shareholder is a full-share member or a pair. A half-share member
  waiting for a partner is NOT a shareholder.
- Duration (months) = number of shareholders.
- Draw amount = contribution x duration.
- Month i of the cycle is the calendar month (start month + i); its
  contribution is due on day 10 of that month.
"""

import calendar
from datetime import date
from typing import Iterable, Optional, Sequence

from committee_ledger.models.ledger import (
    CommitteeState,
    CommitteeSummary,
    Draw,
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


DEFAULT_DUE_DAY = 10


# =============================================================================
# SHAREHOLDERS & DURATION
# =============================================================================

def shareholders(members: Iterable[Member], pairs: Iterable[Pair]) -> list[Shareholder]:
    """
    Full-share members plus pairs, sorted by name.

    Unpaired half-share members are left out until they are paired.
    """
    result = [
        Shareholder.from_member(m) for m in members if m.share_type == ShareType.FULL
    ]
    result.extend(Shareholder.from_pair(p) for p in pairs)
    return sorted(result, key=lambda s: (s.name.casefold(), s.kind.value, s.id))


def duration(members: Iterable[Member], pairs: Iterable[Pair]) -> int:
    """Months in the cycle: count(full members) + count(pairs)."""
    full = sum(1 for m in members if m.share_type == ShareType.FULL)
    return full + len(list(pairs))


def draw_amount(contribution: int, months: int) -> int:
    """Pool paid to each month's winner."""
    return contribution * months


def progress(draws_completed: int, months: int) -> float:
    """Fraction of the cycle drawn so far, in [0, 1]."""
    if months <= 0:
        return 0.0
    return min(draws_completed / months, 1.0)


# =============================================================================
# CALENDAR
# =============================================================================

def month_start(start_date: date, month: int) -> date:
    """First day of calendar month (start month + month)."""
    if month < 0:
        raise ValueError(f"Month index must be >= 0, got {month}")
    years, month_zero = divmod(start_date.month - 1 + month, 12)
    return date(start_date.year + years, month_zero + 1, 1)


def due_date(start_date: date, month: int, due_day: int = DEFAULT_DUE_DAY) -> date:
    """Contribution due date for a month of the cycle."""
    return month_start(start_date, month).replace(day=due_day)


def month_label(start_date: date, month: int) -> str:
    first = month_start(start_date, month)
    return f"{calendar.month_abbr[first.month]} {first.year}"


def month_calendar(
    start_date: date,
    months: int,
    due_day: int = DEFAULT_DUE_DAY,
) -> list[MonthSlot]:
    return [
        MonthSlot(
            index=i,
            label=month_label(start_date, i),
            starts_on=month_start(start_date, i),
            due_on=due_date(start_date, i, due_day),
        )
        for i in range(months)
    ]


# =============================================================================
# PAYMENTS
# =============================================================================

def payment_status_for(
    start_date: date,
    month: int,
    paid_on: date,
    due_day: int = DEFAULT_DUE_DAY,
) -> PaymentStatus:
    """
    Status of a payment made on paid_on for the given month.

    Paying on the due date itself is still on time.
    """
    if paid_on > due_date(start_date, month, due_day):
        return PaymentStatus.LATE
    return PaymentStatus.PAID


def find_payment(
    payments: Iterable[Payment],
    payer: ShareholderRef,
    month: int,
) -> Optional[Payment]:
    """The payment row for (payer, month), or None when still pending."""
    for payment in payments:
        if payment.payer == payer and payment.month == month:
            return payment
    return None


def settled_count(payments: Iterable[Payment], month: int) -> int:
    """Number of Paid or Late payments recorded for a month."""
    return sum(1 for p in payments if p.month == month and p.is_settled)


def payment_grid(
    holders: Sequence[Shareholder],
    payments: Sequence[Payment],
    months: int,
) -> list[PaymentCell]:
    """One cell per shareholder per month; cells with no row are Pending."""
    cells = []
    for holder in holders:
        for month in range(months):
            payment = find_payment(payments, holder, month)
            cells.append(
                PaymentCell(
                    shareholder=holder,
                    month=month,
                    status=payment.status if payment else PaymentStatus.PENDING,
                    paid_on=payment.paid_on if payment else None,
                )
            )
    return cells


# =============================================================================
# SUMMARY
# =============================================================================

def waiting_member(members: Iterable[Member]) -> Optional[Member]:
    """
    The half-share member waiting for a partner.

    Normally there is at most one. If imported data holds several, the
    lowest id is the one that gets paired next.
    """
    waiting = [m for m in members if m.is_waiting]
    return min(waiting, key=lambda m: m.id) if waiting else None


def summarize(state: CommitteeState) -> CommitteeSummary:
    months = duration(state.members, state.pairs)
    return CommitteeSummary(
        committee=state.committee,
        duration=months,
        draw_amount=draw_amount(state.committee.contribution, months),
        draws_completed=len(state.draws),
        progress=progress(len(state.draws), months),
        waiting_member=waiting_member(state.members),
    )


def draw_for_month(draws: Iterable[Draw], month: int) -> Optional[Draw]:
    for draw in draws:
        if draw.month == month:
            return draw
    return None
