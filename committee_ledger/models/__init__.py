"""
Data Models Package

This package contains all Pydantic models used in the Committee Ledger.
Every record kept in the entity store conforms to one of these schemas.
"""

from committee_ledger.models.ledger import (
    CascadeResult,
    Committee,
    CommitteeState,
    CommitteeSummary,
    Draw,
    DrawState,
    LedgerRecord,
    LedgerSnapshot,
    Member,
    MonthSlot,
    Pair,
    PayerType,
    Payment,
    PaymentCell,
    PaymentStatus,
    Shareholder,
    ShareholderRef,
    ShareType,
)
from committee_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CascadeResult",
    "Committee",
    "CommitteeState",
    "CommitteeSummary",
    "Draw",
    "DrawState",
    "LedgerRecord",
    "LedgerSnapshot",
    "Member",
    "MonthSlot",
    "Pair",
    "PayerType",
    "Payment",
    "PaymentCell",
    "PaymentStatus",
    "Shareholder",
    "ShareholderRef",
    "ShareType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
