"""
Audit Models for Committee Ledger

Every change to a committee's books is logged for audit purposes.
This provides:
1. Traceability of who was added, paid, or drawn and when
2. Debugging information when an operation is rejected
3. A record of destructive actions (cascading deletes, imports)

DESIGN DECISION: Audit events are logged, never stored in the entity
store. The backup document holds exactly the five ledger collections.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Committees
    COMMITTEE_CREATED = "committee_created"
    COMMITTEE_UPDATED = "committee_updated"
    COMMITTEE_DELETED = "committee_deleted"

    # Membership
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"
    MEMBER_DELETED = "member_deleted"
    PAIR_CREATED = "pair_created"
    PAIR_UPDATED = "pair_updated"
    PAIR_DELETED = "pair_deleted"

    # Money
    PAYMENT_RECORDED = "payment_recorded"
    DRAW_CONDUCTED = "draw_conducted"
    DRAW_UPDATED = "draw_updated"

    # Backup
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"

    # Failures
    OPERATION_FAILED = "operation_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every mutating ledger operation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection of the entity (e.g., 'members', 'draws')"
    )
    entity_id: Optional[int] = None
    committee_id: Optional[int] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one user action)"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "committee_id": self.committee_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.member_added(member, correlation_id)
        event = AuditEventBuilder.payment_recorded(payment, correlation_id)
    """

    @staticmethod
    def committee_created(
        committee_id: int,
        name: str,
        contribution: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMITTEE_CREATED,
            entity_type="committees",
            entity_id=committee_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Committee created: {name}",
            details={"contribution": contribution},
        )

    @staticmethod
    def committee_updated(
        committee_id: int,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMITTEE_UPDATED,
            entity_type="committees",
            entity_id=committee_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Committee {committee_id} updated",
            details={"changes": changes},
        )

    @staticmethod
    def committee_deleted(
        committee_id: int,
        removed: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMITTEE_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="committees",
            entity_id=committee_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Committee {committee_id} deleted with all its records",
            details={"removed": removed},
        )

    @staticmethod
    def member_added(
        member_id: int,
        committee_id: int,
        share_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            entity_type="members",
            entity_id=member_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"{share_type} share member added",
            details={"share_type": share_type},
        )

    @staticmethod
    def member_updated(
        member_id: int,
        committee_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_UPDATED,
            entity_type="members",
            entity_id=member_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Member {member_id} details updated",
        )

    @staticmethod
    def member_deleted(
        member_id: int,
        committee_id: int,
        removed: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="members",
            entity_id=member_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Member {member_id} deleted",
            details={"removed": removed},
        )

    @staticmethod
    def pair_created(
        pair_id: int,
        committee_id: int,
        member_ids: tuple[int, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAIR_CREATED,
            entity_type="pairs",
            entity_id=pair_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Half shares {member_ids[0]} and {member_ids[1]} paired",
            details={"member_ids": list(member_ids)},
        )

    @staticmethod
    def pair_updated(
        pair_id: int,
        committee_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAIR_UPDATED,
            entity_type="pairs",
            entity_id=pair_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Pair {pair_id} details updated",
        )

    @staticmethod
    def pair_deleted(
        pair_id: int,
        committee_id: int,
        removed: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAIR_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="pairs",
            entity_id=pair_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Pair {pair_id} deleted with both members",
            details={"removed": removed},
        )

    @staticmethod
    def payment_recorded(
        payment_id: int,
        committee_id: int,
        payer: str,
        month: int,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="payments",
            entity_id=payment_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Payment for month {month} recorded as {status}",
            details={"payer": payer, "month": month, "status": status},
        )

    @staticmethod
    def draw_conducted(
        draw_id: int,
        committee_id: int,
        month: int,
        winner: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAW_CONDUCTED,
            entity_type="draws",
            entity_id=draw_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Draw for month {month} won by {winner}",
            details={"month": month, "winner": winner},
        )

    @staticmethod
    def draw_updated(
        draw_id: int,
        committee_id: int,
        month: int,
        previous_winner: str,
        winner: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAW_UPDATED,
            severity=AuditSeverity.WARNING,
            entity_type="draws",
            entity_id=draw_id,
            committee_id=committee_id,
            correlation_id=correlation_id,
            description=f"Winner for month {month} changed",
            details={
                "month": month,
                "previous_winner": previous_winner,
                "winner": winner,
            },
        )

    @staticmethod
    def data_exported(
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            correlation_id=correlation_id,
            description="Ledger exported",
            details={"counts": counts},
        )

    @staticmethod
    def data_imported(
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="Ledger replaced from backup",
            details={"counts": counts},
        )

    @staticmethod
    def operation_failed(
        operation: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Operation failed: {operation}",
            details={"operation": operation},
            error_type=error_type,
            error_message=error_message,
        )
