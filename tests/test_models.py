"""
Tests for Committee Ledger

Test strategy:
1. Unit tests for individual components (models, calculations)
2. Engine tests against the in-memory store
3. Storage contract tests against both store implementations
"""

import pytest
from datetime import date
from uuid import uuid4

from committee_ledger.models.ledger import (
    CascadeResult,
    Committee,
    Draw,
    LedgerSnapshot,
    Member,
    Pair,
    PayerType,
    Payment,
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


class TestLedgerModels:
    """Tests for the stored record models."""

    def test_committee_creation(self):
        """Test Committee model creation."""
        committee = Committee(
            name="Office Committee",
            contribution=5000,
            start_date=date(2024, 1, 1),
        )
        assert committee.name == "Office Committee"
        assert committee.allow_half_share is False
        assert committee.id is None

    def test_committee_strips_whitespace(self):
        """Test that whitespace is stripped from the committee name."""
        committee = Committee(name="  Family  ", contribution=100, start_date=date(2024, 1, 1))
        assert committee.name == "Family"

    def test_committee_rejects_non_positive_contribution(self):
        """Test that contribution must be positive."""
        with pytest.raises(ValueError):
            Committee(name="Test", contribution=0, start_date=date(2024, 1, 1))

    def test_committee_rejects_empty_name(self):
        """Test that a blank name is rejected."""
        with pytest.raises(ValueError):
            Committee(name="   ", contribution=100, start_date=date(2024, 1, 1))

    def test_committee_record_uses_camel_case(self):
        """Test that stored records use the backup file's key names."""
        committee = Committee(
            id=3,
            name="Test",
            contribution=100,
            start_date=date(2024, 3, 15),
            allow_half_share=True,
        )
        record = committee.to_record()
        assert record == {
            "id": 3,
            "name": "Test",
            "contribution": 100,
            "startDate": "2024-03-15",
            "allowHalfShare": True,
        }

    def test_committee_from_record(self):
        """Test loading a committee from a camelCase record."""
        committee = Committee.from_record({
            "id": 1,
            "name": "Test",
            "contribution": 100,
            "startDate": "2024-01-01",
            "allowHalfShare": False,
        })
        assert committee.start_date == date(2024, 1, 1)

    def test_member_record_omits_missing_pair(self):
        """Test that an unpaired member has no pairId key."""
        member = Member(committee_id=1, name="Ali", share_type=ShareType.HALF)
        record = member.to_record()
        assert "pairId" not in record
        assert record["shareType"] == "Half"
        assert member.is_waiting is True

    def test_full_member_cannot_have_pair(self):
        """Test that a full-share member cannot belong to a pair."""
        with pytest.raises(ValueError, match="full-share member cannot belong to a pair"):
            Member(committee_id=1, name="Ali", share_type=ShareType.FULL, pair_id=4)

    def test_paired_half_member_is_not_waiting(self):
        """Test is_waiting once a pair is set."""
        member = Member(committee_id=1, name="Ali", share_type=ShareType.HALF, pair_id=2)
        assert member.is_waiting is False

    def test_pair_requires_distinct_members(self):
        """Test a pair cannot be made of one member twice."""
        with pytest.raises(ValueError, match="two distinct members"):
            Pair(committee_id=1, member1_id=5, member2_id=5, name="A & A")

    def test_pair_display_name(self):
        """Test pair display name."""
        assert Pair.display_name("Ali", "Sara") == "Ali & Sara"

    def test_payment_settled_statuses(self):
        """Test that Paid and Late count as settled."""
        base = dict(committee_id=1, payer_id=1, payer_type=PayerType.MEMBER, month=0)
        assert Payment(status=PaymentStatus.PAID, **base).is_settled
        assert Payment(status=PaymentStatus.LATE, **base).is_settled
        assert not Payment(status=PaymentStatus.PENDING, **base).is_settled

    def test_payment_rejects_negative_month(self):
        """Test month index must be >= 0."""
        with pytest.raises(ValueError):
            Payment(
                committee_id=1,
                payer_id=1,
                payer_type=PayerType.MEMBER,
                month=-1,
                status=PaymentStatus.PAID,
            )

    def test_draw_winner_reference(self):
        """Test Draw.winner builds a shareholder reference."""
        draw = Draw(
            committee_id=1,
            month=0,
            winner_id=7,
            winner_type=PayerType.PAIR,
            draw_date=date(2024, 1, 15),
        )
        assert draw.winner == ShareholderRef(kind=PayerType.PAIR, id=7)


class TestShareholders:
    """Tests for the shareholder reference types."""

    def test_ref_equals_named_shareholder(self):
        """Test a bare reference matches the named shareholder."""
        holder = Shareholder(kind=PayerType.MEMBER, id=1, name="Ali")
        assert ShareholderRef(kind=PayerType.MEMBER, id=1) == holder
        assert holder.ref() == holder

    def test_member_and_pair_with_same_id_differ(self):
        """Test that kind is part of the identity."""
        assert ShareholderRef(kind=PayerType.MEMBER, id=1) != ShareholderRef(
            kind=PayerType.PAIR, id=1
        )

    def test_shareholders_hash_by_key(self):
        """Test references and shareholders collapse in a set."""
        refs = {
            ShareholderRef(kind=PayerType.MEMBER, id=1),
            Shareholder(kind=PayerType.MEMBER, id=1, name="Ali"),
        }
        assert len(refs) == 1

    def test_from_pair(self):
        """Test building a shareholder from a pair."""
        pair = Pair(id=2, committee_id=1, member1_id=3, member2_id=4, name="A & B")
        holder = Shareholder.from_pair(pair)
        assert holder.kind == PayerType.PAIR
        assert holder.name == "A & B"


class TestSnapshotModel:
    """Tests for the backup snapshot model."""

    def test_snapshot_requires_all_collections(self):
        """Test every collection key is required."""
        with pytest.raises(ValueError):
            LedgerSnapshot.model_validate({"committees": [], "members": []})

    def test_snapshot_rejects_extra_keys(self):
        """Test unknown top-level keys are rejected."""
        with pytest.raises(ValueError):
            LedgerSnapshot.model_validate({
                "committees": [], "members": [], "pairs": [],
                "payments": [], "draws": [], "settings": [],
            })

    def test_snapshot_record_count(self):
        """Test record_count sums every collection."""
        snapshot = LedgerSnapshot(
            committees=[Committee(id=1, name="A", contribution=1, start_date=date(2024, 1, 1))],
            members=[Member(id=1, committee_id=1, name="Ali")],
            pairs=[],
            payments=[],
            draws=[],
        )
        assert snapshot.record_count == 2
        assert snapshot.to_document()["members"][0]["committeeId"] == 1

    def test_cascade_result_total(self):
        """Test CascadeResult.total."""
        assert CascadeResult(members=2, pairs=1, payments=2).total == 5


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            description="Member added",
        )
        assert event.event_type == AuditEventType.MEMBER_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            description="Payment recorded",
            details={"payer": "member-1", "month": 0},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "payment_recorded"
        assert log_dict["details"]["payer"] == "member-1"
        assert log_dict["correlation_id"] is None

    def test_audit_event_builder_committee_deleted(self):
        """Test AuditEventBuilder.committee_deleted."""
        correlation_id = uuid4()
        event = AuditEventBuilder.committee_deleted(
            committee_id=4,
            removed={"members": 3},
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.COMMITTEE_DELETED
        assert event.entity_id == 4
        assert event.severity == AuditSeverity.WARNING
        assert event.correlation_id == correlation_id

    def test_audit_event_builder_operation_failed(self):
        """Test AuditEventBuilder.operation_failed."""
        event = AuditEventBuilder.operation_failed(
            operation="conduct_draw",
            error_type="ConflictError",
            error_message="Month 0 has already been drawn",
        )
        assert event.event_type == AuditEventType.OPERATION_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.error_type == "ConflictError"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
