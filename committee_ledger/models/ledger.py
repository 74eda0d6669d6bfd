"""
Core Data Models for Committee Ledger

These models define the schemas for every record kept by the ledger.
They are designed to:
1. Enforce the per-record invariants at runtime
2. Serialize to the exact shape stored in the entity store and backup file
3. Keep derived values (duration, draw amount, progress) OUT of storage

DESIGN DECISION: Python code uses snake_case, but records on the wire use
camelCase keys (committeeId, pairId, ...). Every model serializes with
by_alias=True so a stored record and a backup record look the same.
"""

from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ShareType(str, Enum):
    """How much of the standard contribution a member pays."""
    FULL = "Full"
    HALF = "Half"


class PayerType(str, Enum):
    """
    Which kind of shareholder a payment or draw refers to.

    A payment/draw never links to a member or pair directly. It stores
    (id, type) instead, since a shareholder is either one.
    """
    MEMBER = "member"
    PAIR = "pair"


class PaymentStatus(str, Enum):
    """
    Payment status for one shareholder in one month.

    PENDING is never stored: a missing payment row IS the pending state.
    """
    PAID = "Paid"
    PENDING = "Pending"
    LATE = "Late"


class DrawState(str, Enum):
    """Per-month draw state machine: NO_DRAW -> DRAWN, never back."""
    NO_DRAW = "no_draw"
    DRAWN = "drawn"


# =============================================================================
# STORED RECORDS
# =============================================================================

class LedgerRecord(BaseModel):
    """Base class for everything kept in the entity store."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: Optional[int] = Field(
        default=None,
        description="Store-assigned id (absent until created)"
    )

    def to_record(self) -> dict[str, Any]:
        """Convert to the plain dict kept by the entity store."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, record: dict[str, Any]):
        return cls.model_validate(record)


class Committee(LedgerRecord):
    """
    A savings committee.

    allow_half_share is fixed at creation; members and pairs already
    depend on it.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Committee name"
    )
    contribution: int = Field(
        ...,
        gt=0,
        description="Monthly contribution per full share"
    )
    start_date: date = Field(
        ...,
        alias="startDate",
        description="Date the committee starts; month 0 is this calendar month"
    )
    allow_half_share: bool = Field(
        default=False,
        alias="allowHalfShare",
        description="Whether members may join with a half share"
    )


class Member(LedgerRecord):
    """
    A person in a committee.

    A half-share member with no pair_id is waiting for a partner and is
    not a shareholder until paired.
    """

    committee_id: int = Field(..., alias="committeeId")
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Member name"
    )
    phone: str = Field(
        default="",
        max_length=32,
        description="Contact number"
    )
    share_type: ShareType = Field(
        default=ShareType.FULL,
        alias="shareType",
    )
    pair_id: Optional[int] = Field(
        default=None,
        alias="pairId",
        description="Pair this half-share member belongs to"
    )

    @model_validator(mode='after')
    def validate_pairing(self) -> 'Member':
        if self.share_type == ShareType.FULL and self.pair_id is not None:
            raise ValueError("A full-share member cannot belong to a pair")
        return self

    @property
    def is_waiting(self) -> bool:
        """Half share with no partner yet."""
        return self.share_type == ShareType.HALF and self.pair_id is None


class Pair(LedgerRecord):
    """Two half-share members acting as one full shareholder."""

    committee_id: int = Field(..., alias="committeeId")
    member1_id: int = Field(..., alias="member1Id")
    member2_id: int = Field(..., alias="member2Id")
    name: str = Field(
        ...,
        min_length=1,
        description="Display name derived from both member names"
    )

    @model_validator(mode='after')
    def validate_members(self) -> 'Pair':
        if self.member1_id == self.member2_id:
            raise ValueError("A pair needs two distinct members")
        return self

    @staticmethod
    def display_name(first: str, second: str) -> str:
        return f"{first} & {second}"

    @property
    def member_ids(self) -> tuple[int, int]:
        return (self.member1_id, self.member2_id)


class Payment(LedgerRecord):
    """A shareholder's contribution for one month of a committee."""

    committee_id: int = Field(..., alias="committeeId")
    payer_id: int = Field(..., alias="payerId")
    payer_type: PayerType = Field(..., alias="payerType")
    month: int = Field(
        ...,
        ge=0,
        description="Zero-based month of the committee cycle"
    )
    status: PaymentStatus
    paid_on: Optional[date] = Field(default=None, alias="paidOn")

    @property
    def payer(self) -> 'ShareholderRef':
        return ShareholderRef(kind=self.payer_type, id=self.payer_id)

    @property
    def is_settled(self) -> bool:
        """Counts towards full collection for the month."""
        return self.status in (PaymentStatus.PAID, PaymentStatus.LATE)


class Draw(LedgerRecord):
    """The prize draw for one month of a committee."""

    committee_id: int = Field(..., alias="committeeId")
    month: int = Field(..., ge=0)
    winner_id: int = Field(..., alias="winnerId")
    winner_type: PayerType = Field(..., alias="winnerType")
    draw_date: date = Field(..., alias="drawDate")

    @property
    def winner(self) -> 'ShareholderRef':
        return ShareholderRef(kind=self.winner_type, id=self.winner_id)


# =============================================================================
# SHAREHOLDERS
# =============================================================================

class ShareholderRef(BaseModel):
    """
    Reference to a shareholder: a full-share member or a pair.

    Equality and hashing use (kind, id) only, so a bare reference matches
    the named Shareholder it points at.
    """
    model_config = ConfigDict(frozen=True)

    kind: PayerType
    id: int

    @property
    def key(self) -> tuple[PayerType, int]:
        return (self.kind, self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShareholderRef):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


class Shareholder(ShareholderRef):
    """A shareholder with its display name."""

    name: str

    @classmethod
    def from_member(cls, member: Member) -> 'Shareholder':
        return cls(kind=PayerType.MEMBER, id=member.id, name=member.name)

    @classmethod
    def from_pair(cls, pair: Pair) -> 'Shareholder':
        return cls(kind=PayerType.PAIR, id=pair.id, name=pair.name)

    def ref(self) -> ShareholderRef:
        return ShareholderRef(kind=self.kind, id=self.id)


# =============================================================================
# DERIVED VIEWS (never stored)
# =============================================================================

class CommitteeState(BaseModel):
    """Everything stored for one committee, loaded together."""

    committee: Committee
    members: list[Member] = Field(default_factory=list)
    pairs: list[Pair] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    draws: list[Draw] = Field(default_factory=list)


class MonthSlot(BaseModel):
    """One month of a committee cycle."""

    index: int = Field(ge=0)
    label: str = Field(description="Short label, e.g. 'Jan 2024'")
    starts_on: date
    due_on: date


class PaymentCell(BaseModel):
    """One cell of the shareholder x month payment grid."""

    shareholder: Shareholder
    month: int = Field(ge=0)
    status: PaymentStatus = PaymentStatus.PENDING
    paid_on: Optional[date] = None


class CommitteeSummary(BaseModel):
    """Headline figures for a committee."""

    committee: Committee
    duration: int = Field(ge=0, description="Months in the cycle")
    draw_amount: int = Field(ge=0, description="Pool paid out each month")
    draws_completed: int = Field(ge=0)
    progress: float = Field(ge=0.0, le=1.0)
    waiting_member: Optional[Member] = None


class CascadeResult(BaseModel):
    """How many records a cascading delete removed, per collection."""

    committees: int = 0
    members: int = 0
    pairs: int = 0
    payments: int = 0
    draws: int = 0

    @property
    def total(self) -> int:
        return self.committees + self.members + self.pairs + self.payments + self.draws


# =============================================================================
# BACKUP
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    Full copy of all five collections.

    This is the backup document: exactly these five keys, each required.
    """
    model_config = ConfigDict(extra="forbid")

    committees: list[Committee]
    members: list[Member]
    pairs: list[Pair]
    payments: list[Payment]
    draws: list[Draw]

    def to_document(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "committees": [c.to_record() for c in self.committees],
            "members": [m.to_record() for m in self.members],
            "pairs": [p.to_record() for p in self.pairs],
            "payments": [p.to_record() for p in self.payments],
            "draws": [d.to_record() for d in self.draws],
        }

    @property
    def record_count(self) -> int:
        return (
            len(self.committees) + len(self.members) + len(self.pairs)
            + len(self.payments) + len(self.draws)
        )
