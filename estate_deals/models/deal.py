"""Deal and commission models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from estate_deals.models.enums import (
    CommissionPolicy,
    CommissionStatus,
    DealStatus,
    PartyRole,
    SplitPolicy,
)


@dataclass(frozen=True)
class SplitParty:
    """Party receiving a share of a deal's commission.

    A closed variant: the agency itself, the primary (listing) agent, the
    secondary (buying) agent, or a named agent in a custom team split.
    """

    role: PartyRole
    agent_id: str | None = None

    def __post_init__(self) -> None:
        if self.role == PartyRole.AGENCY and self.agent_id is not None:
            raise ValueError("Agency party cannot reference an agent")
        if self.role != PartyRole.AGENCY and not self.agent_id:
            raise ValueError(f"{self.role.value} party requires an agent id")

    @classmethod
    def agency(cls) -> "SplitParty":
        return cls(PartyRole.AGENCY)

    @classmethod
    def primary(cls, agent_id: str) -> "SplitParty":
        return cls(PartyRole.PRIMARY_AGENT, agent_id)

    @classmethod
    def secondary(cls, agent_id: str) -> "SplitParty":
        return cls(PartyRole.SECONDARY_AGENT, agent_id)

    @classmethod
    def named(cls, agent_id: str) -> "SplitParty":
        return cls(PartyRole.NAMED_AGENT, agent_id)

    @property
    def key(self) -> str:
        """Identity used for duplicate detection within one split."""
        return self.agent_id or self.role.value


@dataclass
class CommissionAuditRecord:
    """Append-only trail of workflow actions on a split entry."""

    action: str  # computed, approved, rejected, overridden, paid, rebalanced
    actor: str | None
    at: datetime
    note: str | None = None
    amount: Decimal | None = None


@dataclass
class CommissionSplitEntry:
    """One party's share of a deal's total commission."""

    entry_id: str
    party: SplitParty
    percentage: Decimal
    amount: Decimal
    status: CommissionStatus = CommissionStatus.PENDING
    rejection_reason: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    override_amount: Decimal | None = None  # Original computed amount, kept for audit
    override_reason: str | None = None
    overridden_by: str | None = None
    overridden_at: datetime | None = None
    audit: list[CommissionAuditRecord] = field(default_factory=list)

    @property
    def is_overridden(self) -> bool:
        return self.override_amount is not None


@dataclass
class CommissionBlock:
    """Commission terms of a deal."""

    rate: Decimal  # Percent of agreed price
    total: Decimal
    split_policy: SplitPolicy
    entries: list[CommissionSplitEntry] = field(default_factory=list)

    def find_entry(self, entry_id: str) -> CommissionSplitEntry | None:
        for entry in self.entries:
            if entry.entry_id == entry_id:
                return entry
        return None


@dataclass
class PartyRef:
    """Buyer or seller of a deal."""

    party_id: str
    name: str


@dataclass
class DealTimeline:
    accepted_date: date
    expected_closing_date: date
    actual_closing_date: date | None = None


@dataclass
class Deal:
    """Deal created from exactly one accepted offer."""

    deal_id: str
    deal_number: str  # DEAL-YYYY-NNN
    offer_id: str
    cycle_id: str
    property_id: str
    agreed_price: Decimal
    seller: PartyRef
    buyer: PartyRef
    policy: CommissionPolicy
    commission: CommissionBlock
    timeline: DealTimeline
    status: DealStatus = DealStatus.ACTIVE
    buyer_requirement_id: str | None = None
    schedule_id: str | None = None
    shadow_property_id: str | None = None
    ownership_transferred: bool = False
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == DealStatus.ACTIVE
