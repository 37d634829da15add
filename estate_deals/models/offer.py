"""Offer models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from estate_deals.models.enums import OfferSource, OfferStatus


@dataclass
class BuyerRef:
    """Buyer identity: an internal requirement or an external name."""

    name: str
    requirement_id: str | None = None
    contact_id: str | None = None

    @property
    def owner_id(self) -> str:
        """Identifier used when the buyer becomes a property owner."""
        return self.contact_id or self.requirement_id or self.name


@dataclass
class OfferStatusChange:
    """Append-only status history entry."""

    status: OfferStatus
    at: datetime
    actor: str | None = None
    notes: str | None = None


@dataclass
class Offer:
    """Offer made against a cycle."""

    offer_id: str
    cycle_id: str
    buyer: BuyerRef
    offer_amount: Decimal
    token_amount: Decimal  # Earnest money, 0 < token <= offer
    source_type: OfferSource = OfferSource.EXTERNAL
    conditions: str | None = None
    status: OfferStatus = OfferStatus.PENDING
    buyer_agent_id: str | None = None
    submitted_at: datetime | None = None
    decided_at: datetime | None = None
    expected_closing_date: date | None = None
    deal_id: str | None = None
    status_history: list[OfferStatusChange] = field(default_factory=list)
    version: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status == OfferStatus.PENDING
