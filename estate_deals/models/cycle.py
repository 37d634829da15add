"""Sell, purchase and rent cycle model."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from estate_deals.models.enums import CycleKind, CycleStatus

OPEN_STATUSES = frozenset({CycleStatus.OPEN, CycleStatus.UNDER_NEGOTIATION})


@dataclass
class Cycle:
    """An open sell, purchase or rent process against a property."""

    cycle_id: str
    property_id: str
    kind: CycleKind
    asking_price: Decimal  # Asking price for sell/rent, target price for purchase
    agent_id: str  # Listing agent for sell/rent, buying agent for purchase
    status: CycleStatus = CycleStatus.OPEN
    offer_ids: list[str] = field(default_factory=list)
    accepted_offer_id: str | None = None
    deal_id: str | None = None
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    close_reason: str | None = None
    version: int = 0

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES
