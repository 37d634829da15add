"""Buyer requirement model."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from estate_deals.models.enums import RequirementStatus


@dataclass
class BuyerRequirement:
    """A buyer's standing request for a property, served from the agency pool."""

    requirement_id: str
    buyer_name: str
    agent_id: str
    budget: Decimal | None = None
    status: RequirementStatus = RequirementStatus.ACTIVE
    acquired_property_id: str | None = None
    acquired_at: datetime | None = None
    created_at: datetime | None = None
    version: int = 0
