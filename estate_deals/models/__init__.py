"""Domain models for the brokerage settlement engine."""

from estate_deals.models.base import Actor, Address, Event
from estate_deals.models.cycle import Cycle
from estate_deals.models.deal import (
    CommissionAuditRecord,
    CommissionBlock,
    CommissionSplitEntry,
    Deal,
    DealTimeline,
    PartyRef,
    SplitParty,
)
from estate_deals.models.offer import BuyerRef, Offer, OfferStatusChange
from estate_deals.models.payment import (
    Instalment,
    InstalmentSpec,
    PaymentRecord,
    PaymentSchedule,
    derive_instalment_status,
)
from estate_deals.models.property import OwnershipRecord, Property
from estate_deals.models.requirement import BuyerRequirement

__all__ = [
    "Actor",
    "Address",
    "BuyerRef",
    "BuyerRequirement",
    "CommissionAuditRecord",
    "CommissionBlock",
    "CommissionSplitEntry",
    "Cycle",
    "Deal",
    "DealTimeline",
    "Event",
    "Instalment",
    "InstalmentSpec",
    "Offer",
    "OfferStatusChange",
    "OwnershipRecord",
    "PartyRef",
    "PaymentRecord",
    "PaymentSchedule",
    "Property",
    "SplitParty",
    "derive_instalment_status",
]
