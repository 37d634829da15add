"""Enumerations for the brokerage domain."""

from enum import Enum


class PropertyStatus(str, Enum):
    AVAILABLE = "available"
    UNDER_OFFER = "under-offer"
    SOLD = "sold"
    RENTED = "rented"


class InventoryType(str, Enum):
    """Identity variant of a property record."""

    OWNED = "owned"  # Agency inventory
    TRACKED = "tracked"  # Shadow record for externally sourced deals


class AreaUnit(str, Enum):
    SQFT = "sqft"
    SQM = "sqm"
    MARLA = "marla"
    KANAL = "kanal"


class CycleKind(str, Enum):
    SELL = "sell"
    PURCHASE = "purchase"
    RENT = "rent"


class CycleStatus(str, Enum):
    OPEN = "open"
    UNDER_NEGOTIATION = "under-negotiation"
    CLOSED_WON = "closed-won"
    CLOSED_LOST = "closed-lost"


class CycleOutcome(str, Enum):
    WON = "won"
    LOST = "lost"


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class OfferSource(str, Enum):
    INTERNAL_MATCH = "internal-match"
    BUYER_REQUIREMENT = "buyer-requirement"
    EXTERNAL = "external"


class DealStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CommissionPolicy(str, Enum):
    INTERNAL_MATCH = "internal-match"
    EXTERNAL_MATCH = "external-match"


class SplitPolicy(str, Enum):
    TWO_WAY = "two-way"
    SINGLE = "single"
    CUSTOM = "custom"


class PartyRole(str, Enum):
    AGENCY = "agency"
    PRIMARY_AGENT = "primary-agent"
    SECONDARY_AGENT = "secondary-agent"
    NAMED_AGENT = "named-agent"


class CommissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"


class InstalmentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class OverdueSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"
    SEVERE = "severe"


class RequirementStatus(str, Enum):
    ACTIVE = "active"
    ACQUIRED = "acquired"
    CLOSED = "closed"


class ActorRole(str, Enum):
    ADMIN = "admin"
    AGENT = "agent"
