"""Base models shared across the brokerage domain."""

from dataclasses import dataclass, field
from datetime import datetime

from estate_deals.models.enums import ActorRole


@dataclass
class Address:
    """Postal address of a property.

    Fields follow the way sub-continental listings are written:
    - line1: plot/house number and street
    - area: sector, block or housing society
    - city: city name
    - country: ISO 3166-1 alpha-2 code (default: ``"PK"``)
    """

    line1: str
    area: str
    city: str
    postal_code: str = ""
    country: str = "PK"


@dataclass
class Event:
    """Standard event envelope for domain notifications."""

    event_id: str
    event_type: str  # entity.action (e.g., offer.accepted)
    event_time: datetime
    source: str  # Component that emitted the event
    subject: str  # Entity ID affected
    data: dict
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Actor:
    """User performing an operation, as resolved by the session layer."""

    actor_id: str
    role: ActorRole = ActorRole.AGENT

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN
