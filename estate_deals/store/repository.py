"""Repository port consumed by the settlement engine."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable

from estate_deals.exceptions import NotFoundError


class EntityKind(str, Enum):
    PROPERTY = "property"
    CYCLE = "cycle"
    OFFER = "offer"
    DEAL = "deal"
    PAYMENT_SCHEDULE = "payment_schedule"
    BUYER_REQUIREMENT = "buyer_requirement"


# Identity attribute per entity kind
ID_FIELDS: dict[EntityKind, str] = {
    EntityKind.PROPERTY: "property_id",
    EntityKind.CYCLE: "cycle_id",
    EntityKind.OFFER: "offer_id",
    EntityKind.DEAL: "deal_id",
    EntityKind.PAYMENT_SCHEDULE: "schedule_id",
    EntityKind.BUYER_REQUIREMENT: "requirement_id",
}


def entity_id(kind: EntityKind, entity: Any) -> str:
    """Return the identity of ``entity`` for the given kind."""
    return getattr(entity, ID_FIELDS[kind])


class Repository(ABC):
    """Durable keyed store of domain entities.

    Every entity carries an integer ``version``. ``put`` treats the entity's
    version as a precondition: it must equal the stored version (0 for an
    entity that was never stored), otherwise ``ConflictError`` is raised.
    On success the stored version is incremented and written back to the
    caller's object.
    """

    @abstractmethod
    def get(self, kind: EntityKind, entity_id: str) -> Any:
        """Return a copy of the entity or raise ``NotFoundError``."""

    @abstractmethod
    def list(self, kind: EntityKind, predicate: Callable[[Any], bool] | None = None) -> list[Any]:
        """Return copies of all entities of ``kind`` matching ``predicate``."""

    @abstractmethod
    def put(self, kind: EntityKind, entity: Any) -> Any:
        """Store ``entity`` if its version matches; return the stored copy."""

    @abstractmethod
    def delete(self, kind: EntityKind, entity_id: str) -> None:
        """Remove an entity or raise ``NotFoundError``."""

    def find(self, kind: EntityKind, entity_id: str) -> Any | None:
        """Like ``get`` but returns None for a missing entity."""
        try:
            return self.get(kind, entity_id)
        except NotFoundError:
            return None
