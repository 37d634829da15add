"""Property cycle management: opening, closing and relisting cycles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from estate_deals.engine.base import EngineComponent, new_id, require_positive
from estate_deals.exceptions import ConflictError, InvalidEntityStateError, ValidationError
from estate_deals.models.base import Address
from estate_deals.models.cycle import Cycle
from estate_deals.models.enums import (
    AreaUnit,
    CycleKind,
    CycleOutcome,
    CycleStatus,
    InventoryType,
    PropertyStatus,
)
from estate_deals.models.property import OwnershipRecord, Property
from estate_deals.store.batch import WriteBatch
from estate_deals.store.repository import EntityKind

logger = logging.getLogger(__name__)

CYCLE_LABELS = {
    CycleKind.SELL: "For Sale",
    CycleKind.RENT: "For Rent",
    CycleKind.PURCHASE: "Wanted",
}

STATUS_LABELS = {
    PropertyStatus.AVAILABLE: "Available",
    PropertyStatus.UNDER_OFFER: "Under Offer",
    PropertyStatus.SOLD: "Sold",
    PropertyStatus.RENTED: "Rented",
}


@dataclass
class InternalMatch:
    """A property that is both listed for sale and wanted by a buyer."""

    property_id: str
    sell_cycle_id: str
    purchase_cycle_id: str
    asking_price: Decimal
    target_price: Decimal

    @property
    def price_gap(self) -> Decimal:
        return abs(self.asking_price - self.target_price)


def mark_cycle_closed(
    cycle: Cycle,
    prop: Property,
    outcome: CycleOutcome,
    at: datetime,
    reason: str | None = None,
) -> None:
    """Close ``cycle`` and drop it from the property's open-cycle index.

    Mutates both records in place; the caller persists them.
    """
    if not cycle.is_open:
        raise InvalidEntityStateError(f"Cycle {cycle.cycle_id} is already {cycle.status.value}")

    cycle.status = CycleStatus.CLOSED_WON if outcome == CycleOutcome.WON else CycleStatus.CLOSED_LOST
    cycle.closed_at = at
    cycle.close_reason = reason
    if prop.active_cycles.get(cycle.kind) == cycle.cycle_id:
        del prop.active_cycles[cycle.kind]
    prop.updated_at = at


class PropertyCycleManager(EngineComponent):
    """Track which cycles are open on each property."""

    source = "property-cycle-manager"

    def register_property(
        self,
        address: Address,
        area: Decimal,
        area_unit: AreaUnit,
        agent_id: str,
        owner_id: str,
        owner_name: str,
        commission_rate: Decimal | None = None,
    ) -> Property:
        """Add a property to the agency's inventory.

        Parameters
        ----------
        address : Address
            Property address.
        area : Decimal
            Covered area in ``area_unit``.
        area_unit : AreaUnit
            Unit of ``area``.
        agent_id : str
            Agent responsible for the property.
        owner_id, owner_name : str
            Current owner, recorded as the first ownership entry.
        commission_rate : Decimal | None
            Commission percent for deals on this property; the system default
            applies when None.

        Returns
        -------
        Property
            The stored property.
        """
        area = require_positive(area, "Area")
        if commission_rate is not None and not Decimal("0") < commission_rate <= Decimal("100"):
            raise ValidationError(f"Commission rate must be in (0, 100], got {commission_rate}")
        if not agent_id:
            raise ValidationError("An agent is required")

        now = self.now()
        prop = Property(
            property_id=new_id(),
            address=address,
            area=area,
            area_unit=AreaUnit(area_unit),
            agent_id=agent_id,
            inventory=InventoryType.OWNED,
            commission_rate=commission_rate,
            ownership_history=[
                OwnershipRecord(owner_id=owner_id, owner_name=owner_name, start_date=now.date())
            ],
            created_at=now,
        )
        self.repository.put(EntityKind.PROPERTY, prop)
        logger.info("Registered property %s in %s", prop.property_id, address.city)
        return prop

    def get_property(self, property_id: str) -> Property:
        return self.repository.get(EntityKind.PROPERTY, property_id)

    def get_cycle(self, cycle_id: str) -> Cycle:
        return self.repository.get(EntityKind.CYCLE, cycle_id)

    def open_cycle(
        self,
        property_id: str,
        kind: CycleKind,
        asking_price: Decimal,
        agent_id: str,
    ) -> Cycle:
        """Start a sell, purchase or rent cycle on a property.

        Raises ``ConflictError`` if the property already has an open cycle
        of the same kind.
        """
        kind = CycleKind(kind)
        asking_price = require_positive(asking_price, "Asking price")
        if not agent_id:
            raise ValidationError("An agent is required")

        prop = self.get_property(property_id)
        if prop.inventory != InventoryType.OWNED:
            raise InvalidEntityStateError(
                f"Property {property_id} is a tracked record and cannot carry cycles"
            )
        if kind == CycleKind.SELL and prop.status == PropertyStatus.SOLD:
            raise InvalidEntityStateError(
                f"Property {property_id} is sold; relist it to open a new sell cycle"
            )
        return self._open(prop, kind, asking_price, agent_id)

    def _open(self, prop: Property, kind: CycleKind, asking_price: Decimal, agent_id: str) -> Cycle:
        if prop.has_open_cycle(kind):
            raise ConflictError(
                f"Property {prop.property_id} already has an open {kind.value} cycle "
                f"({prop.active_cycles[kind]})"
            )

        now = self.now()
        cycle = Cycle(
            cycle_id=new_id(),
            property_id=prop.property_id,
            kind=kind,
            asking_price=asking_price,
            agent_id=agent_id,
            opened_at=now,
        )
        prop.active_cycles[kind] = cycle.cycle_id
        prop.updated_at = now

        WriteBatch(self.repository).put(EntityKind.PROPERTY, prop).put(EntityKind.CYCLE, cycle).commit()

        logger.info("Opened %s cycle %s on property %s", kind.value, cycle.cycle_id, prop.property_id)
        self.emit(
            "cycle.opened",
            cycle.cycle_id,
            {"property_id": prop.property_id, "kind": kind, "asking_price": asking_price, "agent_id": agent_id},
        )
        return cycle

    def close_cycle(self, cycle_id: str, outcome: CycleOutcome, reason: str | None = None) -> Cycle:
        """Close a cycle as won or lost.

        Winning never transfers ownership and losing leaves the property
        status untouched.
        """
        outcome = CycleOutcome(outcome)
        cycle = self.get_cycle(cycle_id)
        prop = self.get_property(cycle.property_id)

        mark_cycle_closed(cycle, prop, outcome, self.now(), reason)
        WriteBatch(self.repository).put(EntityKind.PROPERTY, prop).put(EntityKind.CYCLE, cycle).commit()

        logger.info("Closed cycle %s as %s", cycle_id, cycle.status.value)
        self.emit(
            "cycle.closed",
            cycle_id,
            {"property_id": prop.property_id, "status": cycle.status, "reason": reason},
        )
        return cycle

    def list_relistable(self, user_id: str | None = None) -> list[Property]:
        """Sold inventory with no open sell cycle, optionally for one agent."""
        return self.repository.list(
            EntityKind.PROPERTY,
            lambda p: (
                p.inventory == InventoryType.OWNED
                and p.status == PropertyStatus.SOLD
                and not p.has_open_cycle(CycleKind.SELL)
                and (user_id is None or p.agent_id == user_id)
            ),
        )

    def relist(self, property_id: str, asking_price: Decimal, agent_id: str) -> Cycle:
        """Open a new sell cycle on a sold property without re-creating it."""
        asking_price = require_positive(asking_price, "Asking price")
        if not agent_id:
            raise ValidationError("An agent is required")

        prop = self.get_property(property_id)
        if prop.inventory != InventoryType.OWNED:
            raise ConflictError(f"Property {property_id} is a tracked record, not owned inventory")
        if prop.status != PropertyStatus.SOLD:
            raise ConflictError(f"Property {property_id} is {prop.status.value}, not sold")

        prop.status = PropertyStatus.AVAILABLE
        logger.info("Relisting property %s", property_id)
        return self._open(prop, CycleKind.SELL, asking_price, agent_id)

    def cycles_for_property(self, property_id: str, open_only: bool = False) -> list[Cycle]:
        cycles = self.repository.list(
            EntityKind.CYCLE,
            lambda c: c.property_id == property_id and (not open_only or c.is_open),
        )
        return sorted(cycles, key=lambda c: c.opened_at or datetime.min)

    def describe_status(self, property_id: str) -> str:
        """Combined label such as ``"For Sale & For Rent"`` or ``"Sold"``."""
        prop = self.get_property(property_id)
        labels = [CYCLE_LABELS[kind] for kind in CycleKind if prop.has_open_cycle(kind)]
        if not labels:
            return STATUS_LABELS[prop.status]
        return " & ".join(labels)

    def detect_internal_matches(self) -> list[InternalMatch]:
        """Properties listed for sale that an open purchase cycle also targets.

        Sorted by the gap between asking and target price, smallest first.
        """
        matches: list[InternalMatch] = []
        candidates = self.repository.list(
            EntityKind.PROPERTY,
            lambda p: p.has_open_cycle(CycleKind.SELL) and p.has_open_cycle(CycleKind.PURCHASE),
        )
        for prop in candidates:
            sell = self.get_cycle(prop.active_cycles[CycleKind.SELL])
            purchase = self.get_cycle(prop.active_cycles[CycleKind.PURCHASE])
            matches.append(
                InternalMatch(
                    property_id=prop.property_id,
                    sell_cycle_id=sell.cycle_id,
                    purchase_cycle_id=purchase.cycle_id,
                    asking_price=sell.asking_price,
                    target_price=purchase.asking_price,
                )
            )
        return sorted(matches, key=lambda m: m.price_gap)
