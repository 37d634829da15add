"""Property and ownership models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from estate_deals.exceptions import InvalidEntityStateError
from estate_deals.models.base import Address
from estate_deals.models.enums import AreaUnit, CycleKind, InventoryType, PropertyStatus


@dataclass
class OwnershipRecord:
    """One entry of a property's ownership history."""

    owner_id: str
    owner_name: str
    start_date: date
    end_date: date | None = None  # None while this owner is current
    deal_id: str | None = None  # Deal that transferred ownership to this owner
    price: Decimal | None = None


@dataclass
class Property:
    """Real estate property, either agency inventory or a tracked shadow."""

    property_id: str
    address: Address
    area: Decimal
    area_unit: AreaUnit
    agent_id: str
    status: PropertyStatus = PropertyStatus.AVAILABLE
    inventory: InventoryType = InventoryType.OWNED
    commission_rate: Decimal | None = None  # Percent; None uses the system default
    ownership_history: list[OwnershipRecord] = field(default_factory=list)
    active_cycles: dict[CycleKind, str] = field(default_factory=dict)
    source_property_id: str | None = None  # Set on tracked records
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def current_owner(self) -> OwnershipRecord | None:
        for record in self.ownership_history:
            if record.end_date is None:
                return record
        return None

    @property
    def is_owned_inventory(self) -> bool:
        return self.inventory == InventoryType.OWNED

    def has_open_cycle(self, kind: CycleKind) -> bool:
        return kind in self.active_cycles

    def transfer_ownership(
        self,
        owner_id: str,
        owner_name: str,
        on: date,
        deal_id: str | None = None,
        price: Decimal | None = None,
    ) -> OwnershipRecord:
        """Close the current ownership record and append a new current one.

        Parameters
        ----------
        owner_id : str
            Identifier of the new owner.
        owner_name : str
            Display name of the new owner.
        on : date
            Transfer date; ends the previous record and starts the new one.
        deal_id : str | None
            Deal responsible for the transfer.
        price : Decimal | None
            Price paid by the new owner.

        Returns
        -------
        OwnershipRecord
            The new current ownership record.
        """
        current = self.current_owner
        if current is not None:
            if current.owner_id == owner_id:
                raise InvalidEntityStateError(
                    f"Property {self.property_id} is already owned by {owner_id}"
                )
            current.end_date = on

        record = OwnershipRecord(
            owner_id=owner_id,
            owner_name=owner_name,
            start_date=on,
            deal_id=deal_id,
            price=price,
        )
        self.ownership_history.append(record)
        return record
