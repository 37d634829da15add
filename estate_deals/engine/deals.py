"""Deal finalization, completion and cancellation."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timedelta

from estate_deals.config import CommissionConfig
from estate_deals.engine.base import Clock, EngineComponent, new_id, require_reason
from estate_deals.engine.commission import CommissionCalculator, commission_total
from estate_deals.engine.cycles import mark_cycle_closed
from estate_deals.events.publisher import EventPublisher
from estate_deals.exceptions import ConflictError, InvalidEntityStateError
from estate_deals.models.cycle import Cycle
from estate_deals.models.deal import CommissionBlock, Deal, DealTimeline, PartyRef, SplitParty
from estate_deals.models.enums import (
    CommissionPolicy,
    CycleKind,
    CycleOutcome,
    CycleStatus,
    DealStatus,
    InventoryType,
    OfferSource,
    OfferStatus,
    PropertyStatus,
    RequirementStatus,
    SplitPolicy,
)
from estate_deals.models.offer import Offer
from estate_deals.models.property import OwnershipRecord, Property
from estate_deals.store.batch import WriteBatch
from estate_deals.store.repository import EntityKind, Repository

logger = logging.getLogger(__name__)

DEFAULT_CLOSING_DAYS = 60
MIN_CANCEL_REASON = 10
UNKNOWN_SELLER = PartyRef(party_id="external", name="External seller")


def choose_policy(offer: Offer, prop: Property) -> CommissionPolicy:
    """Internal-match policy only for internal offers on owned inventory."""
    if offer.source_type == OfferSource.INTERNAL_MATCH and prop.inventory == InventoryType.OWNED:
        return CommissionPolicy.INTERNAL_MATCH
    return CommissionPolicy.EXTERNAL_MATCH


def closed_status(kind: CycleKind) -> PropertyStatus:
    return PropertyStatus.RENTED if kind == CycleKind.RENT else PropertyStatus.SOLD


class DealFinalizer(EngineComponent):
    """Turn accepted offers into deals and carry deals to completion."""

    source = "deal-finalizer"

    def __init__(
        self,
        repository: Repository,
        publisher: EventPublisher | None = None,
        clock: Clock = datetime.now,
        commission: CommissionCalculator | None = None,
        commission_config: CommissionConfig | None = None,
    ) -> None:
        super().__init__(repository, publisher, clock)
        self.commission = commission or CommissionCalculator(repository, self.publisher, clock)
        self.commission_config = commission_config or CommissionConfig()

    def get_deal(self, deal_id: str) -> Deal:
        return self.repository.get(EntityKind.DEAL, deal_id)

    def deal_for_offer(self, offer_id: str) -> Deal | None:
        deals = self.repository.list(EntityKind.DEAL, lambda d: d.offer_id == offer_id)
        return deals[0] if deals else None

    def finalize(self, offer_id: str) -> Deal:
        """Create the deal for an accepted offer.

        Calling this again for the same offer returns the deal created the
        first time.

        Internal matches on owned inventory transfer ownership to the buyer
        (rent cycles mark the property rented instead), close the cycle as
        won and split commission 50/50 between listing and buying agent.
        Every other deal creates a tracked shadow property owned by the
        buyer and pays the whole commission to the buying agent.
        """
        existing = self.deal_for_offer(offer_id)
        if existing is not None:
            logger.info("Offer %s already finalized as deal %s", offer_id, existing.deal_id)
            return existing

        offer = self.repository.get(EntityKind.OFFER, offer_id)
        if offer.status != OfferStatus.ACCEPTED:
            raise InvalidEntityStateError(f"Offer {offer_id} is {offer.status.value}, not accepted")
        cycle = self.repository.get(EntityKind.CYCLE, offer.cycle_id)
        if cycle.accepted_offer_id != offer_id:
            raise ConflictError(f"Cycle {cycle.cycle_id} accepted offer {cycle.accepted_offer_id}, not {offer_id}")
        if cycle.deal_id is not None:
            raise ConflictError(f"Cycle {cycle.cycle_id} already has deal {cycle.deal_id}")
        prop = self.repository.get(EntityKind.PROPERTY, cycle.property_id)

        now = self.now()
        today = now.date()
        policy = choose_policy(offer, prop)
        rate = prop.commission_rate if prop.commission_rate is not None else self.commission_config.default_rate
        total = commission_total(offer.offer_amount, rate)

        if policy == CommissionPolicy.INTERNAL_MATCH and offer.buyer_agent_id == cycle.agent_id:
            # Dual representation: one agent on both sides keeps the whole commission.
            split_policy = SplitPolicy.SINGLE
            parties = [SplitParty.primary(cycle.agent_id)]
        elif policy == CommissionPolicy.INTERNAL_MATCH:
            split_policy = SplitPolicy.TWO_WAY
            parties = [SplitParty.primary(cycle.agent_id), SplitParty.secondary(offer.buyer_agent_id)]
        else:
            split_policy = SplitPolicy.SINGLE
            parties = [SplitParty.secondary(offer.buyer_agent_id or cycle.agent_id)]
        entries = self.commission.build_entries(total, split_policy, parties)

        owner = prop.current_owner
        seller = PartyRef(owner.owner_id, owner.owner_name) if owner is not None else UNKNOWN_SELLER
        accepted_on = offer.decided_at.date() if offer.decided_at else today

        deal = Deal(
            deal_id=new_id(),
            deal_number=self._next_deal_number(today.year),
            offer_id=offer_id,
            cycle_id=cycle.cycle_id,
            property_id=prop.property_id,
            agreed_price=offer.offer_amount,
            seller=seller,
            buyer=PartyRef(offer.buyer.owner_id, offer.buyer.name),
            policy=policy,
            commission=CommissionBlock(rate=rate, total=total, split_policy=split_policy, entries=entries),
            timeline=DealTimeline(
                accepted_date=accepted_on,
                expected_closing_date=offer.expected_closing_date or today + timedelta(days=DEFAULT_CLOSING_DAYS),
            ),
            buyer_requirement_id=offer.buyer.requirement_id,
            created_at=now,
        )

        batch = WriteBatch(self.repository)
        if policy == CommissionPolicy.INTERNAL_MATCH:
            self._apply_internal_match(deal, offer, cycle, prop, now)
            batch.put(EntityKind.PROPERTY, prop)
        else:
            shadow = self._shadow_property(deal, offer, cycle, prop, now)
            deal.shadow_property_id = shadow.property_id
            prop.status = PropertyStatus.UNDER_OFFER
            prop.updated_at = now
            batch.put(EntityKind.PROPERTY, shadow).put(EntityKind.PROPERTY, prop)

        offer.deal_id = deal.deal_id
        cycle.deal_id = deal.deal_id
        batch.put(EntityKind.OFFER, offer).put(EntityKind.DEAL, deal).put(EntityKind.CYCLE, cycle)
        batch.commit()

        logger.info(
            "Deal %s (%s) finalized from offer %s: price=%s policy=%s commission=%s",
            deal.deal_number,
            deal.deal_id,
            offer_id,
            deal.agreed_price,
            policy.value,
            total,
            extra=self.log_context(deal_id=deal.deal_id, property_id=prop.property_id),
        )
        self.emit(
            "deal.finalized",
            deal.deal_id,
            {
                "deal_number": deal.deal_number,
                "offer_id": offer_id,
                "cycle_id": cycle.cycle_id,
                "property_id": prop.property_id,
                "agreed_price": deal.agreed_price,
                "policy": policy,
                "commission_total": total,
            },
        )
        if deal.ownership_transferred:
            self.emit(
                "ownership.transferred",
                prop.property_id,
                {"deal_id": deal.deal_id, "owner_id": deal.buyer.party_id, "owner_name": deal.buyer.name},
            )
        return deal

    def _apply_internal_match(self, deal: Deal, offer: Offer, cycle: Cycle, prop: Property, now: datetime) -> None:
        if cycle.kind == CycleKind.RENT:
            prop.status = PropertyStatus.RENTED
        else:
            prop.transfer_ownership(
                owner_id=offer.buyer.owner_id,
                owner_name=offer.buyer.name,
                on=now.date(),
                deal_id=deal.deal_id,
                price=deal.agreed_price,
            )
            prop.status = PropertyStatus.SOLD
            deal.ownership_transferred = True
        mark_cycle_closed(cycle, prop, CycleOutcome.WON, now, f"Deal {deal.deal_number}")

    def _shadow_property(self, deal: Deal, offer: Offer, cycle: Cycle, prop: Property, now: datetime) -> Property:
        return Property(
            property_id=new_id(),
            address=copy.deepcopy(prop.address),
            area=prop.area,
            area_unit=prop.area_unit,
            agent_id=offer.buyer_agent_id or cycle.agent_id,
            status=closed_status(cycle.kind),
            inventory=InventoryType.TRACKED,
            ownership_history=[
                OwnershipRecord(
                    owner_id=offer.buyer.owner_id,
                    owner_name=offer.buyer.name,
                    start_date=now.date(),
                    deal_id=deal.deal_id,
                    price=deal.agreed_price,
                )
            ],
            source_property_id=prop.property_id,
            created_at=now,
        )

    def _next_deal_number(self, year: int) -> str:
        prefix = f"DEAL-{year}-"
        count = len(self.repository.list(EntityKind.DEAL, lambda d: d.deal_number.startswith(prefix)))
        return f"{prefix}{count + 1:03d}"

    def complete(self, deal_id: str) -> Deal:
        """Complete a deal whose payment schedule is fully settled."""
        deal = self.get_deal(deal_id)
        if not deal.is_active:
            raise InvalidEntityStateError(f"Deal {deal_id} is {deal.status.value}")
        if deal.schedule_id is None:
            raise InvalidEntityStateError(f"Deal {deal_id} has no payment schedule")
        schedule = self.repository.get(EntityKind.PAYMENT_SCHEDULE, deal.schedule_id)
        if not schedule.is_settled:
            raise InvalidEntityStateError(f"Deal {deal_id} has an outstanding balance of {schedule.balance}")

        now = self.now()
        cycle = self.repository.get(EntityKind.CYCLE, deal.cycle_id)
        prop = self.repository.get(EntityKind.PROPERTY, deal.property_id)
        batch = WriteBatch(self.repository)

        if deal.buyer_requirement_id:
            requirement = self.repository.find(EntityKind.BUYER_REQUIREMENT, deal.buyer_requirement_id)
            if requirement is not None and requirement.status == RequirementStatus.ACTIVE:
                requirement.status = RequirementStatus.ACQUIRED
                requirement.acquired_property_id = deal.shadow_property_id or deal.property_id
                requirement.acquired_at = now
                batch.put(EntityKind.BUYER_REQUIREMENT, requirement)

        if deal.policy == CommissionPolicy.EXTERNAL_MATCH:
            prop.status = closed_status(cycle.kind)
            prop.updated_at = now
        cycle_changed = cycle.is_open
        if cycle_changed:
            mark_cycle_closed(cycle, prop, CycleOutcome.WON, now, f"Deal {deal.deal_number} completed")
        if cycle_changed or deal.policy == CommissionPolicy.EXTERNAL_MATCH:
            batch.put(EntityKind.PROPERTY, prop)

        deal.status = DealStatus.COMPLETED
        deal.timeline.actual_closing_date = now.date()
        deal.updated_at = now
        batch.put(EntityKind.DEAL, deal)
        if cycle_changed:
            batch.put(EntityKind.CYCLE, cycle)
        batch.commit()

        logger.info(
            "Deal %s completed",
            deal.deal_number,
            extra=self.log_context(deal_id=deal_id, property_id=deal.property_id),
        )
        self.emit("deal.completed", deal_id, {"deal_number": deal.deal_number, "closing_date": now.date()})
        return deal

    def cancel(self, deal_id: str, reason: str) -> Deal:
        """Cancel an active deal whose ownership has not been transferred."""
        reason = require_reason(reason, "cancellation reason", MIN_CANCEL_REASON)
        deal = self.get_deal(deal_id)
        if not deal.is_active:
            raise InvalidEntityStateError(f"Deal {deal_id} is already {deal.status.value}")
        if deal.ownership_transferred:
            raise InvalidEntityStateError(f"Ownership for deal {deal_id} has already been transferred")

        if deal.schedule_id is not None:
            schedule = self.repository.get(EntityKind.PAYMENT_SCHEDULE, deal.schedule_id)
            if schedule.total_paid > 0:
                logger.warning(
                    "Cancelling deal %s with %s already received; refunds are handled outside the engine",
                    deal.deal_number,
                    schedule.total_paid,
                )

        now = self.now()
        cycle = self.repository.get(EntityKind.CYCLE, deal.cycle_id)
        prop = self.repository.get(EntityKind.PROPERTY, deal.property_id)
        batch = WriteBatch(self.repository)

        if prop.status in (PropertyStatus.UNDER_OFFER, PropertyStatus.RENTED):
            prop.status = PropertyStatus.AVAILABLE
            prop.updated_at = now
        cycle_changed = cycle.is_open or cycle.status == CycleStatus.CLOSED_WON
        if cycle.is_open:
            mark_cycle_closed(cycle, prop, CycleOutcome.LOST, now, reason)
        elif cycle_changed:
            # Internal rent deals close their cycle as won at finalize.
            cycle.status = CycleStatus.CLOSED_LOST
            cycle.closed_at = now
            cycle.close_reason = reason
        batch.put(EntityKind.PROPERTY, prop)

        deal.status = DealStatus.CANCELLED
        deal.cancellation_reason = reason
        deal.updated_at = now
        batch.put(EntityKind.DEAL, deal)
        if cycle_changed:
            batch.put(EntityKind.CYCLE, cycle)
        batch.commit()

        logger.info(
            "Deal %s cancelled: %s",
            deal.deal_number,
            reason,
            extra=self.log_context(deal_id=deal_id, property_id=deal.property_id),
        )
        self.emit("deal.cancelled", deal_id, {"deal_number": deal.deal_number, "reason": reason})
        return deal

    def list_deals(self, status: DealStatus | None = None) -> list[Deal]:
        deals = self.repository.list(EntityKind.DEAL, lambda d: status is None or d.status == status)
        return sorted(deals, key=lambda d: d.deal_number)
