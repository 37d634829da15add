"""Offer negotiation against open cycles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from estate_deals.engine.base import EngineComponent, new_id, require_positive
from estate_deals.exceptions import InvalidEntityStateError, ValidationError
from estate_deals.models.cycle import Cycle
from estate_deals.models.enums import CycleStatus, OfferSource, OfferStatus
from estate_deals.models.offer import BuyerRef, Offer, OfferStatusChange
from estate_deals.store.batch import WriteBatch
from estate_deals.store.repository import EntityKind

logger = logging.getLogger(__name__)


@dataclass
class AcceptedOffer:
    """Result of accepting an offer."""

    offer: Offer
    cycle: Cycle


@dataclass
class OfferSummary:
    """Offer statistics for one cycle."""

    total: int
    pending: int
    accepted: int
    rejected: int
    withdrawn: int
    highest: Decimal | None
    average: Decimal | None


class OfferNegotiationEngine(EngineComponent):
    """Record offers against open cycles and decide them."""

    source = "offer-negotiation-engine"

    def get_offer(self, offer_id: str) -> Offer:
        return self.repository.get(EntityKind.OFFER, offer_id)

    def submit_offer(
        self,
        cycle_id: str,
        buyer: BuyerRef | str,
        offer_amount: Decimal,
        token_amount: Decimal,
        conditions: str | None = None,
        source_type: OfferSource | None = None,
        buyer_agent_id: str | None = None,
        actor: str | None = None,
    ) -> Offer:
        """Record a new pending offer on an open cycle.

        Parameters
        ----------
        cycle_id : str
            Cycle receiving the offer; must be open or under negotiation.
        buyer : BuyerRef | str
            Buyer identity, or an external buyer's name.
        offer_amount : Decimal
            Offered price, greater than zero.
        token_amount : Decimal
            Earnest money, greater than zero and at most ``offer_amount``.
        conditions : str | None
            Free-text conditions attached to the offer.
        source_type : OfferSource | None
            Where the buyer came from. Defaults to ``BUYER_REQUIREMENT`` when
            the buyer references a requirement, ``EXTERNAL`` otherwise.
        buyer_agent_id : str | None
            Agent representing the buyer; required for internal matches.
        actor : str | None
            User recording the offer, kept in the status history.

        Returns
        -------
        Offer
            The stored offer.
        """
        if isinstance(buyer, str):
            buyer = BuyerRef(name=buyer)
        if not buyer.name or not buyer.name.strip():
            raise ValidationError("Buyer name is required")

        offer_amount = require_positive(offer_amount, "Offer amount")
        token_amount = require_positive(token_amount, "Token amount")
        if token_amount > offer_amount:
            raise ValidationError(
                f"Token amount {token_amount} cannot exceed offer amount {offer_amount}"
            )

        if source_type is None:
            source_type = OfferSource.BUYER_REQUIREMENT if buyer.requirement_id else OfferSource.EXTERNAL
        source_type = OfferSource(source_type)
        if source_type == OfferSource.INTERNAL_MATCH and not buyer_agent_id:
            raise ValidationError("Internal-match offers require the buying agent")

        cycle = self.repository.get(EntityKind.CYCLE, cycle_id)
        if not cycle.is_open:
            raise InvalidEntityStateError(f"Cycle {cycle_id} is {cycle.status.value} and accepts no offers")

        now = self.now()
        offer = Offer(
            offer_id=new_id(),
            cycle_id=cycle_id,
            buyer=buyer,
            offer_amount=offer_amount,
            token_amount=token_amount,
            source_type=source_type,
            conditions=conditions,
            buyer_agent_id=buyer_agent_id,
            submitted_at=now,
            status_history=[OfferStatusChange(OfferStatus.PENDING, now, actor, "Offer submitted")],
        )

        cycle.offer_ids.append(offer.offer_id)
        if cycle.status == CycleStatus.OPEN:
            cycle.status = CycleStatus.UNDER_NEGOTIATION

        WriteBatch(self.repository).put(EntityKind.OFFER, offer).put(EntityKind.CYCLE, cycle).commit()

        logger.info(
            "Offer %s submitted on cycle %s: amount=%s token=%s",
            offer.offer_id,
            cycle_id,
            offer_amount,
            token_amount,
        )
        self.emit(
            "offer.submitted",
            offer.offer_id,
            {"cycle_id": cycle_id, "offer_amount": offer_amount, "source_type": source_type},
        )
        return offer

    def accept_offer(self, offer_id: str, closing_date: date, actor: str | None = None) -> AcceptedOffer:
        """Mark an offer accepted; at most one offer per cycle can be."""
        offer = self.get_offer(offer_id)
        cycle = self.repository.get(EntityKind.CYCLE, offer.cycle_id)

        accepted = cycle.accepted_offer_id
        if accepted is None:
            others = self.list_offers(cycle.cycle_id, OfferStatus.ACCEPTED)
            accepted = others[0].offer_id if others else None
        if accepted is not None and accepted != offer_id:
            raise ValidationError(f"Cycle {cycle.cycle_id} already has accepted offer {accepted}")
        if not offer.is_pending:
            raise InvalidEntityStateError(f"Offer {offer_id} is {offer.status.value}, not pending")
        if not cycle.is_open:
            raise InvalidEntityStateError(f"Cycle {cycle.cycle_id} is {cycle.status.value}")
        if closing_date < self.today():
            raise ValidationError(f"Closing date {closing_date.isoformat()} is in the past")

        now = self.now()
        offer.status = OfferStatus.ACCEPTED
        offer.decided_at = now
        offer.expected_closing_date = closing_date
        offer.status_history.append(
            OfferStatusChange(OfferStatus.ACCEPTED, now, actor, f"Closing on {closing_date.isoformat()}")
        )
        cycle.accepted_offer_id = offer_id

        WriteBatch(self.repository).put(EntityKind.OFFER, offer).put(EntityKind.CYCLE, cycle).commit()

        logger.info("Offer %s accepted on cycle %s", offer_id, cycle.cycle_id)
        self.emit(
            "offer.accepted",
            offer_id,
            {
                "cycle_id": cycle.cycle_id,
                "offer_amount": offer.offer_amount,
                "closing_date": closing_date,
            },
        )
        return AcceptedOffer(offer=offer, cycle=cycle)

    def reject_offer(self, offer_id: str, reason: str | None = None, actor: str | None = None) -> Offer:
        return self._close_offer(offer_id, OfferStatus.REJECTED, reason, actor)

    def withdraw_offer(self, offer_id: str, reason: str | None = None, actor: str | None = None) -> Offer:
        return self._close_offer(offer_id, OfferStatus.WITHDRAWN, reason, actor)

    def _close_offer(
        self,
        offer_id: str,
        status: OfferStatus,
        reason: str | None,
        actor: str | None,
    ) -> Offer:
        # The cycle stays open even when no pending offers remain.
        offer = self.get_offer(offer_id)
        if not offer.is_pending:
            raise InvalidEntityStateError(f"Offer {offer_id} is {offer.status.value}, not pending")

        now = self.now()
        offer.status = status
        offer.decided_at = now
        offer.status_history.append(OfferStatusChange(status, now, actor, reason))
        self.repository.put(EntityKind.OFFER, offer)

        logger.info("Offer %s %s", offer_id, status.value)
        self.emit(f"offer.{status.value}", offer_id, {"cycle_id": offer.cycle_id, "reason": reason})
        return offer

    def revise_offer(
        self,
        offer_id: str,
        offer_amount: Decimal | None = None,
        token_amount: Decimal | None = None,
        actor: str | None = None,
    ) -> Offer:
        """Change the amounts of a pending offer.

        Lowering the offer below the current token caps the token at the new
        offer amount. An explicitly supplied token must still satisfy
        ``0 < token <= offer``.
        """
        if offer_amount is None and token_amount is None:
            raise ValidationError("Nothing to revise")

        offer = self.get_offer(offer_id)
        if not offer.is_pending:
            raise InvalidEntityStateError(f"Offer {offer_id} is {offer.status.value}, not pending")
        cycle = self.repository.get(EntityKind.CYCLE, offer.cycle_id)
        if not cycle.is_open:
            raise InvalidEntityStateError(f"Cycle {cycle.cycle_id} is {cycle.status.value}")

        new_offer = require_positive(offer_amount, "Offer amount") if offer_amount is not None else offer.offer_amount
        if token_amount is not None:
            new_token = require_positive(token_amount, "Token amount")
            if new_token > new_offer:
                raise ValidationError(f"Token amount {new_token} cannot exceed offer amount {new_offer}")
        else:
            new_token = min(offer.token_amount, new_offer)
            if new_token != offer.token_amount:
                logger.info("Token on offer %s capped from %s to %s", offer_id, offer.token_amount, new_token)

        notes = f"Revised: offer {offer.offer_amount} -> {new_offer}, token {offer.token_amount} -> {new_token}"
        offer.offer_amount = new_offer
        offer.token_amount = new_token
        offer.status_history.append(OfferStatusChange(OfferStatus.PENDING, self.now(), actor, notes))
        self.repository.put(EntityKind.OFFER, offer)
        return offer

    def list_offers(self, cycle_id: str, status: OfferStatus | None = None) -> list[Offer]:
        offers = self.repository.list(
            EntityKind.OFFER,
            lambda o: o.cycle_id == cycle_id and (status is None or o.status == status),
        )
        return sorted(offers, key=lambda o: o.submitted_at or datetime.min)

    def offer_summary(self, cycle_id: str) -> OfferSummary:
        offers = self.list_offers(cycle_id)
        amounts = [o.offer_amount for o in offers]
        counts = {status: sum(1 for o in offers if o.status == status) for status in OfferStatus}
        average = None
        if amounts:
            average = (sum(amounts, Decimal("0")) / len(amounts)).quantize(Decimal("0.01"), ROUND_HALF_UP)
        return OfferSummary(
            total=len(offers),
            pending=counts[OfferStatus.PENDING],
            accepted=counts[OfferStatus.ACCEPTED],
            rejected=counts[OfferStatus.REJECTED],
            withdrawn=counts[OfferStatus.WITHDRAWN],
            highest=max(amounts) if amounts else None,
            average=average,
        )
