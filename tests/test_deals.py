"""Tests for deal finalization, completion and cancellation."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from estate_deals.config import CommissionConfig, EstateDealsConfig
from estate_deals.engine import SettlementEngine
from estate_deals.engine.deals import choose_policy
from estate_deals.events import MemoryEventSink
from estate_deals.exceptions import ConflictError, InvalidEntityStateError, ValidationError
from estate_deals.models import BuyerRef, Deal, SplitParty
from estate_deals.models.enums import (
    CommissionPolicy,
    CommissionStatus,
    CycleKind,
    CycleStatus,
    DealStatus,
    InventoryType,
    OfferSource,
    PropertyStatus,
    RequirementStatus,
    SplitPolicy,
)
from estate_deals.store import EntityKind, InMemoryRepository


def settle(engine: SettlementEngine, deal: Deal, today: date) -> None:
    """Pay a single-instalment schedule in full through the tracker alone."""
    schedule = engine.payments.generate_schedule(deal.deal_id, [(deal.agreed_price, today)])
    engine.payments.record_payment(
        schedule.schedule_id, schedule.instalments[0].instalment_id, deal.agreed_price, today
    )


@pytest.fixture
def external_deal(engine: SettlementEngine, listed, today: date) -> Deal:
    offer = engine.offers.submit_offer(
        listed.cycle.cycle_id,
        BuyerRef(name="Usman Tariq"),
        Decimal("9800000"),
        Decimal("500000"),
        buyer_agent_id="agent-003",
    )
    return engine.accept_offer(offer.offer_id, today + timedelta(days=45))


class TestInternalMatch:
    """Internal matches on owned inventory."""

    def test_commission_split(self, internal_deal: Deal) -> None:
        """9,500,000 at 2% is 190,000 split into two pending halves."""
        commission = internal_deal.commission

        assert internal_deal.policy == CommissionPolicy.INTERNAL_MATCH
        assert internal_deal.agreed_price == Decimal("9500000")
        assert commission.rate == Decimal("2")
        assert commission.total == Decimal("190000")
        assert commission.split_policy == SplitPolicy.TWO_WAY
        assert [e.amount for e in commission.entries] == [Decimal("95000"), Decimal("95000")]
        assert [e.party for e in commission.entries] == [
            SplitParty.primary("agent-001"),
            SplitParty.secondary("agent-002"),
        ]
        assert all(e.status == CommissionStatus.PENDING for e in commission.entries)

    def test_ownership_transferred(self, engine: SettlementEngine, internal_deal: Deal, today: date) -> None:
        prop = engine.cycles.get_property(internal_deal.property_id)

        assert internal_deal.ownership_transferred
        assert prop.status == PropertyStatus.SOLD
        assert prop.current_owner.owner_id == "buyer-001"
        assert prop.current_owner.deal_id == internal_deal.deal_id
        assert prop.ownership_history[0].end_date == today
        assert sum(1 for r in prop.ownership_history if r.end_date is None) == 1

    def test_cycle_closed_won(self, engine: SettlementEngine, internal_deal: Deal) -> None:
        cycle = engine.cycles.get_cycle(internal_deal.cycle_id)
        prop = engine.cycles.get_property(internal_deal.property_id)

        assert cycle.status == CycleStatus.CLOSED_WON
        assert cycle.deal_id == internal_deal.deal_id
        assert not prop.has_open_cycle(CycleKind.SELL)

    def test_deal_identity(self, engine: SettlementEngine, internal_deal: Deal, today: date) -> None:
        assert internal_deal.deal_number == "DEAL-2025-001"
        assert internal_deal.seller.party_id == "owner-001"
        assert internal_deal.buyer.party_id == "buyer-001"
        assert internal_deal.timeline.accepted_date == today
        assert internal_deal.timeline.expected_closing_date == today + timedelta(days=60)
        assert engine.offers.get_offer(internal_deal.offer_id).deal_id == internal_deal.deal_id

    def test_events(self, internal_deal: Deal, sink: MemoryEventSink) -> None:
        finalized = sink.of_type("deal.finalized")[0]

        assert finalized.subject == internal_deal.deal_id
        assert finalized.data["policy"] == "internal-match"
        assert finalized.data["commission_total"] == "190000.00"
        assert sink.of_type("ownership.transferred")[0].data["owner_id"] == "buyer-001"

    def test_dual_representation_is_single_split(
        self, engine: SettlementEngine, listed, internal_buyer: BuyerRef, today: date
    ) -> None:
        offer = engine.offers.submit_offer(
            listed.cycle.cycle_id,
            internal_buyer,
            Decimal("9500000"),
            Decimal("100000"),
            source_type=OfferSource.INTERNAL_MATCH,
            buyer_agent_id="agent-001",
        )

        deal = engine.accept_offer(offer.offer_id, today)

        assert deal.commission.split_policy == SplitPolicy.SINGLE
        assert len(deal.commission.entries) == 1
        assert deal.commission.entries[0].amount == Decimal("190000")

    def test_rent_cycle_marks_property_rented(
        self, engine: SettlementEngine, listed, internal_buyer: BuyerRef, today: date
    ) -> None:
        rent = engine.cycles.open_cycle(listed.property.property_id, CycleKind.RENT, Decimal("90000"), "agent-001")
        offer = engine.offers.submit_offer(
            rent.cycle_id,
            internal_buyer,
            Decimal("90000"),
            Decimal("90000"),
            source_type=OfferSource.INTERNAL_MATCH,
            buyer_agent_id="agent-002",
        )

        deal = engine.accept_offer(offer.offer_id, today)

        prop = engine.cycles.get_property(listed.property.property_id)
        assert not deal.ownership_transferred
        assert prop.status == PropertyStatus.RENTED
        assert prop.current_owner.owner_id == "owner-001"
        assert prop.has_open_cycle(CycleKind.SELL)

    def test_property_commission_rate_wins(
        self, engine: SettlementEngine, sample_address, internal_buyer: BuyerRef, today: date
    ) -> None:
        prop = engine.cycles.register_property(
            sample_address,
            Decimal("1"),
            "kanal",
            "agent-001",
            "owner-002",
            "Farah Iqbal",
            commission_rate=Decimal("1.5"),
        )
        cycle = engine.cycles.open_cycle(prop.property_id, CycleKind.SELL, Decimal("20000000"), "agent-001")
        offer = engine.offers.submit_offer(
            cycle.cycle_id,
            internal_buyer,
            Decimal("19999999"),
            Decimal("1000"),
            source_type=OfferSource.INTERNAL_MATCH,
            buyer_agent_id="agent-002",
        )

        deal = engine.accept_offer(offer.offer_id, today)

        assert deal.commission.total == Decimal("299999.99")
        amounts = [e.amount for e in deal.commission.entries]
        assert amounts == [Decimal("150000.00"), Decimal("149999.99")]
        assert sum(amounts) == deal.commission.total


class TestExternalMatch:
    """Deals sourced outside the agency's pool."""

    def test_shadow_property_created(self, engine: SettlementEngine, external_deal: Deal, listed) -> None:
        shadow = engine.cycles.get_property(external_deal.shadow_property_id)

        assert external_deal.policy == CommissionPolicy.EXTERNAL_MATCH
        assert shadow.inventory == InventoryType.TRACKED
        assert shadow.source_property_id == listed.property.property_id
        assert shadow.current_owner.owner_name == "Usman Tariq"
        assert shadow.status == PropertyStatus.SOLD

    def test_original_stays_with_owner(self, engine: SettlementEngine, external_deal: Deal) -> None:
        prop = engine.cycles.get_property(external_deal.property_id)

        assert not external_deal.ownership_transferred
        assert prop.status == PropertyStatus.UNDER_OFFER
        assert prop.current_owner.owner_id == "owner-001"

    def test_cycle_open_until_completion(self, engine: SettlementEngine, external_deal: Deal) -> None:
        assert engine.cycles.get_cycle(external_deal.cycle_id).is_open

    def test_commission_to_buying_agent(self, external_deal: Deal) -> None:
        commission = external_deal.commission

        assert commission.split_policy == SplitPolicy.SINGLE
        assert commission.total == Decimal("196000")
        assert commission.entries[0].party == SplitParty.secondary("agent-003")
        assert commission.entries[0].percentage == Decimal("100")

    def test_internal_offer_on_tracked_property_is_external(
        self, engine: SettlementEngine, external_deal: Deal, internal_buyer: BuyerRef
    ) -> None:
        offer = engine.offers.submit_offer(
            external_deal.cycle_id,
            internal_buyer,
            Decimal("9900000"),
            Decimal("10"),
            source_type=OfferSource.INTERNAL_MATCH,
            buyer_agent_id="agent-002",
        )
        owned = engine.cycles.get_property(external_deal.property_id)
        shadow = engine.cycles.get_property(external_deal.shadow_property_id)

        assert choose_policy(offer, owned) == CommissionPolicy.INTERNAL_MATCH
        assert choose_policy(offer, shadow) == CommissionPolicy.EXTERNAL_MATCH


class TestFinalize:
    def test_finalize_is_idempotent(self, engine: SettlementEngine, internal_deal: Deal, repository) -> None:
        again = engine.deals.finalize(internal_deal.offer_id)

        assert again.deal_id == internal_deal.deal_id
        assert len(repository.list(EntityKind.DEAL)) == 1
        assert engine.deals.deal_for_offer(internal_deal.offer_id).deal_id == internal_deal.deal_id

    def test_pending_offer_cannot_be_finalized(self, engine: SettlementEngine, listed) -> None:
        offer = engine.offers.submit_offer(listed.cycle.cycle_id, "Usman Tariq", Decimal("100"), Decimal("10"))

        with pytest.raises(InvalidEntityStateError, match="not accepted"):
            engine.deals.finalize(offer.offer_id)

    def test_deal_numbers_increment(self, engine: SettlementEngine, internal_deal: Deal, sample_address, today) -> None:
        prop = engine.cycles.register_property(sample_address, Decimal("5"), "marla", "agent-004", "o-2", "Zara")
        cycle = engine.cycles.open_cycle(prop.property_id, CycleKind.SELL, Decimal("5000000"), "agent-004")
        offer = engine.offers.submit_offer(cycle.cycle_id, "Ali Raza", Decimal("5000000"), Decimal("10"))

        deal = engine.accept_offer(offer.offer_id, today)

        assert deal.deal_number == "DEAL-2025-002"
        assert [d.deal_number for d in engine.deals.list_deals()] == ["DEAL-2025-001", "DEAL-2025-002"]

    def test_stale_property_aborts_finalize(
        self,
        engine: SettlementEngine,
        listed,
        internal_buyer: BuyerRef,
        repository: InMemoryRepository,
        today: date,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A property changed between read and write leaves no partial deal behind."""
        offer = engine.offers.submit_offer(
            listed.cycle.cycle_id,
            internal_buyer,
            Decimal("9500000"),
            Decimal("10"),
            source_type=OfferSource.INTERNAL_MATCH,
            buyer_agent_id="agent-002",
        )
        engine.offers.accept_offer(offer.offer_id, today)
        property_id = listed.property.property_id
        original_get = repository.get

        def get_then_touch(kind, entity_id):
            entity = original_get(kind, entity_id)
            if kind == EntityKind.PROPERTY and entity_id == property_id:
                repository.put(kind, original_get(kind, entity_id))
            return entity

        monkeypatch.setattr(repository, "get", get_then_touch)
        with pytest.raises(ConflictError):
            engine.deals.finalize(offer.offer_id)
        monkeypatch.undo()

        assert repository.list(EntityKind.DEAL) == []
        assert repository.get(EntityKind.PROPERTY, property_id).current_owner.owner_id == "owner-001"
        assert engine.cycles.get_cycle(listed.cycle.cycle_id).is_open
        assert engine.offers.get_offer(offer.offer_id).deal_id is None

    def test_default_rate_from_config(
        self, repository: InMemoryRepository, clock, listed, internal_buyer: BuyerRef, today: date
    ) -> None:
        config = EstateDealsConfig(commission=CommissionConfig(default_rate=Decimal("3")), event_sinks=[])
        engine = SettlementEngine(repository=repository, config=config, clock=clock)
        offer = engine.offers.submit_offer(
            listed.cycle.cycle_id,
            internal_buyer,
            Decimal("9500000"),
            Decimal("10"),
            source_type=OfferSource.INTERNAL_MATCH,
            buyer_agent_id="agent-002",
        )

        deal = engine.accept_offer(offer.offer_id, today)

        assert deal.commission.rate == Decimal("3")
        assert deal.commission.total == Decimal("285000")


class TestCompleteDeal:
    """Tests for completing deals."""

    def test_complete_requires_schedule(self, engine: SettlementEngine, internal_deal: Deal) -> None:
        with pytest.raises(InvalidEntityStateError, match="no payment schedule"):
            engine.deals.complete(internal_deal.deal_id)

    def test_complete_requires_settlement(self, engine: SettlementEngine, internal_deal: Deal, today: date) -> None:
        engine.payments.generate_schedule(internal_deal.deal_id, [(internal_deal.agreed_price, today)])

        with pytest.raises(InvalidEntityStateError, match="outstanding balance"):
            engine.deals.complete(internal_deal.deal_id)

    def test_complete_internal_deal(self, engine: SettlementEngine, internal_deal: Deal, today: date) -> None:
        settle(engine, internal_deal, today)

        deal = engine.deals.complete(internal_deal.deal_id)
        assert deal.status == DealStatus.COMPLETED
        assert deal.timeline.actual_closing_date == today
        requirement = engine.requirements.get(internal_deal.buyer_requirement_id)
        assert requirement.status == RequirementStatus.ACQUIRED
        assert requirement.acquired_property_id == internal_deal.property_id

    def test_complete_external_deal_closes_cycle(
        self, engine: SettlementEngine, external_deal: Deal, today: date, sink: MemoryEventSink
    ) -> None:
        settle(engine, external_deal, today)
        engine.deals.complete(external_deal.deal_id)

        cycle = engine.cycles.get_cycle(external_deal.cycle_id)
        prop = engine.cycles.get_property(external_deal.property_id)
        assert cycle.status == CycleStatus.CLOSED_WON
        assert prop.status == PropertyStatus.SOLD
        assert prop.active_cycles == {}
        assert "deal.completed" in sink.event_types

    def test_completed_deal_cannot_complete_again(
        self, engine: SettlementEngine, internal_deal: Deal, today: date
    ) -> None:
        settle(engine, internal_deal, today)
        engine.deals.complete(internal_deal.deal_id)

        with pytest.raises(InvalidEntityStateError):
            engine.deals.complete(internal_deal.deal_id)

    def test_manual_completion(self, repository: InMemoryRepository, clock, listed, today: date) -> None:
        """Without auto-completion the deal stays active until completed explicitly."""
        engine = SettlementEngine(
            repository=repository,
            config=EstateDealsConfig(event_sinks=[], auto_complete_on_settlement=False),
            clock=clock,
        )
        offer = engine.offers.submit_offer(listed.cycle.cycle_id, "Usman Tariq", Decimal("1000"), Decimal("10"))
        deal = engine.accept_offer(offer.offer_id, today)
        schedule = engine.payments.generate_schedule(deal.deal_id, [(Decimal("1000"), today)])
        engine.record_payment(schedule.schedule_id, schedule.instalments[0].instalment_id, Decimal("1000"), today)

        assert engine.deals.get_deal(deal.deal_id).is_active
        assert engine.deals.complete(deal.deal_id).status == DealStatus.COMPLETED


class TestCancelDeal:
    """Tests for cancelling deals."""

    def test_cancel_external_deal(self, engine: SettlementEngine, external_deal: Deal) -> None:
        deal = engine.deals.cancel(external_deal.deal_id, "Buyer financing fell through")

        assert deal.status == DealStatus.CANCELLED
        assert deal.cancellation_reason == "Buyer financing fell through"
        prop = engine.cycles.get_property(external_deal.property_id)
        assert prop.status == PropertyStatus.AVAILABLE
        assert engine.cycles.get_cycle(external_deal.cycle_id).status == CycleStatus.CLOSED_LOST
        assert engine.cycles.get_property(external_deal.shadow_property_id).inventory == InventoryType.TRACKED

    def test_cancel_requires_reason(self, engine: SettlementEngine, external_deal: Deal) -> None:
        with pytest.raises(ValidationError, match="at least 10 characters"):
            engine.deals.cancel(external_deal.deal_id, "too late")

        assert engine.deals.get_deal(external_deal.deal_id).is_active

    def test_cancel_after_transfer_refused(self, engine: SettlementEngine, internal_deal: Deal) -> None:
        with pytest.raises(InvalidEntityStateError, match="already been transferred"):
            engine.deals.cancel(internal_deal.deal_id, "Seller changed their mind")

    def test_cancel_internal_rent_deal_closes_cycle_lost(
        self, engine: SettlementEngine, listed, internal_buyer: BuyerRef, today: date, sink: MemoryEventSink
    ) -> None:
        rent = engine.cycles.open_cycle(listed.property.property_id, CycleKind.RENT, Decimal("90000"), "agent-001")
        offer = engine.offers.submit_offer(
            rent.cycle_id,
            internal_buyer,
            Decimal("90000"),
            Decimal("90000"),
            source_type=OfferSource.INTERNAL_MATCH,
            buyer_agent_id="agent-002",
        )
        deal = engine.accept_offer(offer.offer_id, today)
        assert engine.cycles.get_cycle(rent.cycle_id).status == CycleStatus.CLOSED_WON

        cancelled = engine.deals.cancel(deal.deal_id, "Tenant backed out before move-in")

        cycle = engine.cycles.get_cycle(rent.cycle_id)
        assert cancelled.status == DealStatus.CANCELLED
        assert cycle.status == CycleStatus.CLOSED_LOST
        assert cycle.close_reason == "Tenant backed out before move-in"
        prop = engine.cycles.get_property(listed.property.property_id)
        assert prop.status == PropertyStatus.AVAILABLE
        assert prop.has_open_cycle(CycleKind.SELL)
        assert not prop.has_open_cycle(CycleKind.RENT)
        assert sink.events[-1].event_type == "deal.cancelled"

    def test_cancel_twice_refused(self, engine: SettlementEngine, external_deal: Deal) -> None:
        engine.deals.cancel(external_deal.deal_id, "Buyer financing fell through")

        with pytest.raises(InvalidEntityStateError, match="already cancelled"):
            engine.deals.cancel(external_deal.deal_id, "Buyer financing fell through")

    def test_list_deals_by_status(self, engine: SettlementEngine, external_deal: Deal) -> None:
        engine.deals.cancel(external_deal.deal_id, "Buyer financing fell through")

        assert engine.deals.list_deals(DealStatus.ACTIVE) == []
        assert len(engine.deals.list_deals(DealStatus.CANCELLED)) == 1
