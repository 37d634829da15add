"""Pytest configuration and fixtures."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from estate_deals.engine import SettlementEngine
from estate_deals.events import EventPublisher, MemoryEventSink
from estate_deals.models import Actor, Address, BuyerRef, Cycle, Deal, Property
from estate_deals.models.enums import ActorRole, AreaUnit, CycleKind, OfferSource
from estate_deals.store import InMemoryRepository


class FixedClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.current += timedelta(days=days, hours=hours)


@dataclass
class ListedProperty:
    property: Property
    cycle: Cycle


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2025-03-01 10:00."""
    return FixedClock(datetime(2025, 3, 1, 10, 0))


@pytest.fixture
def today(clock: FixedClock) -> date:
    return clock().date()


@pytest.fixture
def repository() -> InMemoryRepository:
    """Create a fresh repository for each test."""
    return InMemoryRepository()


@pytest.fixture
def sink() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture
def engine(repository: InMemoryRepository, sink: MemoryEventSink, clock: FixedClock) -> SettlementEngine:
    """Settlement engine recording its events in ``sink``."""
    publisher = EventPublisher([sink], clock=clock)
    return SettlementEngine(repository=repository, publisher=publisher, clock=clock)


@pytest.fixture
def admin() -> Actor:
    return Actor("admin-001", ActorRole.ADMIN)


@pytest.fixture
def agent_actor() -> Actor:
    return Actor("agent-001", ActorRole.AGENT)


@pytest.fixture
def sample_address() -> Address:
    return Address(line1="House 12, Street 4", area="DHA Phase 5", city="Lahore", postal_code="54792")


@pytest.fixture
def listed(engine: SettlementEngine, sample_address: Address) -> ListedProperty:
    """Owned property with an open sell cycle asking 10,000,000."""
    prop = engine.cycles.register_property(
        address=sample_address,
        area=Decimal("10"),
        area_unit=AreaUnit.MARLA,
        agent_id="agent-001",
        owner_id="owner-001",
        owner_name="Ayesha Khan",
    )
    cycle = engine.cycles.open_cycle(prop.property_id, CycleKind.SELL, Decimal("10000000"), "agent-001")
    return ListedProperty(property=engine.cycles.get_property(prop.property_id), cycle=cycle)


@pytest.fixture
def internal_buyer(engine: SettlementEngine) -> BuyerRef:
    requirement = engine.requirements.register("Bilal Ahmed", "agent-002", Decimal("9800000"))
    return BuyerRef(name="Bilal Ahmed", requirement_id=requirement.requirement_id, contact_id="buyer-001")


@pytest.fixture
def internal_deal(
    engine: SettlementEngine,
    listed: ListedProperty,
    internal_buyer: BuyerRef,
    today: date,
) -> Deal:
    """Internal-match deal at 9,500,000 with a 2% commission."""
    offer = engine.offers.submit_offer(
        listed.cycle.cycle_id,
        internal_buyer,
        Decimal("9500000"),
        Decimal("950000"),
        source_type=OfferSource.INTERNAL_MATCH,
        buyer_agent_id="agent-002",
    )
    return engine.accept_offer(offer.offer_id, today + timedelta(days=60))
