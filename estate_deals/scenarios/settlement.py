"""Settlement scenario: list properties, negotiate, finalize and collect."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from estate_deals.config import EstateDealsConfig
from estate_deals.engine.base import Clock
from estate_deals.engine.settlement import SettlementEngine
from estate_deals.generators.brokerage import BuyerGenerator, ListingGenerator
from estate_deals.models.base import Actor
from estate_deals.models.deal import Deal
from estate_deals.models.enums import ActorRole, CycleKind, DealStatus, OfferSource

logger = logging.getLogger(__name__)

ADMIN = Actor("admin-001", ActorRole.ADMIN)


@dataclass
class ScenarioResult:
    engine: SettlementEngine
    deals: list[Deal] = field(default_factory=list)

    @property
    def completed(self) -> list[Deal]:
        return [d for d in self.deals if d.status == DealStatus.COMPLETED]


class SettlementScenario:
    """Run the full pipeline over generated listings.

    This scenario creates:
    - Agency listings with sell cycles, spread over a pool of agents
    - One to three competing offers per listing, internal or external
    - A deal from the best offer, with its commission split
    - An even instalment schedule; a share of deals is paid off and
      completes, the rest stay part-paid
    - Admin approval of commission on completed deals
    """

    def __init__(
        self,
        num_properties: int = 10,
        internal_match_rate: float = 0.5,
        settle_rate: float = 0.7,
        instalments: int = 3,
        num_agents: int = 4,
        seed: int | None = None,
        *,
        config: EstateDealsConfig | None = None,
        clock: Clock = datetime.now,
    ) -> None:
        """Initialize settlement scenario.

        Parameters
        ----------
        num_properties : int
            Number of listings to generate.
        internal_match_rate : float
            Share of listings sold to a buyer from the agency's own pool.
        settle_rate : float
            Share of deals whose schedule is paid in full.
        instalments : int
            Instalments per payment schedule.
        num_agents : int
            Size of the agent pool; at least 2 so internal matches have a
            distinct buying agent.
        seed : int | None
            Random seed for reproducibility.
        config : EstateDealsConfig | None
            Engine configuration; defaults publish to no sinks.
        clock : Clock
            Time source shared by the engine.
        """
        if num_agents < 2:
            raise ValueError("At least two agents are required")

        self.num_properties = num_properties
        self.internal_match_rate = internal_match_rate
        self.settle_rate = settle_rate
        self.instalments = instalments
        self.agents = [f"agent-{i:03d}" for i in range(1, num_agents + 1)]
        self.clock = clock

        self._listings = ListingGenerator(seed=seed)
        self._buyers = BuyerGenerator(seed=seed)
        self.random = self._listings.random

        config = config or EstateDealsConfig(event_sinks=[])
        self.engine = SettlementEngine.from_config(config, clock=clock)

    def generate(self) -> ScenarioResult:
        """Run the scenario.

        Returns
        -------
        ScenarioResult
            The engine holding every generated record and the deals created.
        """
        logger.info(
            "Starting settlement scenario: %d properties, %.0f%% internal matches",
            self.num_properties,
            self.internal_match_rate * 100,
        )
        result = ScenarioResult(engine=self.engine)

        for _ in range(self.num_properties):
            deal = self._sell_one()
            result.deals.append(deal)

        for deal in result.deals:
            self._collect(deal)

        result.deals = [self.engine.deals.get_deal(d.deal_id) for d in result.deals]
        self._approve_commission(result.completed)

        logger.info(
            "Scenario complete: %d deals, %d completed",
            len(result.deals),
            len(result.completed),
        )
        return result

    def _sell_one(self) -> Deal:
        engine = self.engine
        listing = self._listings.generate()
        agent = self.random.choice(self.agents)

        prop = engine.cycles.register_property(
            address=listing.address,
            area=listing.area,
            area_unit=listing.area_unit,
            agent_id=agent,
            owner_id=f"owner-{self._buyers.fake.uuid4()}",
            owner_name=listing.owner_name,
        )
        cycle = engine.cycles.open_cycle(prop.property_id, CycleKind.SELL, listing.asking_price, agent)

        offers = []
        for _ in range(self.random.randint(1, 3)):
            terms = self._buyers.offer_terms(listing.asking_price)
            if self.random.random() < self.internal_match_rate:
                buying_agent = self.random.choice([a for a in self.agents if a != agent])
                requirement = engine.requirements.register(self._buyers.fake.name(), buying_agent)
                offer = engine.offers.submit_offer(
                    cycle.cycle_id,
                    self._buyers.generate(requirement.requirement_id),
                    terms.offer_amount,
                    terms.token_amount,
                    source_type=OfferSource.INTERNAL_MATCH,
                    buyer_agent_id=buying_agent,
                )
            else:
                offer = engine.offers.submit_offer(
                    cycle.cycle_id,
                    self._buyers.generate(),
                    terms.offer_amount,
                    terms.token_amount,
                )
            offers.append(offer)

        best = max(offers, key=lambda o: o.offer_amount)
        closing = self.clock().date() + timedelta(days=60)
        return engine.accept_offer(best.offer_id, closing)

    def _collect(self, deal: Deal) -> None:
        engine = self.engine
        today = self.clock().date()
        schedule = engine.payments.generate_even_schedule(deal.deal_id, self.instalments, today, 30)

        pay_all = self.random.random() < self.settle_rate
        to_pay = schedule.instalments if pay_all else schedule.instalments[:1]
        for instalment in to_pay:
            engine.record_payment(
                schedule.schedule_id,
                instalment.instalment_id,
                instalment.amount,
                today,
                method="bank-transfer",
            )

    def _approve_commission(self, deals: list[Deal]) -> None:
        entry_ids = [e.entry_id for d in deals for e in d.commission.entries]
        if entry_ids:
            outcome = self.engine.commission.bulk_approve(entry_ids, ADMIN)
            logger.info("Approved %d commission entries", len(outcome.succeeded))
