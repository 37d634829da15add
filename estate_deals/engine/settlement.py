"""Settlement engine wiring the pipeline components together."""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from estate_deals.config import EstateDealsConfig
from estate_deals.engine.base import Clock
from estate_deals.engine.commission import CommissionCalculator
from estate_deals.engine.cycles import PropertyCycleManager
from estate_deals.engine.deals import DealFinalizer
from estate_deals.engine.offers import OfferNegotiationEngine
from estate_deals.engine.payments import PaymentScheduleTracker
from estate_deals.engine.requirements import RequirementBook
from estate_deals.events.publisher import EventPublisher
from estate_deals.models.deal import Deal
from estate_deals.models.payment import PaymentSchedule
from estate_deals.store.memory import InMemoryRepository
from estate_deals.store.repository import Repository

logger = logging.getLogger(__name__)


class SettlementEngine:
    """One repository, publisher and clock shared by every component.

    Accepting an offer here also finalizes its deal, and the payment that
    settles a schedule completes the deal when
    ``config.auto_complete_on_settlement`` is set.
    """

    def __init__(
        self,
        repository: Repository | None = None,
        publisher: EventPublisher | None = None,
        config: EstateDealsConfig | None = None,
        clock: Clock = datetime.now,
    ) -> None:
        self.config = config or EstateDealsConfig(event_sinks=[])
        self.repository = repository or InMemoryRepository()
        self.publisher = publisher or EventPublisher(clock=clock)
        self.clock = clock

        shared = {"repository": self.repository, "publisher": self.publisher, "clock": clock}
        self.payments = PaymentScheduleTracker(**shared)
        self.commission = CommissionCalculator(**shared)
        self.requirements = RequirementBook(**shared)
        self.cycles = PropertyCycleManager(**shared)
        self.offers = OfferNegotiationEngine(**shared)
        self.deals = DealFinalizer(
            **shared,
            commission=self.commission,
            commission_config=self.config.commission,
        )

    @classmethod
    def from_config(
        cls,
        config: EstateDealsConfig,
        repository: Repository | None = None,
        clock: Clock = datetime.now,
    ) -> SettlementEngine:
        publisher = EventPublisher.from_config(config)
        publisher.clock = clock
        return cls(repository=repository, publisher=publisher, config=config, clock=clock)

    def accept_offer(self, offer_id: str, closing_date: date, actor: str | None = None) -> Deal:
        """Accept an offer and finalize its deal.

        If finalization fails the offer stays accepted; calling
        ``deals.finalize`` again is safe.
        """
        self.offers.accept_offer(offer_id, closing_date, actor)
        return self.deals.finalize(offer_id)

    def record_payment(
        self,
        schedule_id: str,
        instalment_id: str,
        amount: Decimal,
        payment_date: date,
        method: str | None = None,
        receipt_ref: str | None = None,
        notes: str | None = None,
    ) -> PaymentSchedule:
        schedule = self.payments.record_payment(
            schedule_id, instalment_id, amount, payment_date, method, receipt_ref, notes
        )
        if schedule.is_settled and self.config.auto_complete_on_settlement:
            logger.info("Schedule %s settled; completing deal %s", schedule_id, schedule.deal_id)
            self.deals.complete(schedule.deal_id)
        return schedule

    def close(self) -> None:
        self.publisher.close()
