"""Property cycle and deal settlement engine components."""

from estate_deals.engine.commission import BulkResult, CommissionCalculator
from estate_deals.engine.cycles import InternalMatch, PropertyCycleManager
from estate_deals.engine.deals import DealFinalizer
from estate_deals.engine.offers import AcceptedOffer, OfferNegotiationEngine, OfferSummary
from estate_deals.engine.payments import OverdueInstalment, PaymentScheduleTracker, ScheduleSummary
from estate_deals.engine.requirements import RequirementBook
from estate_deals.engine.settlement import SettlementEngine

__all__ = [
    "AcceptedOffer",
    "BulkResult",
    "CommissionCalculator",
    "DealFinalizer",
    "InternalMatch",
    "OfferNegotiationEngine",
    "OfferSummary",
    "OverdueInstalment",
    "PaymentScheduleTracker",
    "PropertyCycleManager",
    "RequirementBook",
    "ScheduleSummary",
    "SettlementEngine",
]
