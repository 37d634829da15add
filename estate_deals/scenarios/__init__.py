"""End-to-end scenarios driving the settlement engine with sample data."""

from estate_deals.scenarios.settlement import ScenarioResult, SettlementScenario

__all__ = ["ScenarioResult", "SettlementScenario"]
