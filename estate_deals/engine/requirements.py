"""Buyer requirements served from the agency's pool."""

from decimal import Decimal

from estate_deals.engine.base import EngineComponent, new_id, require_positive
from estate_deals.exceptions import ValidationError
from estate_deals.models.enums import RequirementStatus
from estate_deals.models.requirement import BuyerRequirement
from estate_deals.store.repository import EntityKind


class RequirementBook(EngineComponent):
    """Register buyer requirements and look them up."""

    source = "requirement-book"

    def register(self, buyer_name: str, agent_id: str, budget: Decimal | None = None) -> BuyerRequirement:
        if not buyer_name or not buyer_name.strip():
            raise ValidationError("Buyer name is required")
        if budget is not None:
            budget = require_positive(budget, "Budget")

        requirement = BuyerRequirement(
            requirement_id=new_id(),
            buyer_name=buyer_name.strip(),
            agent_id=agent_id,
            budget=budget,
            created_at=self.now(),
        )
        self.repository.put(EntityKind.BUYER_REQUIREMENT, requirement)
        return requirement

    def get(self, requirement_id: str) -> BuyerRequirement:
        return self.repository.get(EntityKind.BUYER_REQUIREMENT, requirement_id)

    def list_active(self, agent_id: str | None = None) -> list[BuyerRequirement]:
        return self.repository.list(
            EntityKind.BUYER_REQUIREMENT,
            lambda r: r.status == RequirementStatus.ACTIVE and (agent_id is None or r.agent_id == agent_id),
        )
