"""Commission computation and the split approval workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from estate_deals.engine.base import EngineComponent, new_id, require_positive, require_reason
from estate_deals.exceptions import (
    EstateDealsError,
    InvalidEntityStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from estate_deals.models.base import Actor
from estate_deals.models.deal import CommissionAuditRecord, CommissionSplitEntry, Deal, SplitParty
from estate_deals.models.enums import CommissionStatus, DealStatus, SplitPolicy
from estate_deals.store.repository import EntityKind

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def commission_total(agreed_price: Decimal, rate: Decimal) -> Decimal:
    """``agreed_price * rate / 100`` rounded to cents."""
    return (agreed_price * rate / HUNDRED).quantize(CENT, ROUND_HALF_UP)


def split_percentages(
    policy: SplitPolicy,
    party_count: int,
    percentages: list[Decimal] | None = None,
) -> list[Decimal]:
    """Percentages for each party under ``policy``."""
    if policy == SplitPolicy.TWO_WAY:
        if party_count != 2:
            raise ValidationError(f"A two-way split needs exactly 2 parties, got {party_count}")
        return [Decimal("50"), Decimal("50")]

    if policy == SplitPolicy.SINGLE:
        if party_count != 1:
            raise ValidationError(f"A single-party split needs exactly 1 party, got {party_count}")
        return [HUNDRED]

    if percentages is None or len(percentages) != party_count:
        raise ValidationError("A custom split needs one percentage per party")
    values = [Decimal(str(p)) for p in percentages]
    if any(p <= 0 for p in values):
        raise ValidationError("Split percentages must be greater than zero")
    total = sum(values, Decimal("0"))
    if total != HUNDRED:
        raise ValidationError(f"Split percentages must sum to exactly 100, got {total}")
    return values


def allocate(total: Decimal, percentages: list[Decimal]) -> list[Decimal]:
    """Amounts per percentage, summing exactly to ``total``.

    Every share is rounded to cents; the last share takes the rounding
    difference.
    """
    amounts = [(total * pct / HUNDRED).quantize(CENT, ROUND_HALF_UP) for pct in percentages]
    if amounts:
        amounts[-1] += total - sum(amounts, Decimal("0"))
    return amounts


def check_unique_parties(parties: list[SplitParty]) -> None:
    seen: set[str] = set()
    for party in parties:
        if party.key in seen:
            raise ValidationError(f"Duplicate party in split: {party.key}")
        seen.add(party.key)


def check_percentage_sum(entries: list[CommissionSplitEntry]) -> None:
    total = sum((e.percentage for e in entries), Decimal("0"))
    if total != HUNDRED:
        raise ValidationError(f"Split percentages must sum to exactly 100, got {total}")


def require_admin(actor: Actor | None) -> Actor:
    if actor is None or not actor.is_admin:
        who = actor.actor_id if actor is not None else "anonymous"
        raise PermissionDeniedError(f"{who} is not allowed to manage commissions")
    return actor


@dataclass
class BulkResult:
    """Per-entry outcome of a bulk workflow action."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class CommissionCalculator(EngineComponent):
    """Compute commission splits and run their approval workflow.

    Approval, rejection, override, payment and split edits are restricted to
    administrators.
    """

    source = "commission-calculator"

    def build_entries(
        self,
        total: Decimal,
        policy: SplitPolicy,
        parties: list[SplitParty],
        percentages: list[Decimal] | None = None,
    ) -> list[CommissionSplitEntry]:
        """Split entries for ``total`` without storing anything."""
        if not parties:
            raise ValidationError("A split needs at least one party")
        check_unique_parties(parties)
        shares = split_percentages(SplitPolicy(policy), len(parties), percentages)
        amounts = allocate(total, shares)

        now = self.now()
        return [
            CommissionSplitEntry(
                entry_id=new_id(),
                party=party,
                percentage=share,
                amount=amount,
                audit=[CommissionAuditRecord("computed", None, now, amount=amount)],
            )
            for party, share, amount in zip(parties, shares, amounts)
        ]

    def compute_split(
        self,
        deal_id: str,
        policy: SplitPolicy,
        parties: list[SplitParty],
        percentages: list[Decimal] | None = None,
    ) -> list[CommissionSplitEntry]:
        """Replace a deal's split with a freshly computed one.

        Only allowed while every existing entry is pending and not
        overridden, so no approval or override is lost.
        """
        deal = self._active_deal(deal_id)
        self._require_untouched(deal)
        entries = self.build_entries(deal.commission.total, policy, parties, percentages)

        deal.commission.split_policy = SplitPolicy(policy)
        deal.commission.entries = entries
        self._save(deal)

        logger.info("Computed %s split for deal %s: %d parties", policy, deal_id, len(entries))
        self.emit("commission.split_updated", deal_id, {"policy": policy, "parties": len(entries)})
        return entries

    def get_entry(self, entry_id: str) -> CommissionSplitEntry:
        return self._locate(entry_id)[1]

    def approve(self, entry_id: str, actor: Actor) -> CommissionSplitEntry:
        require_admin(actor)
        deal, entry = self._locate(entry_id)
        self._require_open_deal(deal)
        if entry.status != CommissionStatus.PENDING:
            raise InvalidEntityStateError(f"Entry {entry_id} is {entry.status.value}, not pending")

        now = self.now()
        entry.status = CommissionStatus.APPROVED
        entry.approved_by = actor.actor_id
        entry.approved_at = now
        entry.audit.append(CommissionAuditRecord("approved", actor.actor_id, now, amount=entry.amount))
        self._save(deal)

        self._notify("commission.approved", deal, entry, actor)
        return entry

    def reject(self, entry_id: str, reason: str, actor: Actor) -> CommissionSplitEntry:
        """Send an entry back to pending with the reason recorded."""
        require_admin(actor)
        reason = require_reason(reason)
        deal, entry = self._locate(entry_id)
        self._require_open_deal(deal)
        if entry.status == CommissionStatus.PAID:
            raise InvalidEntityStateError(f"Entry {entry_id} is already paid")

        entry.status = CommissionStatus.PENDING
        entry.rejection_reason = reason
        entry.approved_by = None
        entry.approved_at = None
        entry.audit.append(CommissionAuditRecord("rejected", actor.actor_id, self.now(), note=reason))
        self._save(deal)

        self._notify("commission.rejected", deal, entry, actor, reason=reason)
        return entry

    def override(self, entry_id: str, new_amount: Decimal, reason: str, actor: Actor) -> CommissionSplitEntry:
        """Replace an entry's amount, keeping the original for audit.

        ``override_amount`` holds the amount computed before the first
        override. The entry returns to pending and needs a fresh approval.
        """
        require_admin(actor)
        new_amount = require_positive(new_amount, "Override amount")
        reason = require_reason(reason)
        deal, entry = self._locate(entry_id)
        self._require_open_deal(deal)
        if entry.status == CommissionStatus.PAID:
            raise InvalidEntityStateError(f"Entry {entry_id} is already paid")

        now = self.now()
        previous = entry.amount
        if entry.override_amount is None:
            entry.override_amount = previous
        entry.amount = new_amount
        entry.override_reason = reason
        entry.overridden_by = actor.actor_id
        entry.overridden_at = now
        entry.status = CommissionStatus.PENDING
        entry.approved_by = None
        entry.approved_at = None
        entry.audit.append(
            CommissionAuditRecord("overridden", actor.actor_id, now, note=f"{reason} (was {previous})", amount=new_amount)
        )
        self._save(deal)

        logger.info("Entry %s on deal %s overridden: %s -> %s", entry_id, deal.deal_id, previous, new_amount)
        self._notify("commission.overridden", deal, entry, actor, reason=reason, previous_amount=previous)
        return entry

    def mark_paid(self, entry_id: str, actor: Actor) -> CommissionSplitEntry:
        require_admin(actor)
        deal, entry = self._locate(entry_id)
        self._require_open_deal(deal)
        if entry.status != CommissionStatus.APPROVED:
            raise InvalidEntityStateError(f"Entry {entry_id} is {entry.status.value}, not approved")

        now = self.now()
        entry.status = CommissionStatus.PAID
        entry.paid_at = now
        entry.audit.append(CommissionAuditRecord("paid", actor.actor_id, now, amount=entry.amount))
        self._save(deal)

        self._notify("commission.paid", deal, entry, actor)
        return entry

    def bulk_approve(self, entry_ids: list[str], actor: Actor) -> BulkResult:
        require_admin(actor)
        return self._bulk(entry_ids, lambda entry_id: self.approve(entry_id, actor))

    def bulk_reject(self, entry_ids: list[str], reason: str, actor: Actor) -> BulkResult:
        require_admin(actor)
        reason = require_reason(reason)
        return self._bulk(entry_ids, lambda entry_id: self.reject(entry_id, reason, actor))

    def bulk_mark_paid(self, entry_ids: list[str], actor: Actor) -> BulkResult:
        require_admin(actor)
        return self._bulk(entry_ids, lambda entry_id: self.mark_paid(entry_id, actor))

    def _bulk(self, entry_ids: list[str], action: Callable[[str], CommissionSplitEntry]) -> BulkResult:
        result = BulkResult()
        for entry_id in entry_ids:
            try:
                action(entry_id)
            except EstateDealsError as exc:
                result.failed[entry_id] = str(exc)
                logger.warning("Bulk action skipped entry %s: %s", entry_id, exc)
            else:
                result.succeeded.append(entry_id)
        return result

    def add_party(
        self,
        deal_id: str,
        party: SplitParty,
        percentage: Decimal,
        take_from: str,
        actor: Actor,
    ) -> CommissionSplitEntry:
        """Add a party, moving ``percentage`` points from entry ``take_from``."""
        require_admin(actor)
        percentage = require_positive(percentage, "Percentage")
        deal = self._active_deal(deal_id)
        entries = deal.commission.entries

        check_unique_parties([e.party for e in entries] + [party])
        donor = self._editable_entry(deal, take_from)
        if donor.percentage - percentage <= 0:
            raise ValidationError(
                f"Entry {take_from} holds {donor.percentage}% and cannot give up {percentage}%"
            )

        now = self.now()
        amount = (deal.commission.total * percentage / HUNDRED).quantize(CENT, ROUND_HALF_UP)
        entry = CommissionSplitEntry(
            entry_id=new_id(),
            party=party,
            percentage=percentage,
            amount=amount,
            audit=[CommissionAuditRecord("computed", actor.actor_id, now, amount=amount)],
        )
        donor.percentage -= percentage
        donor.amount -= amount
        donor.audit.append(
            CommissionAuditRecord("rebalanced", actor.actor_id, now, note=f"gave {percentage}% to {party.key}")
        )
        entries.append(entry)
        deal.commission.split_policy = SplitPolicy.CUSTOM

        check_percentage_sum(entries)
        self._save(deal)
        self.emit("commission.split_updated", deal_id, {"added": entry.entry_id, "actor": actor.actor_id})
        return entry

    def remove_party(self, deal_id: str, entry_id: str, reassign_to: str, actor: Actor) -> list[CommissionSplitEntry]:
        """Remove an entry, handing its share to entry ``reassign_to``."""
        require_admin(actor)
        if entry_id == reassign_to:
            raise ValidationError("An entry cannot be reassigned to itself")
        deal = self._active_deal(deal_id)
        removed = self._editable_entry(deal, entry_id)
        heir = self._editable_entry(deal, reassign_to)

        heir.percentage += removed.percentage
        heir.amount += removed.amount
        heir.audit.append(
            CommissionAuditRecord(
                "rebalanced", actor.actor_id, self.now(), note=f"received {removed.percentage}% from {removed.party.key}"
            )
        )
        deal.commission.entries = [e for e in deal.commission.entries if e.entry_id != entry_id]
        if len(deal.commission.entries) == 1:
            deal.commission.split_policy = SplitPolicy.SINGLE
        else:
            deal.commission.split_policy = SplitPolicy.CUSTOM

        check_percentage_sum(deal.commission.entries)
        self._save(deal)
        self.emit("commission.split_updated", deal_id, {"removed": entry_id, "actor": actor.actor_id})
        return deal.commission.entries

    def update_percentage(
        self,
        deal_id: str,
        entry_id: str,
        percentage: Decimal,
        counterpart: str,
        actor: Actor,
    ) -> list[CommissionSplitEntry]:
        """Set an entry's percentage; ``counterpart`` absorbs the difference."""
        require_admin(actor)
        percentage = require_positive(percentage, "Percentage")
        if entry_id == counterpart:
            raise ValidationError("An entry cannot be balanced against itself")
        deal = self._active_deal(deal_id)
        entry = self._editable_entry(deal, entry_id)
        other = self._editable_entry(deal, counterpart)

        delta = percentage - entry.percentage
        if other.percentage - delta <= 0:
            raise ValidationError(f"Entry {counterpart} cannot give up {delta}%")

        entry.percentage = percentage
        other.percentage -= delta
        combined = entry.amount + other.amount
        entry.amount = (deal.commission.total * percentage / HUNDRED).quantize(CENT, ROUND_HALF_UP)
        other.amount = combined - entry.amount
        now = self.now()
        for changed in (entry, other):
            changed.audit.append(
                CommissionAuditRecord("rebalanced", actor.actor_id, now, note=f"now {changed.percentage}%", amount=changed.amount)
            )
        deal.commission.split_policy = SplitPolicy.CUSTOM

        check_percentage_sum(deal.commission.entries)
        self._save(deal)
        self.emit("commission.split_updated", deal_id, {"updated": entry_id, "actor": actor.actor_id})
        return deal.commission.entries

    def change_rate(self, deal_id: str, rate: Decimal, actor: Actor) -> Deal:
        """Recompute the total and every amount for a new commission rate."""
        require_admin(actor)
        rate = require_positive(rate, "Commission rate")
        if rate > HUNDRED:
            raise ValidationError(f"Commission rate cannot exceed 100, got {rate}")
        deal = self._active_deal(deal_id)
        self._require_untouched(deal)

        commission = deal.commission
        commission.rate = rate
        commission.total = commission_total(deal.agreed_price, rate)
        amounts = allocate(commission.total, [e.percentage for e in commission.entries])
        now = self.now()
        for entry, amount in zip(commission.entries, amounts):
            entry.amount = amount
            entry.audit.append(CommissionAuditRecord("rebalanced", actor.actor_id, now, note=f"rate {rate}%", amount=amount))
        self._save(deal)

        logger.info("Commission rate on deal %s changed to %s%% (total %s)", deal_id, rate, commission.total)
        self.emit("commission.rate_changed", deal_id, {"rate": rate, "total": commission.total})
        return deal

    def _locate(self, entry_id: str) -> tuple[Deal, CommissionSplitEntry]:
        deals = self.repository.list(
            EntityKind.DEAL, lambda d: d.commission.find_entry(entry_id) is not None
        )
        if not deals:
            raise NotFoundError(f"Commission entry {entry_id} not found")
        deal = deals[0]
        return deal, deal.commission.find_entry(entry_id)

    def _active_deal(self, deal_id: str) -> Deal:
        deal = self.repository.get(EntityKind.DEAL, deal_id)
        if not deal.is_active:
            raise InvalidEntityStateError(f"Deal {deal_id} is {deal.status.value}")
        return deal

    def _require_open_deal(self, deal: Deal) -> None:
        if deal.status == DealStatus.CANCELLED:
            raise InvalidEntityStateError(f"Deal {deal.deal_id} is cancelled")

    def _require_untouched(self, deal: Deal) -> None:
        for entry in deal.commission.entries:
            if entry.status != CommissionStatus.PENDING or entry.is_overridden:
                raise InvalidEntityStateError(
                    f"Entry {entry.entry_id} on deal {deal.deal_id} has already been worked on"
                )

    def _editable_entry(self, deal: Deal, entry_id: str) -> CommissionSplitEntry:
        entry = deal.commission.find_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Commission entry {entry_id} not found on deal {deal.deal_id}")
        if entry.status != CommissionStatus.PENDING or entry.is_overridden:
            raise InvalidEntityStateError(f"Entry {entry_id} can no longer be re-split")
        return entry

    def _save(self, deal: Deal) -> None:
        deal.updated_at = self.now()
        self.repository.put(EntityKind.DEAL, deal)

    def _notify(self, event_type: str, deal: Deal, entry: CommissionSplitEntry, actor: Actor, **extra) -> None:
        logger.info(
            "%s: entry %s on deal %s by %s",
            event_type,
            entry.entry_id,
            deal.deal_id,
            actor.actor_id,
            extra=self.log_context(deal_id=deal.deal_id, property_id=deal.property_id),
        )
        self.emit(
            event_type,
            entry.entry_id,
            {"deal_id": deal.deal_id, "amount": entry.amount, "status": entry.status, "actor": actor.actor_id, **extra},
        )
