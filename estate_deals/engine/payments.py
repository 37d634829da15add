"""Instalment schedules and payment recording for deals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from estate_deals.engine.base import EngineComponent, new_id, require_positive
from estate_deals.exceptions import (
    ConflictError,
    InvalidEntityStateError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)
from estate_deals.models.enums import InstalmentStatus, OverdueSeverity
from estate_deals.models.payment import Instalment, InstalmentSpec, PaymentRecord, PaymentSchedule
from estate_deals.store.batch import WriteBatch
from estate_deals.store.repository import EntityKind

logger = logging.getLogger(__name__)


def split_evenly(total: Decimal, count: int) -> list[Decimal]:
    """Split ``total`` into ``count`` whole-unit amounts.

    Each instalment gets the even share rounded to a whole unit; the last
    one carries whatever is left, so 9,500,000 over three instalments is
    3,166,667 / 3,166,667 / 3,166,666. When rounding up would leave the
    last instalment empty the share is rounded down instead (9 over six is
    1 / 1 / 1 / 1 / 1 / 4).
    """
    if count < 1:
        raise ValidationError("At least one instalment is required")
    if total < count:
        raise ValidationError(f"Cannot split {total} into {count} instalments of at least one unit each")
    base = (total / count).quantize(Decimal("1"), ROUND_HALF_UP)
    if total - base * (count - 1) <= 0:
        base = (total / count).quantize(Decimal("1"), ROUND_DOWN)
    amounts = [base] * count
    amounts[-1] = total - base * (count - 1)
    return amounts


def overdue_severity(days_overdue: int) -> OverdueSeverity:
    if days_overdue > 60:
        return OverdueSeverity.SEVERE
    if days_overdue > 30:
        return OverdueSeverity.CRITICAL
    return OverdueSeverity.WARNING


@dataclass
class ScheduleSummary:
    """Progress of a payment schedule as of a given day."""

    schedule_id: str
    deal_id: str
    total_amount: Decimal
    total_paid: Decimal
    balance: Decimal
    percentage_complete: Decimal
    status_counts: dict[InstalmentStatus, int]
    next_due: Instalment | None
    is_settled: bool


@dataclass
class OverdueInstalment:
    deal_id: str
    schedule_id: str
    instalment_id: str
    number: int
    due_date: date
    outstanding: Decimal
    days_overdue: int
    severity: OverdueSeverity


class PaymentScheduleTracker(EngineComponent):
    """Own each deal's instalment plan and the payments made against it.

    Instalment status is never stored: every query derives it from the paid
    amount, the due date and the current day.
    """

    source = "payment-schedule-tracker"

    def get_schedule(self, schedule_id: str) -> PaymentSchedule:
        return self.repository.get(EntityKind.PAYMENT_SCHEDULE, schedule_id)

    def schedule_for_deal(self, deal_id: str) -> PaymentSchedule | None:
        schedules = self.repository.list(EntityKind.PAYMENT_SCHEDULE, lambda s: s.deal_id == deal_id)
        return schedules[0] if schedules else None

    def generate_schedule(
        self,
        deal_id: str,
        instalments: list[InstalmentSpec | tuple[Decimal, date]],
    ) -> PaymentSchedule:
        """Attach an instalment plan to an active deal.

        Parameters
        ----------
        deal_id : str
            Deal to attach the schedule to; a deal has at most one schedule.
        instalments : list[InstalmentSpec | tuple[Decimal, date]]
            Amount and due date of each instalment, in payment order.

        Returns
        -------
        PaymentSchedule
            The stored schedule.

        Raises
        ------
        ValidationError
            If the list is empty or an amount is not positive.
        ReconciliationError
            If the amounts do not add up exactly to the agreed price.
        """
        if not instalments:
            raise ValidationError("A payment schedule needs at least one instalment")
        specs: list[InstalmentSpec] = []
        for number, item in enumerate(instalments, start=1):
            amount, due_date = (item.amount, item.due_date) if isinstance(item, InstalmentSpec) else item
            if not isinstance(due_date, date):
                raise ValidationError(f"Instalment {number} needs a due date")
            specs.append(InstalmentSpec(require_positive(amount, f"Instalment {number} amount"), due_date))

        deal = self.repository.get(EntityKind.DEAL, deal_id)
        if not deal.is_active:
            raise InvalidEntityStateError(f"Deal {deal_id} is {deal.status.value}")
        if deal.schedule_id is not None:
            raise ConflictError(f"Deal {deal_id} already has schedule {deal.schedule_id}")

        total = sum((s.amount for s in specs), Decimal("0"))
        if total != deal.agreed_price:
            raise ReconciliationError(
                f"Instalments total {total} but deal {deal_id} agreed price is {deal.agreed_price}"
            )

        now = self.now()
        schedule = PaymentSchedule(
            schedule_id=new_id(),
            deal_id=deal_id,
            instalments=[
                Instalment(instalment_id=new_id(), number=number, amount=spec.amount, due_date=spec.due_date)
                for number, spec in enumerate(specs, start=1)
            ],
            created_at=now,
        )
        deal.schedule_id = schedule.schedule_id
        deal.updated_at = now

        WriteBatch(self.repository).put(EntityKind.PAYMENT_SCHEDULE, schedule).put(EntityKind.DEAL, deal).commit()

        logger.info("Schedule %s generated for deal %s: %d instalments", schedule.schedule_id, deal_id, len(specs))
        self.emit(
            "schedule.generated",
            schedule.schedule_id,
            {"deal_id": deal_id, "instalments": len(specs), "total": total},
        )
        return schedule

    def generate_even_schedule(
        self,
        deal_id: str,
        count: int,
        first_due_date: date,
        interval_days: int = 30,
    ) -> PaymentSchedule:
        """Generate ``count`` equal instalments spaced ``interval_days`` apart."""
        if interval_days < 0:
            raise ValidationError("Interval between instalments cannot be negative")
        deal = self.repository.get(EntityKind.DEAL, deal_id)
        amounts = split_evenly(deal.agreed_price, count)
        specs = [
            InstalmentSpec(amount=amount, due_date=first_due_date + timedelta(days=interval_days * i))
            for i, amount in enumerate(amounts)
        ]
        return self.generate_schedule(deal_id, specs)

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
        """Record a payment against one instalment.

        Rejects non-positive amounts, amounts above the instalment's
        remaining balance and payment dates after today.
        """
        amount = require_positive(amount, "Payment amount")
        if payment_date > self.today():
            raise ValidationError(f"Payment date {payment_date.isoformat()} is in the future")

        schedule = self.get_schedule(schedule_id)
        instalment = schedule.find_instalment(instalment_id)
        if instalment is None:
            raise NotFoundError(f"Instalment {instalment_id} not found in schedule {schedule_id}")
        if amount > instalment.remaining:
            raise ValidationError(
                f"Payment {amount} exceeds remaining balance {instalment.remaining} "
                f"of instalment {instalment.number}"
            )

        deal = self.repository.get(EntityKind.DEAL, schedule.deal_id)
        if not deal.is_active:
            raise InvalidEntityStateError(f"Deal {deal.deal_id} is {deal.status.value}")

        now = self.now()
        instalment.paid_amount += amount
        instalment.payments.append(
            PaymentRecord(
                payment_id=new_id(),
                payment_date=payment_date,
                amount=amount,
                method=method,
                receipt_ref=receipt_ref,
                notes=notes,
                recorded_at=now,
            )
        )
        schedule.updated_at = now
        self.repository.put(EntityKind.PAYMENT_SCHEDULE, schedule)

        status = instalment.status(self.today())
        logger.info(
            "Payment of %s recorded on instalment %d of schedule %s (%s)",
            amount,
            instalment.number,
            schedule_id,
            status.value,
            extra=self.log_context(deal_id=schedule.deal_id),
        )
        self.emit(
            "payment.recorded",
            schedule_id,
            {
                "deal_id": schedule.deal_id,
                "instalment_id": instalment_id,
                "amount": amount,
                "paid_amount": instalment.paid_amount,
                "status": status,
                "payment_date": payment_date,
            },
        )
        return schedule

    def instalment_status(self, schedule_id: str, instalment_id: str, today: date | None = None) -> InstalmentStatus:
        schedule = self.get_schedule(schedule_id)
        instalment = schedule.find_instalment(instalment_id)
        if instalment is None:
            raise NotFoundError(f"Instalment {instalment_id} not found in schedule {schedule_id}")
        return instalment.status(today or self.today())

    def summary(self, schedule_id: str, today: date | None = None) -> ScheduleSummary:
        today = today or self.today()
        schedule = self.get_schedule(schedule_id)

        counts = {status: 0 for status in InstalmentStatus}
        for instalment in schedule.instalments:
            counts[instalment.status(today)] += 1

        unpaid = [i for i in schedule.instalments if i.remaining > 0]
        next_due = min(unpaid, key=lambda i: (i.due_date, i.number)) if unpaid else None

        total = schedule.total_amount
        percentage = Decimal("0")
        if total > 0:
            percentage = (schedule.total_paid * 100 / total).quantize(Decimal("0.01"), ROUND_HALF_UP)

        return ScheduleSummary(
            schedule_id=schedule_id,
            deal_id=schedule.deal_id,
            total_amount=total,
            total_paid=schedule.total_paid,
            balance=schedule.balance,
            percentage_complete=percentage,
            status_counts=counts,
            next_due=next_due,
            is_settled=schedule.is_settled,
        )

    def overdue_report(self, today: date | None = None) -> list[OverdueInstalment]:
        """Overdue instalments on active deals, most overdue first."""
        today = today or self.today()
        active_deals = {d.deal_id for d in self.repository.list(EntityKind.DEAL, lambda d: d.is_active)}

        report: list[OverdueInstalment] = []
        for schedule in self.repository.list(EntityKind.PAYMENT_SCHEDULE, lambda s: s.deal_id in active_deals):
            for instalment in schedule.instalments:
                if instalment.status(today) != InstalmentStatus.OVERDUE:
                    continue
                days = (today - instalment.due_date).days
                report.append(
                    OverdueInstalment(
                        deal_id=schedule.deal_id,
                        schedule_id=schedule.schedule_id,
                        instalment_id=instalment.instalment_id,
                        number=instalment.number,
                        due_date=instalment.due_date,
                        outstanding=instalment.remaining,
                        days_overdue=days,
                        severity=overdue_severity(days),
                    )
                )
        return sorted(report, key=lambda r: r.days_overdue, reverse=True)
