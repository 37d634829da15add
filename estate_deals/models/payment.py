"""Payment schedule models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from estate_deals.models.enums import InstalmentStatus


def derive_instalment_status(
    paid_amount: Decimal,
    amount: Decimal,
    due_date: date,
    today: date,
) -> InstalmentStatus:
    """Status of an instalment as of ``today``."""
    if paid_amount >= amount:
        return InstalmentStatus.PAID
    if paid_amount > 0:
        return InstalmentStatus.PARTIAL
    if due_date < today:
        return InstalmentStatus.OVERDUE
    return InstalmentStatus.PENDING


@dataclass
class PaymentRecord:
    """A single payment received against an instalment."""

    payment_id: str
    payment_date: date
    amount: Decimal
    method: str | None = None  # cash, bank-transfer, cheque, ...
    receipt_ref: str | None = None
    notes: str | None = None
    recorded_at: datetime | None = None


@dataclass
class InstalmentSpec:
    """Caller-supplied instalment terms for schedule generation."""

    amount: Decimal
    due_date: date


@dataclass
class Instalment:
    """One scheduled partial payment within a deal's payment plan."""

    instalment_id: str
    number: int  # 1, 2, 3, ...
    amount: Decimal
    due_date: date
    paid_amount: Decimal = Decimal("0")
    payments: list[PaymentRecord] = field(default_factory=list)

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.paid_amount

    def status(self, today: date) -> InstalmentStatus:
        return derive_instalment_status(self.paid_amount, self.amount, self.due_date, today)


@dataclass
class PaymentSchedule:
    """Instalment plan of one deal."""

    schedule_id: str
    deal_id: str
    instalments: list[Instalment] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    @property
    def total_amount(self) -> Decimal:
        return sum((i.amount for i in self.instalments), Decimal("0"))

    @property
    def total_paid(self) -> Decimal:
        return sum((i.paid_amount for i in self.instalments), Decimal("0"))

    @property
    def balance(self) -> Decimal:
        return self.total_amount - self.total_paid

    @property
    def is_settled(self) -> bool:
        return bool(self.instalments) and self.balance == 0

    def find_instalment(self, instalment_id: str) -> Instalment | None:
        for instalment in self.instalments:
            if instalment.instalment_id == instalment_id:
                return instalment
        return None
