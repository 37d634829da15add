"""Shared plumbing for engine components."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable

from estate_deals.events.publisher import EventPublisher
from estate_deals.exceptions import ValidationError
from estate_deals.models.base import Event
from estate_deals.store.repository import Repository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def new_id() -> str:
    return str(uuid.uuid4())


def require_positive(value: Decimal, label: str) -> Decimal:
    """Validate a monetary amount and return it as a Decimal."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value <= 0:
        raise ValidationError(f"{label} must be greater than zero, got {value}")
    return value


def require_reason(reason: str | None, label: str = "reason", min_length: int = 1) -> str:
    text = (reason or "").strip()
    if len(text) < min_length:
        if min_length > 1:
            raise ValidationError(f"A {label} of at least {min_length} characters is required")
        raise ValidationError(f"A {label} is required")
    return text


class EngineComponent:
    """Base for engine components sharing a repository, publisher and clock.

    Parameters
    ----------
    repository : Repository
        Keyed store all reads and writes go through.
    publisher : EventPublisher | None
        Receives domain events after writes commit. Defaults to a publisher
        with no sinks.
    clock : Clock
        Returns the current time; ``today()`` is derived from it.
    """

    source = "estate-deals"

    def __init__(
        self,
        repository: Repository,
        publisher: EventPublisher | None = None,
        clock: Clock = datetime.now,
    ) -> None:
        self.repository = repository
        self.publisher = publisher or EventPublisher(clock=clock)
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        return self.clock().date()

    def log_context(self, **ids: str | None) -> dict[str, Any]:
        """``extra`` mapping naming this component and the records involved."""
        return {"component": self.source, **{k: v for k, v in ids.items() if v is not None}}

    def emit(self, event_type: str, subject: str, data: dict[str, Any] | None = None) -> Event:
        logger.debug(
            "Publishing %s for %s",
            event_type,
            subject,
            extra=self.log_context(event_type=event_type, subject=subject),
        )
        return self.publisher.publish(event_type, subject, data, metadata={"component": self.source})
