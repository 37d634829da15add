"""Fire-and-forget publication of domain events to notification sinks."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from estate_deals.config import EstateDealsConfig
from estate_deals.events.serialization import serialize_value
from estate_deals.models.base import Event

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "estate-deals"


@dataclass
class PublisherStats:
    """Track event delivery to sinks."""

    published: int = 0
    sink_failures: int = 0


class EventPublisher:
    """Deliver domain events to every registered sink.

    A sink is any object with ``send(event)`` and ``close()``. Events are
    notifications emitted after a write has committed: a failing sink is
    logged and counted but never propagates into the engine.
    """

    def __init__(
        self,
        sinks: list[Any] | None = None,
        source: str = DEFAULT_SOURCE,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.sinks = list(sinks or [])
        self.source = source
        self.clock = clock
        self.stats = PublisherStats()

    @classmethod
    def from_config(cls, config: EstateDealsConfig) -> EventPublisher:
        """Build a publisher with the sinks named in ``config.event_sinks``."""
        sinks: list[Any] = []
        for name in config.event_sinks:
            if name == "console":
                from estate_deals.events.console import ConsoleEventSink

                sinks.append(ConsoleEventSink(pretty=config.output.pretty_json))
            elif name == "json":
                from estate_deals.events.json_file import JsonLinesEventSink

                sinks.append(JsonLinesEventSink(config.output.events_dir))
            elif name == "kafka":
                from estate_deals.events.kafka import KafkaEventSink

                sinks.append(KafkaEventSink(config.kafka))
            elif name == "postgres":
                from estate_deals.events.postgres import PostgresEventSink

                sinks.append(PostgresEventSink(config.postgres))
            elif name == "memory":
                from estate_deals.events.memory import MemoryEventSink

                sinks.append(MemoryEventSink())
        logger.info("Event publisher configured with sinks: %s", ", ".join(config.event_sinks) or "none")
        return cls(sinks)

    def add_sink(self, sink: Any) -> None:
        self.sinks.append(sink)

    def publish(
        self,
        event_type: str,
        subject: str,
        data: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Event:
        """Build an event envelope and hand it to every sink."""
        event = Event(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            event_time=self.clock(),
            source=self.source,
            subject=subject,
            data=serialize_value(data or {}),
            metadata=dict(metadata or {}),
        )
        self.stats.published += 1

        for sink in self.sinks:
            try:
                sink.send(event)
            except Exception:
                self.stats.sink_failures += 1
                logger.exception(
                    "Sink %s failed to deliver %s for %s",
                    type(sink).__name__,
                    event_type,
                    subject,
                )
        return event

    def close(self) -> None:
        for sink in self.sinks:
            try:
                sink.close()
            except Exception:
                logger.exception("Sink %s failed to close", type(sink).__name__)
