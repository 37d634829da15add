"""Kafka sink for streaming domain events to Kafka topics."""

import json
import logging
from dataclasses import dataclass
from typing import Any

from confluent_kafka import Producer

from estate_deals.config import KafkaConfig
from estate_deals.events.serialization import to_dict
from estate_deals.models.base import Event

logger = logging.getLogger(__name__)


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0


class KafkaEventSink:
    """Publish events to one topic per entity, keyed by subject id.

    ``offer.accepted`` goes to ``<topic_prefix>.offer`` with the offer id as
    key, so all events of one entity land on the same partition in order.
    """

    def __init__(self, config: KafkaConfig | str) -> None:
        """Initialize Kafka sink.

        Parameters
        ----------
        config : KafkaConfig | str
            Producer configuration or bootstrap servers string.
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.producer = Producer(config.to_dict())
        self.stats = ProducerStats()

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def topic_for(self, event: Event) -> str:
        entity = event.event_type.split(".", 1)[0]
        return f"{self.config.topic_prefix}.{entity}"

    def send(self, event: Event) -> None:
        """Send a single event."""
        value = json.dumps(to_dict(event), ensure_ascii=False, default=str).encode("utf-8")

        self.producer.produce(
            topic=self.topic_for(event),
            key=event.subject.encode("utf-8") if event.subject else None,
            value=value,
            callback=self._delivery_callback,
        )
        self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        logger.info(
            "Kafka sink closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
