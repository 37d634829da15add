"""Domain event publication and notification sinks."""

from estate_deals.events.console import ConsoleEventSink
from estate_deals.events.json_file import JsonLinesEventSink
from estate_deals.events.kafka import KafkaEventSink
from estate_deals.events.memory import MemoryEventSink
from estate_deals.events.postgres import PostgresEventSink
from estate_deals.events.publisher import EventPublisher

__all__ = [
    "ConsoleEventSink",
    "EventPublisher",
    "JsonLinesEventSink",
    "KafkaEventSink",
    "MemoryEventSink",
    "PostgresEventSink",
]
