"""In-memory event sink for tests and scenario runs."""

from estate_deals.models.base import Event


class MemoryEventSink:
    """Keep every received event in order."""

    def __init__(self) -> None:
        self.events: list[Event] = []
        self.closed = False

    def send(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.event_type == event_type]

    @property
    def event_types(self) -> list[str]:
        return [e.event_type for e in self.events]

    def close(self) -> None:
        self.closed = True
