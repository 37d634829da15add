"""Console sink for debugging and development."""

import json

from estate_deals.events.serialization import to_dict
from estate_deals.models.base import Event


class ConsoleEventSink:
    """Print events to stdout."""

    def __init__(self, pretty: bool = True, max_events: int | None = None) -> None:
        """Initialize console sink.

        Parameters
        ----------
        pretty : bool
            Pretty-print JSON output.
        max_events : int | None
            Maximum events to print (None for all); the rest are only counted.
        """
        self.pretty = pretty
        self.max_events = max_events
        self._counts: dict[str, int] = {}

    def send(self, event: Event) -> None:
        total = sum(self._counts.values())
        self._counts[event.event_type] = self._counts.get(event.event_type, 0) + 1

        if self.max_events is not None and total >= self.max_events:
            return

        data = to_dict(event)
        if self.pretty:
            print(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        else:
            print(json.dumps(data, ensure_ascii=False, default=str))

    def close(self) -> None:
        """Print summary."""
        print(f"\n{'='*60}")
        print("Event Summary")
        print("=" * 60)
        for event_type, count in sorted(self._counts.items()):
            print(f"  {event_type}: {count} events")
        print("=" * 60)
