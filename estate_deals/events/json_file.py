"""JSON Lines file sink for events."""

import json
import logging
from pathlib import Path

from estate_deals.events.serialization import to_dict
from estate_deals.exceptions import SinkError
from estate_deals.models.base import Event

logger = logging.getLogger(__name__)


class JsonLinesEventSink:
    """Append events to ``events.jsonl`` in an output directory."""

    def __init__(self, output_dir: str | Path, filename: str = "events.jsonl") -> None:
        """Initialize JSON Lines sink.

        Parameters
        ----------
        output_dir : str | Path
            Directory to write the event log into; created if missing.
        filename : str
            Name of the event log file.
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.output_dir / filename
        self._count = 0

    def send(self, event: Event) -> None:
        line = json.dumps(to_dict(event), ensure_ascii=False, default=str)
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            raise SinkError(f"Cannot append to {self.path}: {exc}") from exc
        self._count += 1

    def close(self) -> None:
        logger.info("Wrote %d events to %s", self._count, self.path)
