"""In-memory repository with optimistic version checks."""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from estate_deals.exceptions import ConflictError, NotFoundError
from estate_deals.store.repository import EntityKind, Repository, entity_id

logger = logging.getLogger(__name__)


@dataclass
class InMemoryRepository(Repository):
    """Keyed store held in process memory.

    Entities are deep-copied on the way in and out so callers never share
    state with the store; a write is visible only after ``put``.
    """

    _records: dict[EntityKind, dict[str, Any]] = field(
        default_factory=lambda: {kind: {} for kind in EntityKind}
    )

    def get(self, kind: EntityKind, entity_id: str) -> Any:
        record = self._records[kind].get(entity_id)
        if record is None:
            raise NotFoundError(f"{kind.value} {entity_id} not found")
        return copy.deepcopy(record)

    def list(self, kind: EntityKind, predicate: Callable[[Any], bool] | None = None) -> list[Any]:
        records = self._records[kind].values()
        return [copy.deepcopy(r) for r in records if predicate is None or predicate(r)]

    def put(self, kind: EntityKind, entity: Any) -> Any:
        key = entity_id(kind, entity)
        current = self._records[kind].get(key)
        stored_version = current.version if current is not None else 0

        if entity.version != stored_version:
            raise ConflictError(
                f"{kind.value} {key} was modified concurrently "
                f"(expected version {entity.version}, found {stored_version})"
            )

        stored = copy.deepcopy(entity)
        stored.version = stored_version + 1
        self._records[kind][key] = stored
        entity.version = stored.version

        logger.debug("Stored %s %s at version %d", kind.value, key, stored.version)
        return copy.deepcopy(stored)

    def delete(self, kind: EntityKind, entity_id: str) -> None:
        if entity_id not in self._records[kind]:
            raise NotFoundError(f"{kind.value} {entity_id} not found")
        del self._records[kind][entity_id]

    def summary(self) -> dict[str, int]:
        """Get entity counts per kind."""
        return {kind.value: len(records) for kind, records in self._records.items()}
