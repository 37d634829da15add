"""Ordered multi-entity writes over a repository without transactions."""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from estate_deals.exceptions import ConflictError, ConsistencyError, EstateDealsError
from estate_deals.store.repository import EntityKind, Repository, entity_id

logger = logging.getLogger(__name__)


@dataclass
class _StagedWrite:
    kind: EntityKind
    entity: Any
    snapshot: Any | None = None  # Stored copy before this batch wrote


@dataclass
class WriteBatch:
    """Stage writes, check every precondition, then apply them in order.

    Writes are applied in the order they were staged, so the state
    transition that other records depend on (cycle or deal) is staged last.
    Nothing is written unless all version preconditions hold. If a write
    fails part-way, the writes already applied are restored and a single
    ``ConsistencyError`` reports every failure.
    """

    repository: Repository
    _writes: list[_StagedWrite] = field(default_factory=list)

    def put(self, kind: EntityKind, entity: Any) -> "WriteBatch":
        key = entity_id(kind, entity)
        if any(w.kind == kind and entity_id(kind, w.entity) == key for w in self._writes):
            raise ValueError(f"{kind.value} {key} is already staged in this batch")
        self._writes.append(_StagedWrite(kind, entity))
        return self

    def __len__(self) -> int:
        return len(self._writes)

    def _check_preconditions(self) -> None:
        for write in self._writes:
            key = entity_id(write.kind, write.entity)
            current = self.repository.find(write.kind, key)
            stored_version = current.version if current is not None else 0
            if write.entity.version != stored_version:
                raise ConflictError(
                    f"{write.kind.value} {key} changed since it was read "
                    f"(expected version {write.entity.version}, found {stored_version})"
                )
            write.snapshot = current

    def commit(self) -> None:
        """Apply all staged writes or none of them."""
        self._check_preconditions()

        applied: list[_StagedWrite] = []
        for write in self._writes:
            try:
                self.repository.put(write.kind, write.entity)
            except EstateDealsError as exc:
                failures: list[Exception] = [exc]
                failures.extend(self._rollback(applied))
                key = entity_id(write.kind, write.entity)
                logger.error(
                    "Batch write of %s %s failed after %d writes: %s",
                    write.kind.value,
                    key,
                    len(applied),
                    exc,
                )
                raise ConsistencyError(
                    f"Could not write {write.kind.value} {key}; "
                    f"{len(applied)} earlier writes were rolled back",
                    failures=failures,
                ) from exc
            applied.append(write)

    def _rollback(self, applied: list[_StagedWrite]) -> list[Exception]:
        failures: list[Exception] = []
        for write in reversed(applied):
            key = entity_id(write.kind, write.entity)
            try:
                if write.snapshot is None:
                    self.repository.delete(write.kind, key)
                else:
                    restored = copy.deepcopy(write.snapshot)
                    restored.version = write.entity.version
                    self.repository.put(write.kind, restored)
            except EstateDealsError as exc:
                logger.error("Rollback of %s %s failed: %s", write.kind.value, key, exc)
                failures.append(exc)
        return failures
