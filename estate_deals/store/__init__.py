"""Repository port and in-memory store."""

from estate_deals.store.batch import WriteBatch
from estate_deals.store.memory import InMemoryRepository
from estate_deals.store.repository import EntityKind, Repository

__all__ = ["EntityKind", "InMemoryRepository", "Repository", "WriteBatch"]
