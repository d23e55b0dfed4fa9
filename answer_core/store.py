"""
AnswerNet - Storage Collaborator Interface

Abstract interfaces consumed by the core.  Two implementations ship with
the package:

    MemoryStore  (answer_core.memory_store): dict-backed, JSON snapshots.
    SQLiteStore  (answer_core.sqlite_store): aiosqlite, unique constraints.

Every operation is a coroutine.  The network awaits each call, so storage
round-trips are the only points where a setup pipeline suspends.

Absence notes:
    StrengthRelation.fetch() returns None for a missing edge.  get()
    resolves that to the relation's default_strength.  Keeping the two
    apart lets backends and tests tell "never written" from "written as
    0.0", even though callers of get() see the same value for answer edges.

# ---- Changelog ----
# [2026-10-17] Initial creation.
#   What: EntityCollection, HiddenNodeStore, StrengthRelation and
#         StorageBackend ABCs.
#   How:  Backends implement the abstract primitives.  get(), get_matrix()
#         and the async context manager are shared here.
# -------------------
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from answer_core.models import HiddenNode

EntityT = TypeVar("EntityT")


class EntityCollection(ABC, Generic[EntityT]):
    """Words or answers, unique by text."""

    @abstractmethod
    async def add(self, text: str) -> EntityT:
        """Return the record for ``text``, creating it if absent."""
        ...

    @abstractmethod
    async def get(self, entity_id: str) -> Optional[EntityT]:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


class HiddenNodeStore(ABC):
    """Hidden nodes keyed by their creation key."""

    @abstractmethod
    async def find_or_create(self, creation_key: str) -> HiddenNode:
        """Return the node for ``creation_key``, creating it if absent.

        Must be atomic: concurrent calls with the same key converge on a
        single persisted node.
        """
        ...

    @abstractmethod
    async def find(self, creation_key: str) -> Optional[HiddenNode]:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


class StrengthRelation(ABC):
    """Directed edges ``(from_id, to_id) -> strength``.

    Attributes:
        name: Relation name, used in logs and persistence.
        default_strength: Value get() returns for a missing edge.
    """

    def __init__(self, name: str, default_strength: float):
        self.name = name
        self.default_strength = default_strength

    @abstractmethod
    async def fetch(self, from_id: str, to_id: str) -> Optional[float]:
        """Stored strength for the edge, or None if it was never written."""
        ...

    @abstractmethod
    async def set(self, from_id: str, to_id: str, strength: float) -> None:
        """Create the edge or overwrite its strength in place."""
        ...

    @abstractmethod
    async def query(self, from_ids: Sequence[str]) -> List[str]:
        """Target IDs of every edge whose source is in ``from_ids``.

        Results follow edge insertion order.  A target reached from two
        sources appears twice.
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    async def get(self, from_id: str, to_id: str) -> float:
        """Strength of the edge, defaulted when absent."""
        strength = await self.fetch(from_id, to_id)
        if strength is None:
            return self.default_strength
        return strength

    async def get_matrix(
        self,
        from_ids: Sequence[str],
        to_ids: Sequence[str],
    ) -> List[List[float]]:
        """Defaulted strengths for every pair, as ``[from][to]``.

        The lookups are independent reads, so they are issued together.
        Backends with a bulk query override this.
        """
        flat = await asyncio.gather(
            *(self.get(f, t) for f in from_ids for t in to_ids)
        )
        width = len(to_ids)
        return [list(flat[i * width:(i + 1) * width]) for i in range(len(from_ids))]


class StorageBackend(ABC):
    """Bundle of the five collections a network and its callers need.

    Usage:
        async with SQLiteStore("answernet.db") as store:
            node = await store.hidden_nodes.find_or_create("w1:w2")
            await store.word_strength.set("w1", node.node_id, 0.5)
    """

    words: EntityCollection
    answers: EntityCollection
    hidden_nodes: HiddenNodeStore
    word_strength: StrengthRelation
    answer_strength: StrengthRelation

    @abstractmethod
    async def open(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    async def get_stats(self) -> Dict[str, Any]:
        """Record counts per collection."""
        return {
            "backend": type(self).__name__,
            "word_count": await self.words.count(),
            "answer_count": await self.answers.count(),
            "hidden_node_count": await self.hidden_nodes.count(),
            "word_strength_count": await self.word_strength.count(),
            "answer_strength_count": await self.answer_strength.count(),
        }

    async def __aenter__(self) -> "StorageBackend":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
