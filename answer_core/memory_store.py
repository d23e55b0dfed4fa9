"""
AnswerNet - In-Memory Storage Backend

Dict-backed implementation of the storage interface with JSON snapshot
persistence.  Used for tests, demos, and single-process deployments that
do not need a database.

Every operation yields to the event loop once before touching state, so
callers observe the same suspension points they would against a real
backend.  Find-or-create style operations hold a per-collection
asyncio.Lock across lookup and insert.

Serialization format notes:
    Snapshots are JSON.  Strength keys are stored as "from_id|to_id"
    strings since JSON objects cannot be keyed by tuples.  IDs are
    incremental per kind ("w_1", "a_1", "h_1").

# ---- Changelog ----
# [2026-10-17] Initial creation.
#   What: MemoryStore with word/answer collections, hidden-node store and
#         both strength relations.  save()/load() JSON snapshots, and
#         open()/close() bound to state_path.
#   How:  Ordered dicts keyed by ID (or by edge tuple), plus a text index
#         for idempotent add().
# -------------------
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from answer_core.errors import StorageFault
from answer_core.models import (
    ANSWER_STRENGTH_DEFAULT,
    WORD_STRENGTH_DEFAULT,
    Answer,
    HiddenNode,
    StrengthRecord,
    Word,
)
from answer_core.store import (
    EntityCollection,
    HiddenNodeStore,
    StorageBackend,
    StrengthRelation,
)

logger = logging.getLogger("answernet.memory_store")

SNAPSHOT_VERSION = "1.0.0"


class _IdSequence:
    """Incremental IDs per prefix, shared by one store."""

    def __init__(self) -> None:
        self.counters: Dict[str, int] = {}

    def next(self, prefix: str) -> str:
        self.counters[prefix] = self.counters.get(prefix, 0) + 1
        return f"{prefix}_{self.counters[prefix]}"


class MemoryEntityCollection(EntityCollection):
    """Words or answers held in a dict, unique by text."""

    def __init__(
        self,
        ids: _IdSequence,
        prefix: str,
        factory: Callable[[str, str], Any],
        id_of: Callable[[Any], str],
    ):
        self._ids = ids
        self._prefix = prefix
        self._factory = factory
        self._id_of = id_of
        self._lock = asyncio.Lock()
        self.records: Dict[str, Any] = {}
        self._by_text: Dict[str, str] = {}

    async def add(self, text: str) -> Any:
        async with self._lock:
            await asyncio.sleep(0)
            existing = self._by_text.get(text)
            if existing is not None:
                return self.records[existing]

            record = self._factory(self._ids.next(self._prefix), text)
            self._put(record)
            return record

    async def get(self, entity_id: str) -> Optional[Any]:
        await asyncio.sleep(0)
        return self.records.get(entity_id)

    async def count(self) -> int:
        return len(self.records)

    def _put(self, record: Any) -> None:
        entity_id = self._id_of(record)
        self.records[entity_id] = record
        self._by_text[record.text] = entity_id


class MemoryHiddenNodeStore(HiddenNodeStore):
    """Hidden nodes keyed by creation key."""

    def __init__(self, ids: _IdSequence):
        self._ids = ids
        self._lock = asyncio.Lock()
        self.nodes: Dict[str, HiddenNode] = {}

    async def find_or_create(self, creation_key: str) -> HiddenNode:
        async with self._lock:
            await asyncio.sleep(0)
            node = self.nodes.get(creation_key)
            if node is not None:
                return node

            node = HiddenNode(node_id=self._ids.next("h"), creation_key=creation_key)
            self.nodes[creation_key] = node
            logger.debug("Created hidden node %s for key '%s'", node.node_id, creation_key)
            return node

    async def find(self, creation_key: str) -> Optional[HiddenNode]:
        await asyncio.sleep(0)
        return self.nodes.get(creation_key)

    async def count(self) -> int:
        return len(self.nodes)


class MemoryStrengthRelation(StrengthRelation):
    """Strength edges in an insertion-ordered dict."""

    def __init__(self, name: str, default_strength: float):
        super().__init__(name, default_strength)
        self.edges: Dict[Tuple[str, str], StrengthRecord] = {}

    async def fetch(self, from_id: str, to_id: str) -> Optional[float]:
        await asyncio.sleep(0)
        record = self.edges.get((from_id, to_id))
        return record.strength if record is not None else None

    async def set(self, from_id: str, to_id: str, strength: float) -> None:
        await asyncio.sleep(0)
        record = self.edges.get((from_id, to_id))
        if record is not None:
            record.strength = strength
        else:
            self.edges[(from_id, to_id)] = StrengthRecord(from_id, to_id, strength)

    async def query(self, from_ids: Sequence[str]) -> List[str]:
        await asyncio.sleep(0)
        sources = set(from_ids)
        return [to_id for (from_id, to_id) in self.edges if from_id in sources]

    async def count(self) -> int:
        return len(self.edges)


class MemoryStore(StorageBackend):
    """In-process storage backend.

    Usage:
        store = MemoryStore(state_path="answernet_state.json")
        async with store:
            word = await store.words.add("capital")
            node = await store.hidden_nodes.find_or_create(word.word_id)

        # Or manage snapshots explicitly
        store.save("snapshot.json")
        store.load("snapshot.json")
    """

    def __init__(self, state_path: Optional[str] = None):
        self.state_path = state_path or None
        self._ids = _IdSequence()
        self.words = MemoryEntityCollection(
            self._ids, "w",
            lambda i, t: Word(word_id=i, text=t),
            lambda w: w.word_id,
        )
        self.answers = MemoryEntityCollection(
            self._ids, "a",
            lambda i, t: Answer(answer_id=i, text=t),
            lambda a: a.answer_id,
        )
        self.hidden_nodes = MemoryHiddenNodeStore(self._ids)
        self.word_strength = MemoryStrengthRelation("word_strength", WORD_STRENGTH_DEFAULT)
        self.answer_strength = MemoryStrengthRelation("answer_strength", ANSWER_STRENGTH_DEFAULT)

    async def open(self) -> None:
        if self.state_path and Path(self.state_path).exists():
            self.load(self.state_path)

    async def close(self) -> None:
        if self.state_path:
            self.save(self.state_path)

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------

    def save(self, filepath: str) -> None:
        """Write the full store to a JSON file.

        Raises:
            StorageFault: If the file cannot be written.
        """
        state = self._export_state()
        try:
            with open(filepath, "w") as f:
                json.dump(state, f, indent=2)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to save memory store to %s: %s", filepath, exc)
            raise StorageFault(f"memory store save failed: {exc}") from exc
        logger.info("Memory store saved to %s (%d hidden nodes)",
                    filepath, len(self.hidden_nodes.nodes))

    def load(self, filepath: str) -> None:
        """Replace the store contents with a JSON snapshot.

        Raises:
            StorageFault: If the file cannot be read or is not a valid
                snapshot.
        """
        try:
            with open(filepath, "r") as f:
                state = json.load(f)
            self._import_state(state)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Failed to load memory store from %s: %s", filepath, exc)
            raise StorageFault(f"memory store load failed: {exc}") from exc
        logger.info("Memory store loaded from %s (%d hidden nodes)",
                    filepath, len(self.hidden_nodes.nodes))

    def _export_state(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "timestamp": time.time(),
            "words": [asdict(w) for w in self.words.records.values()],
            "answers": [asdict(a) for a in self.answers.records.values()],
            "hidden_nodes": [asdict(n) for n in self.hidden_nodes.nodes.values()],
            "word_strength": _edges_to_json(self.word_strength),
            "answer_strength": _edges_to_json(self.answer_strength),
            "counters": dict(self._ids.counters),
        }

    def _import_state(self, state: Dict[str, Any]) -> None:
        self.words.records.clear()
        self.words._by_text.clear()
        for data in state.get("words", []):
            self.words._put(Word(**data))

        self.answers.records.clear()
        self.answers._by_text.clear()
        for data in state.get("answers", []):
            self.answers._put(Answer(**data))

        self.hidden_nodes.nodes = {
            data["creation_key"]: HiddenNode(**data)
            for data in state.get("hidden_nodes", [])
        }
        _edges_from_json(self.word_strength, state.get("word_strength", {}))
        _edges_from_json(self.answer_strength, state.get("answer_strength", {}))
        self._ids.counters = dict(state.get("counters", {}))


def _edges_to_json(relation: MemoryStrengthRelation) -> Dict[str, float]:
    return {f"{src}|{tgt}": rec.strength for (src, tgt), rec in relation.edges.items()}


def _edges_from_json(relation: MemoryStrengthRelation, data: Dict[str, float]) -> None:
    relation.edges = {}
    for key, strength in data.items():
        parts = key.split("|", 1)
        if len(parts) == 2:
            relation.edges[(parts[0], parts[1])] = StrengthRecord(parts[0], parts[1], strength)
