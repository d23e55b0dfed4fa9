"""
AnswerNet - SQLite Storage Backend

aiosqlite implementation of the storage interface.  One connection per
store; aiosqlite runs it on a worker thread so every call is awaitable.

Uniqueness is enforced by the schema, not by read-then-write:
    words.text, answers.text        UNIQUE  -> add() is INSERT OR IGNORE
    hidden_nodes.creation_key       UNIQUE  -> find_or_create() likewise
    *_strength (from_id, to_id)     UNIQUE  -> set() is ON CONFLICT DO UPDATE

so concurrent callers racing on the same key converge on one row.

Any sqlite3.Error raised by the driver is re-raised as StorageFault.

# ---- Changelog ----
# [2026-10-17] Initial creation.
#   What: SQLiteStore plus entity, hidden-node and strength collections.
#   How:  Schema created on open().  WAL journal for file databases.
#         get_matrix() is a single IN/IN select filled with defaults.
# -------------------
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence, Tuple

import aiosqlite

from answer_core.errors import StorageFault
from answer_core.models import (
    ANSWER_STRENGTH_DEFAULT,
    WORD_STRENGTH_DEFAULT,
    Answer,
    HiddenNode,
    Word,
)
from answer_core.store import (
    EntityCollection,
    HiddenNodeStore,
    StorageBackend,
    StrengthRelation,
)

logger = logging.getLogger("answernet.sqlite_store")

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS words (
        id TEXT PRIMARY KEY,
        text TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS answers (
        id TEXT PRIMARY KEY,
        text TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS hidden_nodes (
        id TEXT PRIMARY KEY,
        creation_key TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS word_strength (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        from_id TEXT NOT NULL,
        to_id TEXT NOT NULL,
        strength REAL NOT NULL,
        UNIQUE (from_id, to_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS answer_strength (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        from_id TEXT NOT NULL,
        to_id TEXT NOT NULL,
        strength REAL NOT NULL,
        UNIQUE (from_id, to_id)
    )
    """,
]


def _placeholders(n: int) -> str:
    return ", ".join("?" * n)


class SQLiteEntityCollection(EntityCollection):
    """Words or answers in a table unique on text."""

    def __init__(self, store: "SQLiteStore", table: str, factory: Callable[..., Any]):
        self._store = store
        self._table = table
        self._factory = factory

    async def add(self, text: str) -> Any:
        created_at = datetime.now(timezone.utc).isoformat()
        await self._store._write(
            f"INSERT OR IGNORE INTO {self._table} (id, text, created_at) VALUES (?, ?, ?)",
            (uuid.uuid4().hex, text, created_at),
        )
        row = await self._store._fetchone(
            f"SELECT id, text, created_at FROM {self._table} WHERE text = ?", (text,),
        )
        return self._factory(*row)

    async def get(self, entity_id: str) -> Optional[Any]:
        row = await self._store._fetchone(
            f"SELECT id, text, created_at FROM {self._table} WHERE id = ?", (entity_id,),
        )
        return self._factory(*row) if row else None

    async def count(self) -> int:
        row = await self._store._fetchone(f"SELECT COUNT(*) FROM {self._table}", ())
        return row[0]


class SQLiteHiddenNodeStore(HiddenNodeStore):

    def __init__(self, store: "SQLiteStore"):
        self._store = store

    async def find_or_create(self, creation_key: str) -> HiddenNode:
        inserted = await self._store._write(
            "INSERT OR IGNORE INTO hidden_nodes (id, creation_key) VALUES (?, ?)",
            (uuid.uuid4().hex, creation_key),
        )
        node = await self.find(creation_key)
        if node is None:
            raise StorageFault(f"hidden node for key '{creation_key}' vanished after insert")
        if inserted:
            logger.debug("Created hidden node %s for key '%s'", node.node_id, creation_key)
        return node

    async def find(self, creation_key: str) -> Optional[HiddenNode]:
        row = await self._store._fetchone(
            "SELECT id, creation_key FROM hidden_nodes WHERE creation_key = ?",
            (creation_key,),
        )
        return HiddenNode(node_id=row[0], creation_key=row[1]) if row else None

    async def count(self) -> int:
        row = await self._store._fetchone("SELECT COUNT(*) FROM hidden_nodes", ())
        return row[0]


class SQLiteStrengthRelation(StrengthRelation):
    """Strength edges in a table unique on (from_id, to_id)."""

    def __init__(self, store: "SQLiteStore", name: str, default_strength: float):
        super().__init__(name, default_strength)
        self._store = store

    async def fetch(self, from_id: str, to_id: str) -> Optional[float]:
        row = await self._store._fetchone(
            f"SELECT strength FROM {self.name} WHERE from_id = ? AND to_id = ?",
            (from_id, to_id),
        )
        return row[0] if row else None

    async def set(self, from_id: str, to_id: str, strength: float) -> None:
        await self._store._write(
            f"INSERT INTO {self.name} (from_id, to_id, strength) VALUES (?, ?, ?) "
            "ON CONFLICT (from_id, to_id) DO UPDATE SET strength = excluded.strength",
            (from_id, to_id, float(strength)),
        )

    async def query(self, from_ids: Sequence[str]) -> List[str]:
        if not from_ids:
            return []
        rows = await self._store._fetchall(
            f"SELECT to_id FROM {self.name} "
            f"WHERE from_id IN ({_placeholders(len(from_ids))}) ORDER BY seq",
            tuple(from_ids),
        )
        return [row[0] for row in rows]

    async def count(self) -> int:
        row = await self._store._fetchone(f"SELECT COUNT(*) FROM {self.name}", ())
        return row[0]

    async def get_matrix(
        self,
        from_ids: Sequence[str],
        to_ids: Sequence[str],
    ) -> List[List[float]]:
        matrix = [[self.default_strength] * len(to_ids) for _ in from_ids]
        if not from_ids or not to_ids:
            return matrix

        # Bind each distinct ID once; the hidden layer may repeat nodes
        unique_from = tuple(dict.fromkeys(from_ids))
        unique_to = tuple(dict.fromkeys(to_ids))
        rows = await self._store._fetchall(
            f"SELECT from_id, to_id, strength FROM {self.name} "
            f"WHERE from_id IN ({_placeholders(len(unique_from))}) "
            f"AND to_id IN ({_placeholders(len(unique_to))})",
            unique_from + unique_to,
        )
        found = {(f, t): s for f, t, s in rows}

        # Duplicate IDs in either axis get the same value in every slot
        for i, from_id in enumerate(from_ids):
            for j, to_id in enumerate(to_ids):
                strength = found.get((from_id, to_id))
                if strength is not None:
                    matrix[i][j] = strength
        return matrix


class SQLiteStore(StorageBackend):
    """SQLite storage backend.

    Usage:
        async with SQLiteStore("answernet.db") as store:
            word = await store.words.add("capital")
            print(await store.get_stats())
    """

    def __init__(self, database_path: str = "answernet.db", timeout: float = 30.0):
        self.database_path = database_path
        self.timeout = timeout
        self._conn: Optional[aiosqlite.Connection] = None

        self.words = SQLiteEntityCollection(self, "words", lambda i, t, c: Word(i, t, c))
        self.answers = SQLiteEntityCollection(self, "answers", lambda i, t, c: Answer(i, t, c))
        self.hidden_nodes = SQLiteHiddenNodeStore(self)
        self.word_strength = SQLiteStrengthRelation(self, "word_strength", WORD_STRENGTH_DEFAULT)
        self.answer_strength = SQLiteStrengthRelation(self, "answer_strength", ANSWER_STRENGTH_DEFAULT)

    async def open(self) -> None:
        if self._conn is not None:
            return
        async with self._faults("open"):
            self._conn = await aiosqlite.connect(self.database_path, timeout=self.timeout)
            if self.database_path != ":memory:":
                await self._conn.execute("PRAGMA journal_mode = WAL")
            for statement in _SCHEMA:
                await self._conn.execute(statement)
            await self._conn.commit()
        logger.info("SQLite store opened at %s", self.database_path)

    async def close(self) -> None:
        if self._conn is None:
            return
        async with self._faults("close"):
            await self._conn.close()
        self._conn = None
        logger.info("SQLite store closed")

    # -------------------------------------------------------------------
    # Connection helpers
    # -------------------------------------------------------------------

    @asynccontextmanager
    async def _faults(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            logger.error("SQLite %s failed: %s", operation, exc)
            raise StorageFault(f"sqlite {operation} failed: {exc}") from exc

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageFault("SQLite store is not open")
        return self._conn

    async def _write(self, sql: str, params: Tuple[Any, ...]) -> int:
        """Execute and commit one statement; return the affected row count."""
        conn = self._connection()
        async with self._faults("write"):
            cursor = await conn.execute(sql, params)
            rowcount = cursor.rowcount
            await cursor.close()
            await conn.commit()
        return rowcount

    async def _fetchone(self, sql: str, params: Tuple[Any, ...]) -> Optional[Tuple[Any, ...]]:
        conn = self._connection()
        async with self._faults("read"):
            async with conn.execute(sql, params) as cursor:
                return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: Tuple[Any, ...]) -> List[Tuple[Any, ...]]:
        conn = self._connection()
        async with self._faults("read"):
            async with conn.execute(sql, params) as cursor:
                return list(await cursor.fetchall())
