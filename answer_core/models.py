"""
AnswerNet - Data Model

Records persisted by the storage backends and the constants that define
how strengths are seeded and defaulted.

Strength notes:
    Word -> hidden edges default to -0.2 when no record exists, so an
    unseen word inhibits a concept.  Answer -> hidden edges default to
    0.0.  New hidden nodes seed every triggering word with an equal share
    (1 / |words|, rounded to 7 places) and every candidate answer with 0.1.

Creation key notes:
    A hidden node is identified by its triggering word set, sorted and
    joined with ":".  Two word lists that are permutations of each other
    map to the same node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable


WORD_STRENGTH_DEFAULT = -0.2
ANSWER_STRENGTH_DEFAULT = 0.0
ANSWER_STRENGTH_SEED = 0.1
WORD_STRENGTH_PRECISION = 7
CREATION_KEY_SEPARATOR = ":"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Word:
    """A question word, unique by text."""

    word_id: str = ""
    text: str = ""
    created_at: str = field(default_factory=_utcnow)


@dataclass
class Answer:
    """A candidate answer, unique by text."""

    answer_id: str = ""
    text: str = ""
    created_at: str = field(default_factory=_utcnow)


@dataclass
class HiddenNode:
    """A concept node bridging a word set to its candidate answers.

    Attributes:
        node_id: Backend-assigned identifier.
        creation_key: Sorted triggering word IDs joined with ":".
    """

    node_id: str = ""
    creation_key: str = ""


@dataclass
class StrengthRecord:
    """Directed weighted edge from a word or answer to a hidden node."""

    from_id: str = ""
    to_id: str = ""
    strength: float = 0.0


def make_creation_key(words: Iterable[str]) -> str:
    """Canonical hidden-node key for a word set.

    The input is not mutated.
    """
    return CREATION_KEY_SEPARATOR.join(sorted(words))


def seed_word_strength(word_count: int) -> float:
    """Initial strength for each of ``word_count`` triggering words."""
    return round(1.0 / word_count, WORD_STRENGTH_PRECISION)
