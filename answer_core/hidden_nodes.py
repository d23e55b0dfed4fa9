"""
AnswerNet - Hidden-Node Registry

Resolves which concept nodes are relevant to a question and lazily creates
new ones.

generate_node() is the only place hidden nodes and their initial strengths
are written:
    1. key = sorted word IDs joined with ":"
    2. find-or-create the node for key (atomic in the backend)
    3. seed every word edge with round(1 / |words|, 7)
    4. seed every answer edge with 0.1

There is no transaction around the sequence.  If step 4 fails, the node and
the word edges from step 3 stay written.

get_all() returns the union of hidden nodes reachable from the word set and
from the answer set.  The two lists are concatenated, so a node reachable
from both sides (or from two words) appears more than once unless
dedupe=True is passed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from answer_core.errors import PreconditionError
from answer_core.models import ANSWER_STRENGTH_SEED, HiddenNode, make_creation_key, seed_word_strength
from answer_core.store import HiddenNodeStore, StrengthRelation

logger = logging.getLogger("answernet.hidden_nodes")


def require_ids(words: Optional[Sequence[str]], answers: Optional[Sequence[str]]) -> None:
    """Raise PreconditionError unless both ID sequences are non-empty."""
    if not words:
        raise PreconditionError("We need a non-empty sequence of word IDs from the question")
    if not answers:
        raise PreconditionError("We need a non-empty sequence of answer IDs")


class HiddenNodeRegistry:
    """Find-or-create and reachability queries over hidden nodes.

    Usage:
        registry = HiddenNodeRegistry(
            hidden_nodes=store.hidden_nodes,
            word_strength=store.word_strength,
            answer_strength=store.answer_strength,
        )
        node = await registry.generate_node(["w_2", "w_1"], ["a_1"])
        hidden = await registry.get_all(["w_1"], ["a_1"])
    """

    def __init__(
        self,
        hidden_nodes: Optional[HiddenNodeStore],
        word_strength: Optional[StrengthRelation],
        answer_strength: Optional[StrengthRelation],
    ):
        if hidden_nodes is None:
            raise PreconditionError("hidden_nodes needs to be a HiddenNodeStore")
        if word_strength is None:
            raise PreconditionError("word_strength needs to be a StrengthRelation")
        if answer_strength is None:
            raise PreconditionError("answer_strength needs to be a StrengthRelation")

        self.hidden_nodes = hidden_nodes
        self.word_strength = word_strength
        self.answer_strength = answer_strength

    async def generate_node(
        self,
        words: Sequence[str],
        answers: Sequence[str],
    ) -> HiddenNode:
        """Find or create the hidden node for ``words`` and seed its edges.

        Args:
            words: Word IDs of the question, in any order.
            answers: Candidate answer IDs to associate with the node.

        Returns:
            The HiddenNode whose creation key is the sorted word set.

        Raises:
            PreconditionError: If words or answers is empty.
            StorageFault: If the backend fails.  Earlier writes remain.
        """
        require_ids(words, answers)

        key = make_creation_key(words)
        node = await self.hidden_nodes.find_or_create(key)

        strength = seed_word_strength(len(words))
        await asyncio.gather(
            *(self.word_strength.set(word, node.node_id, strength) for word in words)
        )
        await asyncio.gather(
            *(self.answer_strength.set(answer, node.node_id, ANSWER_STRENGTH_SEED)
              for answer in answers)
        )

        logger.info(
            "Hidden node %s linked to %d words and %d answers",
            node.node_id, len(words), len(answers),
        )
        return node

    async def get_all(
        self,
        words: Sequence[str],
        answers: Sequence[str],
        dedupe: bool = False,
    ) -> List[str]:
        """Hidden-node IDs reachable from the words or the answers.

        Word-side targets come first, then answer-side targets.

        Args:
            words: Word IDs of the question.
            answers: Candidate answer IDs.
            dedupe: Keep only the first occurrence of each node ID.

        Raises:
            PreconditionError: If words or answers is empty.
        """
        require_ids(words, answers)

        from_words, from_answers = await asyncio.gather(
            self.word_strength.query(words),
            self.answer_strength.query(answers),
        )
        hidden = list(from_words) + list(from_answers)

        if dedupe:
            hidden = list(dict.fromkeys(hidden))

        logger.debug("Resolved %d hidden nodes (dedupe=%s)", len(hidden), dedupe)
        return hidden
