"""
AnswerNet - Network

One-hidden-layer feedforward scorer over stored strengths.

Setup runs as a linear pipeline; the first failure aborts it and is
re-raised unchanged.  No retries.

  CREATED          -> resolve the hidden layer (HiddenNodeRegistry.get_all)
  HIDDEN_RESOLVED  -> allocate activations, load wi (words x hidden)
                      and wo (hidden x answers)
  WEIGHTS_LOADED   -> READY

feed_forward() is pure: input activations are fixed at 1.0, so the output
depends only on wi and wo.

    ah[i] = tanh(sum_j ai[j] * wi[j][i])
    ao[k] = tanh(sum_i ah[i] * wo[i][k])

Fetch modes:
    "sequential" issues one get() per matrix cell, outer loop then inner
    loop, awaiting each before the next.  "bulk" reads each matrix with a
    single StrengthRelation.get_matrix() call.  Both produce the same
    matrices.

# ---- Changelog ----
# [2026-10-17] setup() reruns from a clean slate.
#   What: setup() clears hidden/wi/wo and returns to CREATED before
#         loading; feed_forward() requires READY.
#   Why:  A failed rerun could leave new wi beside the previous wo.
# [2026-10-17] Initial creation.
#   What: Network class with async setup(), feed_forward() and rank().
#   How:  Weights held as numpy arrays; feedforward is two mat-vec
#         products through np.tanh.
# -------------------
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from answer_core.errors import PreconditionError
from answer_core.hidden_nodes import HiddenNodeRegistry, require_ids
from answer_core.store import HiddenNodeStore, StrengthRelation

logger = logging.getLogger("answernet.network")

FETCH_MODES = ("sequential", "bulk")


class NetworkState(str, Enum):
    """Setup progress of a Network."""
    CREATED = "CREATED"
    HIDDEN_RESOLVED = "HIDDEN_RESOLVED"
    WEIGHTS_LOADED = "WEIGHTS_LOADED"
    READY = "READY"


class Network:
    """Scores candidate answers for one question.

    Usage:
        network = Network(
            words=["w_1", "w_2"],
            answers=["a_1", "a_2", "a_3"],
            word_strength=store.word_strength,
            answer_strength=store.answer_strength,
            hidden_nodes=store.hidden_nodes,
        )
        await network.setup()
        scores = network.feed_forward()     # one score per answer
        ranking = network.rank()            # [(answer_id, score), ...]
    """

    def __init__(
        self,
        words: Sequence[str],
        answers: Sequence[str],
        word_strength: Optional[StrengthRelation],
        answer_strength: Optional[StrengthRelation],
        hidden_nodes: Optional[HiddenNodeStore],
        fetch_mode: str = "sequential",
        dedupe_hidden: bool = False,
    ):
        """
        Args:
            words: Word IDs of the question (input layer order).
            answers: Candidate answer IDs (output layer order).
            word_strength: Word -> hidden strength relation.
            answer_strength: Answer -> hidden strength relation.
            hidden_nodes: Hidden-node store.
            fetch_mode: "sequential" or "bulk" weight loading.
            dedupe_hidden: Collapse repeated hidden nodes in the hidden layer.

        Raises:
            PreconditionError: On empty IDs, missing handles or an
                unknown fetch_mode.
        """
        require_ids(words, answers)
        if fetch_mode not in FETCH_MODES:
            raise PreconditionError(
                f"fetch_mode must be one of {FETCH_MODES}, got '{fetch_mode}'"
            )

        self.registry = HiddenNodeRegistry(hidden_nodes, word_strength, answer_strength)
        self.words = list(words)
        self.answers = list(answers)
        self.word_strength = word_strength
        self.answer_strength = answer_strength
        self.fetch_mode = fetch_mode
        self.dedupe_hidden = dedupe_hidden

        self.state = NetworkState.CREATED
        self.hidden: Optional[List[str]] = None
        # Activations
        self.ai: Optional[np.ndarray] = None
        self.ah: Optional[np.ndarray] = None
        self.ao: Optional[np.ndarray] = None
        # Weights
        self.wi: Optional[np.ndarray] = None
        self.wo: Optional[np.ndarray] = None

    async def setup(self) -> None:
        """Resolve the hidden layer and load both weight matrices.

        Raises:
            StorageFault: Propagated from the backend; state stays at the
                last stage reached.
        """
        # A rerun starts from scratch so a partial load never mixes with
        # weights from an earlier run.
        self.state = NetworkState.CREATED
        self.hidden = None
        self.wi = None
        self.wo = None

        self.hidden = await self.registry.get_all(
            self.words, self.answers, dedupe=self.dedupe_hidden,
        )
        self.state = NetworkState.HIDDEN_RESOLVED

        self._build_activations()
        self.wi = await self._load_word_weights()
        self.wo = await self._load_answer_weights()
        self.state = NetworkState.WEIGHTS_LOADED

        self.state = NetworkState.READY
        logger.info(
            "Network ready: %d words, %d hidden, %d answers (%s fetch)",
            len(self.words), len(self.hidden), len(self.answers), self.fetch_mode,
        )

    def feed_forward(self) -> np.ndarray:
        """Compute one score per answer, in configured answer order.

        Raises:
            PreconditionError: If the network is not READY.
        """
        if self.state is not NetworkState.READY or self.wi is None or self.wo is None:
            raise PreconditionError(
                f"Network is {self.state.value}, not ready. Did setup() complete?"
            )

        self.ah = np.tanh(self.ai @ self.wi)
        self.ao = np.tanh(self.ah @ self.wo)
        return self.ao.copy()

    def rank(self) -> List[Tuple[str, float]]:
        """Answers paired with their scores, best first."""
        scores = self.feed_forward()
        ranked = [(answer, float(score)) for answer, score in zip(self.answers, scores)]
        ranked.sort(key=lambda pair: pair[1], reverse=True)
        return ranked

    # -------------------------------------------------------------------
    # Setup stages
    # -------------------------------------------------------------------

    def _build_activations(self) -> None:
        self.ai = np.ones(len(self.words))
        self.ah = np.ones(len(self.hidden))
        self.ao = np.ones(len(self.answers))

    async def _load_word_weights(self) -> np.ndarray:
        if self.fetch_mode == "bulk":
            rows = await self.word_strength.get_matrix(self.words, self.hidden)
        else:
            rows = []
            for word in self.words:
                row = []
                for node in self.hidden:
                    row.append(await self.word_strength.get(word, node))
                rows.append(row)
        return _as_matrix(rows, len(self.words), len(self.hidden))

    async def _load_answer_weights(self) -> np.ndarray:
        if self.fetch_mode == "bulk":
            # Stored as answer -> hidden; the output layer reads hidden -> answer
            by_answer = await self.answer_strength.get_matrix(self.answers, self.hidden)
            return _as_matrix(by_answer, len(self.answers), len(self.hidden)).T.copy()

        rows = []
        for node in self.hidden:
            row = []
            for answer in self.answers:
                row.append(await self.answer_strength.get(answer, node))
            rows.append(row)
        return _as_matrix(rows, len(self.hidden), len(self.answers))


def _as_matrix(rows: List[List[float]], n_rows: int, n_cols: int) -> np.ndarray:
    """2-D float array of the given shape, also when either side is empty."""
    return np.asarray(rows, dtype=float).reshape(n_rows, n_cols)
