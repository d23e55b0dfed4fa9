"""Tests for Network setup and feedforward."""

import math
from unittest.mock import AsyncMock, call, patch

import numpy as np
import pytest

from answer_core.errors import PreconditionError, StorageFault
from answer_core.hidden_nodes import HiddenNodeRegistry
from answer_core.network import Network, NetworkState


def make_network(store, words, answers, **kwargs):
    return Network(
        words=words,
        answers=answers,
        word_strength=store.word_strength,
        answer_strength=store.answer_strength,
        hidden_nodes=store.hidden_nodes,
        **kwargs,
    )


async def seed(store):
    """Two hidden nodes: one for {w_1, w_2} and one for {w_3}."""
    registry = HiddenNodeRegistry(store.hidden_nodes, store.word_strength, store.answer_strength)
    h1 = await registry.generate_node(["w_1", "w_2"], ["a_1", "a_2"])
    h2 = await registry.generate_node(["w_3"], ["a_2"])
    await store.answer_strength.set("a_1", h1.node_id, 0.8)
    return h1, h2


# =============================================================================
# Construction
# =============================================================================


class TestNetworkConstruction:

    def test_starts_in_created_state(self, memory_store):
        network = make_network(memory_store, ["w_1"], ["a_1"])
        assert network.state == NetworkState.CREATED
        assert network.wi is None and network.wo is None

    def test_empty_words_rejected(self, memory_store):
        with pytest.raises(PreconditionError):
            make_network(memory_store, [], ["a_1"])

    def test_empty_answers_rejected(self, memory_store):
        with pytest.raises(PreconditionError):
            make_network(memory_store, ["w_1"], [])

    def test_missing_hidden_node_store_rejected(self, memory_store):
        with pytest.raises(PreconditionError):
            Network(
                words=["w_1"],
                answers=["a_1"],
                word_strength=memory_store.word_strength,
                answer_strength=memory_store.answer_strength,
                hidden_nodes=None,
            )

    def test_unknown_fetch_mode_rejected(self, memory_store):
        with pytest.raises(PreconditionError):
            make_network(memory_store, ["w_1"], ["a_1"], fetch_mode="parallel")

    def test_feed_forward_before_setup_raises(self, memory_store):
        network = make_network(memory_store, ["w_1"], ["a_1"])
        with pytest.raises(PreconditionError):
            network.feed_forward()


# =============================================================================
# Feedforward numerics
# =============================================================================


class TestFeedForward:

    def test_single_hidden_node(self, memory_store):
        network = make_network(memory_store, ["w_1"], ["a_1"])
        network.ai = np.ones(1)
        network.wi = np.array([[1.0]])
        network.wo = np.array([[1.0]])
        network.state = NetworkState.READY

        ao = network.feed_forward()

        assert network.ah[0] == pytest.approx(math.tanh(1.0), abs=1e-15)
        assert ao[0] == pytest.approx(math.tanh(math.tanh(1.0)), abs=1e-15)

    def test_matches_explicit_sums(self, memory_store):
        network = make_network(memory_store, ["w_1", "w_2"], ["a_1", "a_2", "a_3"])
        network.ai = np.ones(2)
        network.wi = np.array([[0.5, -0.2], [0.5, 0.3]])
        network.wo = np.array([[0.1, 0.0, -0.4], [0.8, 0.1, 0.0]])
        network.state = NetworkState.READY

        ao = network.feed_forward()

        ah = [math.tanh(0.5 + 0.5), math.tanh(-0.2 + 0.3)]
        expected = [math.tanh(ah[0] * network.wo[0][k] + ah[1] * network.wo[1][k]) for k in range(3)]
        assert ao.tolist() == pytest.approx(expected, abs=1e-12)

    @pytest.mark.asyncio
    async def test_no_hidden_nodes_scores_zero(self, store):
        network = make_network(store, ["w_1"], ["a_1", "a_2"])

        await network.setup()

        assert network.hidden == []
        assert network.wi.shape == (1, 0)
        assert network.wo.shape == (0, 2)
        assert network.feed_forward().tolist() == [0.0, 0.0]

    @pytest.mark.asyncio
    async def test_repeated_calls_are_bit_identical(self, store):
        await seed(store)
        network = make_network(store, ["w_1", "w_2", "w_3"], ["a_1", "a_2"])
        await network.setup()

        first = network.feed_forward()
        second = network.feed_forward()

        assert first.tobytes() == second.tobytes()

    @pytest.mark.asyncio
    async def test_result_is_a_copy(self, store):
        await seed(store)
        network = make_network(store, ["w_1"], ["a_1"])
        await network.setup()

        scores = network.feed_forward()
        scores[0] = 42.0

        assert network.feed_forward()[0] != 42.0

    @pytest.mark.asyncio
    async def test_rank_orders_best_first(self, store):
        await seed(store)
        network = make_network(store, ["w_1", "w_2"], ["a_2", "a_3", "a_1"], dedupe_hidden=True)
        await network.setup()

        ranking = network.rank()

        assert [answer for answer, _ in ranking] == ["a_1", "a_2", "a_3"]
        assert ranking[2][1] == 0.0

    @pytest.mark.asyncio
    async def test_rank_keeps_input_order_for_ties(self, store):
        await seed(store)
        network = make_network(store, ["w_1"], ["a_4", "a_1", "a_3"])
        await network.setup()

        ranking = network.rank()

        # a_4 and a_3 both score exactly 0.0
        assert [answer for answer, _ in ranking] == ["a_1", "a_4", "a_3"]
        assert ranking[1][1] == ranking[2][1] == 0.0


# =============================================================================
# Setup
# =============================================================================


class TestSetup:

    @pytest.mark.asyncio
    async def test_reaches_ready_with_loaded_weights(self, store):
        h1, h2 = await seed(store)
        network = make_network(store, ["w_1", "w_4"], ["a_1", "a_3"], dedupe_hidden=True)

        await network.setup()

        assert network.state == NetworkState.READY
        assert network.hidden == [h1.node_id]
        # w_4 and a_3 were never linked and fall back to the defaults
        assert network.wi.tolist() == [[0.5], [-0.2]]
        assert network.wo.tolist() == [[0.8, 0.0]]
        assert network.ai.tolist() == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_hidden_layer_keeps_duplicates_by_default(self, store):
        h1, _ = await seed(store)
        network = make_network(store, ["w_1"], ["a_1"])

        await network.setup()

        # one word edge plus one answer edge into h1
        assert network.hidden == [h1.node_id, h1.node_id]
        ao = network.feed_forward()
        assert ao[0] == pytest.approx(math.tanh(2 * math.tanh(0.5) * 0.8), abs=1e-12)

    @pytest.mark.asyncio
    async def test_single_node_end_to_end(self, store):
        registry = HiddenNodeRegistry(store.hidden_nodes, store.word_strength, store.answer_strength)
        node = await registry.generate_node(["w_1"], ["a_1"])
        await store.answer_strength.set("a_1", node.node_id, 1.0)
        network = make_network(store, ["w_1"], ["a_1"], dedupe_hidden=True)

        await network.setup()

        assert network.wi.tolist() == [[1.0]]
        assert network.wo.tolist() == [[1.0]]
        assert network.feed_forward()[0] == pytest.approx(math.tanh(math.tanh(1.0)), abs=1e-15)

    @pytest.mark.asyncio
    async def test_sequential_fetch_order_and_count(self, memory_store):
        h1, h2 = await seed(memory_store)
        network = make_network(memory_store, ["w_1", "w_3"], ["a_1", "a_2"], dedupe_hidden=True)
        word_get = memory_store.word_strength.get
        answer_get = memory_store.answer_strength.get

        with patch.object(memory_store.word_strength, "get", wraps=word_get) as wg, \
                patch.object(memory_store.answer_strength, "get", wraps=answer_get) as ag:
            await network.setup()

        hidden = network.hidden
        assert hidden == [h1.node_id, h2.node_id]
        assert wg.await_args_list == [call(w, h) for w in ["w_1", "w_3"] for h in hidden]
        assert ag.await_args_list == [call(a, h) for h in hidden for a in ["a_1", "a_2"]]

    @pytest.mark.asyncio
    async def test_bulk_fetch_matches_sequential(self, store):
        await seed(store)
        words = ["w_1", "w_2", "w_3", "w_4"]
        answers = ["a_1", "a_2", "a_3"]
        sequential = make_network(store, words, answers)
        bulk = make_network(store, words, answers, fetch_mode="bulk")

        await sequential.setup()
        await bulk.setup()

        assert bulk.hidden == sequential.hidden
        assert np.array_equal(bulk.wi, sequential.wi)
        assert np.array_equal(bulk.wo, sequential.wo)
        assert bulk.feed_forward().tobytes() == sequential.feed_forward().tobytes()

    @pytest.mark.asyncio
    async def test_fault_aborts_and_propagates_unchanged(self, memory_store):
        await seed(memory_store)
        network = make_network(memory_store, ["w_1"], ["a_1"])
        fault = StorageFault("answer relation down")

        with patch.object(memory_store.answer_strength, "get", AsyncMock(side_effect=fault)):
            with pytest.raises(StorageFault) as excinfo:
                await network.setup()

        assert excinfo.value is fault
        assert network.state == NetworkState.HIDDEN_RESOLVED
        assert network.wi is not None
        assert network.wo is None
        with pytest.raises(PreconditionError):
            network.feed_forward()

    @pytest.mark.asyncio
    async def test_fault_while_resolving_hidden_layer(self, memory_store):
        network = make_network(memory_store, ["w_1"], ["a_1"])

        with patch.object(memory_store.word_strength, "query",
                          AsyncMock(side_effect=StorageFault("query failed"))):
            with pytest.raises(StorageFault):
                await network.setup()

        assert network.state == NetworkState.CREATED
        assert network.hidden is None

    @pytest.mark.asyncio
    async def test_failed_rerun_discards_previous_weights(self, memory_store):
        await seed(memory_store)
        network = make_network(memory_store, ["w_1"], ["a_1"])
        await network.setup()
        assert network.state == NetworkState.READY

        # Grow the hidden layer so the rerun loads a wider wi
        await HiddenNodeRegistry(
            memory_store.hidden_nodes, memory_store.word_strength, memory_store.answer_strength,
        ).generate_node(["w_1", "w_5"], ["a_1"])

        with patch.object(memory_store.answer_strength, "get",
                          AsyncMock(side_effect=StorageFault("answer relation down"))):
            with pytest.raises(StorageFault):
                await network.setup()

        assert network.state == NetworkState.HIDDEN_RESOLVED
        assert network.wi.shape == (1, len(network.hidden))
        assert network.wo is None
        with pytest.raises(PreconditionError):
            network.feed_forward()
        with pytest.raises(PreconditionError):
            network.rank()

    @pytest.mark.asyncio
    async def test_rerun_after_failure_recovers(self, memory_store):
        await seed(memory_store)
        network = make_network(memory_store, ["w_1"], ["a_1"])

        with patch.object(memory_store.answer_strength, "get",
                          AsyncMock(side_effect=StorageFault("answer relation down"))):
            with pytest.raises(StorageFault):
                await network.setup()
        await network.setup()

        assert network.state == NetworkState.READY
        assert network.feed_forward()[0] > 0
