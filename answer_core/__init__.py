"""
AnswerNet Core - associative-memory answer scoring.

A question (a set of word IDs) is scored against a fixed set of candidate
answer IDs by propagating activation through one hidden layer of concept
nodes.  Connection strengths live in an external strength store; see
answer_core.store for the collaborator interface and answer_core.network
for the feedforward pass.

# ---- Changelog ----
# [2026-10-17] Initial creation.
#   What: Package init for answer_core.
#   Where: answer_core/__init__.py
# -------------------
"""

from answer_core.errors import AnswerNetError, PreconditionError, StorageFault
from answer_core.hidden_nodes import HiddenNodeRegistry
from answer_core.models import HiddenNode, make_creation_key
from answer_core.network import Network, NetworkState

__version__ = "0.1.0"

__all__ = [
    "AnswerNetError",
    "HiddenNode",
    "HiddenNodeRegistry",
    "Network",
    "NetworkState",
    "PreconditionError",
    "StorageFault",
    "make_creation_key",
]
