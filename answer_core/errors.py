"""
AnswerNet - error taxonomy.

PreconditionError is raised for missing or invalid configuration and for
feedforward calls on a network that has not finished setup.  StorageFault
wraps any failure reported by a storage backend and is propagated as-is by
the core.  A missing strength edge is not an error: it resolves to the
relation's default strength.
"""


class AnswerNetError(Exception):
    """Base class for all AnswerNet errors."""


class PreconditionError(AnswerNetError, ValueError):
    """Configuration is missing or invalid, or an operation ran too early."""


class StorageFault(AnswerNetError):
    """A storage backend failed to complete a read or write."""
