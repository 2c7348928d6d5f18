"""
Session Package

Per-transaction state machine and the dispatcher that drives it.
"""

from .dispatcher import MutationSink, TransactionDispatcher
from .exceptions import MutationRefusedError, SessionError, SessionStateError
from .session import ConnectionInfo, Session, SessionState

__all__ = [
    "MutationSink",
    "TransactionDispatcher",
    "MutationRefusedError",
    "SessionError",
    "SessionStateError",
    "ConnectionInfo",
    "Session",
    "SessionState",
]
