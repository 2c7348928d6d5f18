"""
Policy Engine Package

Decides whether enforced TLS is possible for each recipient domain and
computes the verdict and rewrites for a finished transaction.
"""

from .decision import DecisionEngine, DecisionResult, FilterOptions, RejectReason, Verdict
from .messages import X_TLS_HEADER, format_x_tls_value
from .rules import PolicyEngine, is_capable_policy
from .stats import DecisionStats, get_decision_stats

__all__ = [
    "DecisionEngine",
    "DecisionResult",
    "FilterOptions",
    "RejectReason",
    "Verdict",
    "X_TLS_HEADER",
    "format_x_tls_value",
    "PolicyEngine",
    "is_capable_policy",
    "DecisionStats",
    "get_decision_stats",
]
