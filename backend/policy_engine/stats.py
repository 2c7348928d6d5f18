"""
Decision Statistics

Thread-safe counters describing what the filter decided since startup.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .decision import DecisionResult


class DecisionStats:
    """Counters shared by all connection threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._started_at = datetime.now(timezone.utc)
        self._counters: Dict[str, int] = {}

    def _bump(self, name: str, amount: int = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + amount

    def record(self, result: DecisionResult) -> None:
        with self._lock:
            self._bump("transactions")
            if result.rejected:
                self._bump("rejected")
                reason = result.reject_reason.value if result.reject_reason else "unknown"
                self._bump(f"rejected_{reason}")
            else:
                self._bump("continued")
                self._bump("recipients_rewritten", len(result.recipient_additions))
                self._bump("headers_rewritten", len(result.header_rewrites))
                if result.x_tls_header_value:
                    self._bump("x_tls_headers")

    def record_refused(self, mutation: str) -> None:
        """Count a mutation the MTA refused to apply."""
        with self._lock:
            self._bump(f"refused_{mutation}")

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "started_at": self._started_at.isoformat(),
                "counters": dict(self._counters),
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._started_at = datetime.now(timezone.utc)


_decision_stats: Optional[DecisionStats] = None


def get_decision_stats() -> DecisionStats:
    global _decision_stats
    if _decision_stats is None:
        _decision_stats = DecisionStats()
    return _decision_stats
