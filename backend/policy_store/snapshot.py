"""
Policy Snapshots

Immutable domain -> policy tables and the holder that swaps them.

Readers grab the current snapshot reference and never lock. A reload builds
a complete new snapshot first and only then replaces the reference, so a
snapshot that is in use is never mutated.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Optional

from .exceptions import PolicyStoreUnavailableError
from .loader import load_policy_map

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicySnapshot:
    """Read-only view of one loaded policy table."""
    entries: Mapping[str, str]
    source: str
    generation: int
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_mapping(
        cls,
        entries: Mapping[str, str],
        source: str = "memory",
        generation: int = 1,
    ) -> "PolicySnapshot":
        return cls(
            entries=MappingProxyType(dict(entries)),
            source=source,
            generation=generation,
        )

    def get(self, domain: str) -> Optional[str]:
        return self.entries.get(domain)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, domain: object) -> bool:
        return domain in self.entries


class PolicyStore:
    """
    Holder for the active policy snapshot.

    Features:
    - Lock-free reads of the current snapshot
    - Reloads serialized against each other, never against readers
    - A failed reload leaves the previous snapshot in service
    """

    def __init__(self, source: Optional[str] = None):
        self._source = source
        self._snapshot: Optional[PolicySnapshot] = None
        self._reload_lock = threading.Lock()

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    def current(self) -> PolicySnapshot:
        """
        Get the snapshot currently in service.

        Raises:
            PolicyStoreUnavailableError: No snapshot has been installed
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise PolicyStoreUnavailableError("No policy snapshot loaded")
        return snapshot

    def install(self, entries: Mapping[str, str], source: str = "memory") -> PolicySnapshot:
        """Install a snapshot built from an in-memory mapping."""
        with self._reload_lock:
            return self._swap(entries, source)

    def load(self, source: Optional[str] = None) -> PolicySnapshot:
        """
        Load the policy map and install it as the active snapshot.

        Args:
            source: Map specifier; defaults to the one given at construction

        Returns:
            The newly installed snapshot
        """
        spec = source or self._source
        if not spec:
            raise PolicyStoreUnavailableError("No policy map configured")

        with self._reload_lock:
            entries = load_policy_map(spec)
            self._source = spec
            return self._swap(entries, spec)

    def reload(self) -> PolicySnapshot:
        """Reload from the configured source, keeping the old snapshot on failure."""
        try:
            return self.load()
        except Exception:
            if self._snapshot is not None:
                logger.error(
                    "Policy reload failed, keeping generation %d",
                    self._snapshot.generation,
                )
            raise

    def _swap(self, entries: Mapping[str, str], source: str) -> PolicySnapshot:
        previous = self._snapshot
        generation = previous.generation + 1 if previous else 1
        snapshot = PolicySnapshot.from_mapping(entries, source=source, generation=generation)
        self._snapshot = snapshot
        logger.info(
            "Installed policy snapshot generation %d (%d entries) from %s",
            generation, len(snapshot), source,
        )
        return snapshot


_policy_store: Optional[PolicyStore] = None


def get_policy_store() -> PolicyStore:
    """Get the process-wide policy store."""
    global _policy_store
    if _policy_store is None:
        from config import settings
        _policy_store = PolicyStore(settings.policy_map)
    return _policy_store


def set_policy_store(store: Optional[PolicyStore]) -> None:
    """Replace the process-wide policy store (used at startup and in tests)."""
    global _policy_store
    _policy_store = store
