"""
TLS Policy Rules

Decides whether enforced TLS is configured for a destination domain.
"""

from typing import Optional

from policy_store import PolicyStore

CAPABLE_PREFIXES = ("verify", "secure")


def is_capable_policy(policy: Optional[str]) -> bool:
    """True for policy strings like "verify", "secure" or "secure-log"."""
    if policy is None:
        return False
    return policy.startswith(CAPABLE_PREFIXES)


class PolicyEngine:
    """
    Read-only view over the policy store.

    Every call reads the snapshot currently in service, so a reload is
    picked up by the next lookup without any locking here.
    """

    def __init__(self, store: PolicyStore):
        self._store = store

    @property
    def store(self) -> PolicyStore:
        return self._store

    def lookup(self, domain: str) -> Optional[str]:
        """
        Get the raw policy string for a domain.

        Raises:
            PolicyStoreUnavailableError: No snapshot is installed
        """
        return self._store.current().get(domain)

    def enforced_capable(self, domain: str) -> bool:
        """Check whether enforced TLS delivery is configured for domain."""
        return is_capable_policy(self.lookup(domain))
