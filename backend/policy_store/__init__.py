"""
Policy Store Package

Loads the domain -> TLS policy table and serves immutable snapshots of it.
"""

from .exceptions import PolicyMapFormatError, PolicyStoreError, PolicyStoreUnavailableError
from .loader import load_policy_map, split_map_spec
from .snapshot import PolicySnapshot, PolicyStore, get_policy_store, set_policy_store

__all__ = [
    "PolicyMapFormatError",
    "PolicyStoreError",
    "PolicyStoreUnavailableError",
    "load_policy_map",
    "split_map_spec",
    "PolicySnapshot",
    "PolicyStore",
    "get_policy_store",
    "set_policy_store",
]
