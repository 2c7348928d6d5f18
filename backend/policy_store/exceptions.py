"""
Policy Store Exceptions
"""


class PolicyStoreError(Exception):
    """Base exception for policy table failures."""
    pass


class PolicyStoreUnavailableError(PolicyStoreError):
    """No policy snapshot could be loaded or none is installed."""
    pass


class PolicyMapFormatError(PolicyStoreError):
    """Policy map specifier or table contents could not be parsed."""
    pass
