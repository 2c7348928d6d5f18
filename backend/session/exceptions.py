"""
Session Exceptions
"""


class SessionError(Exception):
    """Base exception for transaction handling failures."""
    pass


class SessionStateError(SessionError):
    """Event arrived in a state that does not accept it."""
    pass


class MutationRefusedError(SessionError):
    """The MTA refused a header or recipient change."""

    def __init__(self, mutation: str, target: str, reason: str = ""):
        self.mutation = mutation
        self.target = target
        self.reason = reason
        message = f"{mutation} refused for {target!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
