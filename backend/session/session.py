"""
Transaction Session

Per-transaction state accumulated across milter events. A session is owned
by exactly one connection handler, never shared and never reused once it is
decided or closed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional

from email_service.address import RecipientAddress, parse_recipient
from email_service.header_rewrite import HeaderEntry

from .exceptions import SessionStateError

if TYPE_CHECKING:
    from policy_engine.decision import DecisionResult


class SessionState(Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    SENDER_SET = "sender_set"
    COLLECTING_RECIPIENTS = "collecting_recipients"
    COLLECTING_HEADERS = "collecting_headers"
    DECIDED = "decided"
    CLOSED = "closed"


_ACCEPTING_STATES: Dict[str, FrozenSet[SessionState]] = {
    "connect": frozenset({SessionState.IDLE}),
    "sender": frozenset({SessionState.CONNECTED}),
    "recipient": frozenset({
        SessionState.SENDER_SET,
        SessionState.COLLECTING_RECIPIENTS,
    }),
    "header": frozenset({
        SessionState.COLLECTING_RECIPIENTS,
        SessionState.COLLECTING_HEADERS,
    }),
    "end_of_data": frozenset({
        SessionState.COLLECTING_RECIPIENTS,
        SessionState.COLLECTING_HEADERS,
    }),
}


@dataclass(frozen=True)
class ConnectionInfo:
    """Client connection metadata reported by the MTA."""
    hostname: Optional[str]
    port: Optional[int]
    source_ip: Optional[str]


class Session:
    """
    Mutable state of one mail transaction.

    Recipients and headers are append-only and keep arrival order; nothing
    is reordered or deduplicated before the decision runs.
    """

    def __init__(
        self,
        connection: Optional[ConnectionInfo] = None,
        track_x_tls_header: bool = True,
    ):
        self.connection = connection
        self.sender: Optional[str] = None
        self.recipients: List[RecipientAddress] = []
        self.headers: List[HeaderEntry] = []
        self.existing_x_tls: Optional[str] = None
        self.decision: Optional["DecisionResult"] = None
        self.state = SessionState.CONNECTED if connection else SessionState.IDLE
        self._track_x_tls_header = track_x_tls_header

    @property
    def hostname(self) -> Optional[str]:
        return self.connection.hostname if self.connection else None

    @property
    def source_ip(self) -> Optional[str]:
        return self.connection.source_ip if self.connection else None

    @property
    def port(self) -> Optional[int]:
        return self.connection.port if self.connection else None

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def require(self, event: str) -> None:
        if self.state not in _ACCEPTING_STATES[event]:
            raise SessionStateError(
                f"Event '{event}' not accepted in state '{self.state.value}'"
            )

    def connect(self, hostname: Optional[str], port: Optional[int], source_ip: Optional[str]) -> None:
        self.require("connect")
        self.connection = ConnectionInfo(hostname=hostname, port=port, source_ip=source_ip)
        self.state = SessionState.CONNECTED

    def set_sender(self, *args: str) -> None:
        self.require("sender")
        self.sender = " ".join(args)
        self.state = SessionState.SENDER_SET

    def add_recipient(self, *args: str) -> RecipientAddress:
        self.require("recipient")
        address = parse_recipient(" ".join(args))
        self.recipients.append(address)
        self.state = SessionState.COLLECTING_RECIPIENTS
        return address

    def add_header(self, name: str, value: str) -> None:
        self.require("header")
        self.headers.append(HeaderEntry(name, value))
        if self._track_x_tls_header and name.lower() == "x-tls":
            self.existing_x_tls = value
        self.state = SessionState.COLLECTING_HEADERS

    def mark_decided(self, decision: "DecisionResult") -> None:
        self.require("end_of_data")
        self.decision = decision
        self.state = SessionState.DECIDED

    def close(self) -> None:
        self.state = SessionState.CLOSED

    def __repr__(self) -> str:
        return (
            f"Session(state={self.state.value}, sender={self.sender!r}, "
            f"recipients={len(self.recipients)}, headers={len(self.headers)})"
        )
