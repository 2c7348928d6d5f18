"""
Transaction Dispatcher

Routes milter events of one client connection to its current Session and,
at end of data, runs the decision engine and applies the resulting
mutations through a MutationSink.

One dispatcher exists per connection. A connection may carry several
transactions; each gets a fresh Session that only inherits the connection
metadata.
"""

import logging
from typing import Optional, Protocol

from email_service.address import RecipientAddress
from policy_engine.decision import DecisionEngine, DecisionResult, RejectReason
from policy_engine.messages import X_TLS_HEADER
from policy_engine.stats import DecisionStats

from .exceptions import MutationRefusedError, SessionStateError
from .session import ConnectionInfo, Session, SessionState

logger = logging.getLogger(__name__)


class MutationSink(Protocol):
    """
    Message changes the protocol layer can apply.

    Every method raises MutationRefusedError when the MTA refuses the change.
    """

    def add_header(self, name: str, value: str) -> None: ...

    def change_header(self, name: str, index: int, value: str) -> None: ...

    def delete_recipient(self, token: str) -> None: ...

    def add_recipient(self, token: str) -> None: ...


class TransactionDispatcher:

    def __init__(self, engine: DecisionEngine, stats: Optional[DecisionStats] = None):
        self._engine = engine
        self._stats = stats
        self._connection: Optional[ConnectionInfo] = None
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def connection(self) -> Optional[ConnectionInfo]:
        return self._connection

    def _new_session(self) -> Session:
        return Session(
            connection=self._connection,
            track_x_tls_header=self._engine.options.track_x_tls_header,
        )

    def _current(self, event: str) -> Session:
        if self._session is None:
            raise SessionStateError(f"Event '{event}' without an open transaction")
        return self._session

    def on_connect(self, hostname: Optional[str], port: Optional[int], source_ip: Optional[str]) -> Session:
        if self._session is not None:
            self._session.close()
        session = Session(track_x_tls_header=self._engine.options.track_x_tls_header)
        session.connect(hostname, port, source_ip)
        self._connection = session.connection
        self._session = session
        logger.debug("Connect from %s [%s]:%s", hostname, source_ip, port)
        return session

    def on_sender(self, *args: str) -> None:
        if self._session is None or self._session.state in (SessionState.DECIDED, SessionState.CLOSED):
            if self._connection is None:
                raise SessionStateError("Event 'sender' before connect")
            self._session = self._new_session()
        self._session.set_sender(*args)

    def on_recipient(self, *args: str) -> RecipientAddress:
        return self._current("recipient").add_recipient(*args)

    def on_header(self, name: str, value: str) -> None:
        self._current("header").add_header(name, value)

    def on_end_of_data(self, sink: MutationSink) -> DecisionResult:
        """
        Decide the transaction and apply its mutations.

        Args:
            sink: Protocol-layer handle used to change the message

        Returns:
            The final result; a refused recipient addition turns it into a
            generic rejection
        """
        session = self._current("end_of_data")
        session.require("end_of_data")

        decision = self._engine.decide(session)
        session.mark_decided(decision)
        result = self.apply(decision, sink)

        if self._stats is not None:
            self._stats.record(result)

        logger.info(
            "Transaction from=%s verdict=%s tls_required=%d tls_enforced=%d ok=%s failed=%s",
            session.sender,
            result.verdict.value,
            result.tls_required,
            result.tls_enforced,
            result.ok_domains,
            result.failed_domains,
        )
        return result

    def apply(self, decision: DecisionResult, sink: MutationSink) -> DecisionResult:
        if decision.rejected:
            return decision

        for token in decision.recipient_deletions:
            try:
                sink.delete_recipient(token)
            except MutationRefusedError as e:
                logger.warning("Could not delete recipient %s: %s", token, e)
                self._count_refused("delete_recipient")

        for token in decision.recipient_additions:
            try:
                sink.add_recipient(token)
            except MutationRefusedError as e:
                logger.error("Could not add recipient %s, rejecting message: %s", token, e)
                self._count_refused("add_recipient")
                return decision.as_rejection(RejectReason.RECIPIENT_ADD_FAILED)

        if decision.x_tls_header_value:
            try:
                sink.add_header(X_TLS_HEADER, decision.x_tls_header_value)
            except MutationRefusedError as e:
                logger.warning("Could not add %s header: %s", X_TLS_HEADER, e)
                self._count_refused("x_tls_header")

        for rewrite in decision.header_rewrites:
            try:
                sink.change_header(rewrite.name, rewrite.index, rewrite.value)
            except MutationRefusedError as e:
                logger.warning("Could not rewrite %s header: %s", rewrite.name, e)
                self._count_refused("change_header")

        return decision

    def _count_refused(self, mutation: str) -> None:
        if self._stats is not None:
            self._stats.record_refused(mutation)

    def on_abort(self) -> None:
        """Discard the current transaction; the connection stays open."""
        if self._session is not None:
            self._session.close()
        self._session = None

    def on_close(self) -> None:
        self.on_abort()
        self._connection = None
