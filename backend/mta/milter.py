"""
Milter Adapter

Bridges pymilter callbacks to the transaction dispatcher. pymilter creates
one TLSPolicyMilter per client connection and calls it from that
connection's thread only.
"""

import logging
from typing import Optional

import Milter

from policy_engine.decision import DecisionEngine
from policy_engine.stats import DecisionStats
from policy_store.exceptions import PolicyStoreError
from session.dispatcher import TransactionDispatcher
from session.exceptions import MutationRefusedError, SessionStateError

logger = logging.getLogger(__name__)

MILTER_FLAGS = Milter.ADDHDRS | Milter.CHGHDRS | Milter.ADDRCPT | Milter.DELRCPT


class MilterMutationSink:
    """MutationSink backed by the pymilter context of one connection."""

    def __init__(self, milter: Milter.Base):
        self._milter = milter

    def add_header(self, name: str, value: str) -> None:
        try:
            self._milter.addheader(name, value)
        except Milter.error as e:
            raise MutationRefusedError("add_header", name, str(e)) from e

    def change_header(self, name: str, index: int, value: str) -> None:
        try:
            self._milter.chgheader(name, index, value)
        except Milter.error as e:
            raise MutationRefusedError("change_header", name, str(e)) from e

    def delete_recipient(self, token: str) -> None:
        try:
            self._milter.delrcpt(token)
        except Milter.error as e:
            raise MutationRefusedError("delete_recipient", token, str(e)) from e

    def add_recipient(self, token: str) -> None:
        try:
            self._milter.addrcpt(token)
        except Milter.error as e:
            raise MutationRefusedError("add_recipient", token, str(e)) from e


def _split_hostaddr(hostaddr) -> tuple:
    # inet/inet6 give (ip, port, ...), unix sockets give a path
    if isinstance(hostaddr, tuple) and hostaddr:
        port = hostaddr[1] if len(hostaddr) > 1 else None
        return hostaddr[0], port
    return hostaddr or None, None


class TLSPolicyMilter(Milter.Base):
    """
    Milter enforcing TLS delivery per recipient domain.

    Out-of-order events and an unavailable policy store answer TEMPFAIL so
    the MTA retries the transaction later.
    """

    def __init__(self, engine: DecisionEngine, stats: Optional[DecisionStats] = None):
        super().__init__()
        self.dispatcher = TransactionDispatcher(engine, stats)

    def connect(self, IPname, family, hostaddr):
        source_ip, port = _split_hostaddr(hostaddr)
        self.dispatcher.on_connect(IPname or None, port, source_ip)
        return Milter.CONTINUE

    def envfrom(self, mailfrom, *args):
        try:
            self.dispatcher.on_sender(mailfrom, *args)
        except SessionStateError as e:
            logger.error("Rejecting sender temporarily: %s", e)
            return Milter.TEMPFAIL
        return Milter.CONTINUE

    def envrcpt(self, to, *args):
        try:
            self.dispatcher.on_recipient(to, *args)
        except SessionStateError as e:
            logger.error("Rejecting recipient temporarily: %s", e)
            return Milter.TEMPFAIL
        return Milter.CONTINUE

    def header(self, name, hval):
        try:
            self.dispatcher.on_header(name, hval)
        except SessionStateError as e:
            logger.error("Rejecting header temporarily: %s", e)
            return Milter.TEMPFAIL
        return Milter.CONTINUE

    def eom(self):
        try:
            result = self.dispatcher.on_end_of_data(MilterMutationSink(self))
        except (SessionStateError, PolicyStoreError) as e:
            logger.error("Cannot decide transaction, temporary failure: %s", e)
            return Milter.TEMPFAIL

        if not result.rejected:
            return Milter.CONTINUE

        if result.reject_text:
            self.setreply(result.reject_code, result.reject_enhanced_code, result.reject_text)
        return Milter.REJECT

    def abort(self):
        self.dispatcher.on_abort()
        return Milter.CONTINUE

    def close(self):
        self.dispatcher.on_close()
        return Milter.CONTINUE


def run_milter(
    engine: DecisionEngine,
    stats: Optional[DecisionStats],
    name: str,
    socket: str,
    timeout: int,
) -> None:
    """Serve the milter until the MTA connection loop stops."""
    Milter.factory = lambda: TLSPolicyMilter(engine, stats)
    Milter.set_flags(MILTER_FLAGS)

    logger.info("Milter %s listening on %s", name, socket)
    Milter.runmilter(name, socket, timeout)
    logger.info("Milter %s stopped", name)
