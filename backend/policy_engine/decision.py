"""
Enforced TLS Decision Engine

Runs once per transaction at end of data. Classifies every recipient,
applies the strict and unified delivery rules and computes the header and
recipient mutations. The engine itself has no side effects: applying the
mutations is the dispatcher's job.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from email_service.address import RecipientAddress, extract_enforced_token
from email_service.header_rewrite import HeaderRewrite, rewrite_headers

from .messages import (
    REJECT_CODE,
    REJECT_ENHANCED_CODE,
    format_x_tls_value,
    strict_reject_text,
    unified_reject_text,
    unique_in_order,
)

if TYPE_CHECKING:
    from session.session import Session

    from .rules import PolicyEngine

logger = logging.getLogger(__name__)


class Verdict(Enum):
    CONTINUE = "continue"
    REJECT = "reject"


class RejectReason(Enum):
    STRICT = "strict"
    UNIFIED = "unified"
    RECIPIENT_ADD_FAILED = "recipient_add_failed"


@dataclass(frozen=True)
class FilterOptions:
    """Delivery rules in effect for every transaction."""
    strict: bool = True
    unified: bool = False
    track_x_tls_header: bool = True
    info_url: str = ""


@dataclass(frozen=True)
class DecisionResult:
    """Verdict and mutation set for one transaction."""
    verdict: Verdict
    reject_code: Optional[str] = None
    reject_enhanced_code: Optional[str] = None
    reject_text: Optional[str] = None
    reject_reason: Optional[RejectReason] = None
    x_tls_header_value: Optional[str] = None
    header_rewrites: List[HeaderRewrite] = field(default_factory=list)
    recipient_deletions: List[str] = field(default_factory=list)
    recipient_additions: List[str] = field(default_factory=list)
    tls_required: int = 0
    tls_enforced: int = 0
    ok_domains: List[str] = field(default_factory=list)
    failed_domains: List[str] = field(default_factory=list)

    @property
    def rejected(self) -> bool:
        return self.verdict is Verdict.REJECT

    def as_rejection(
        self,
        reason: RejectReason,
        text: Optional[str] = None,
    ) -> "DecisionResult":
        """
        Turn this result into a rejection that carries no mutations.

        Without text the rejection is generic: no custom code is attached
        and the MTA answers with its default reply.
        """
        return replace(
            self,
            verdict=Verdict.REJECT,
            reject_code=REJECT_CODE if text else None,
            reject_enhanced_code=REJECT_ENHANCED_CODE if text else None,
            reject_text=text,
            reject_reason=reason,
            x_tls_header_value=None,
            header_rewrites=[],
            recipient_deletions=[],
            recipient_additions=[],
        )


class DecisionEngine:
    """
    Enforced TLS decision for a finished transaction.

    Steps:
    1. Classify recipients into enforced-ok, enforced-failed and plain
    2. Build the X-TLS announcement for domains reached over TLS
    3. Without any enforced recipient, continue with the announcement only
    4. Strict mode rejects when any enforced domain lacks a TLS policy
    5. Unified mode rejects unless every recipient gets TLS
    6. Rewrite enforced recipients and To/Cc headers to the plain address
    """

    def __init__(self, policy: "PolicyEngine", options: FilterOptions):
        self._policy = policy
        self._options = options

    @property
    def options(self) -> FilterOptions:
        return self._options

    def decide(self, session: "Session") -> DecisionResult:
        tls_required = 0
        tls_enforced = 0
        ok_domains: List[str] = []
        failed_domains: List[str] = []
        allowed: List[RecipientAddress] = []

        for rcpt in session.recipients:
            if rcpt.malformed:
                continue

            capable = self._policy.enforced_capable(rcpt.domain)
            if rcpt.enforced:
                tls_required += 1
                if capable:
                    tls_enforced += 1
                    ok_domains.append(rcpt.domain)
                    allowed.append(rcpt)
                else:
                    failed_domains.append(rcpt.domain)
            elif capable:
                tls_enforced += 1
                ok_domains.append(rcpt.domain)

        x_tls_value = None
        if ok_domains:
            value = format_x_tls_value(ok_domains)
            if value != session.existing_x_tls:
                x_tls_value = value

        result = DecisionResult(
            verdict=Verdict.CONTINUE,
            x_tls_header_value=x_tls_value,
            tls_required=tls_required,
            tls_enforced=tls_enforced,
            ok_domains=ok_domains,
            failed_domains=failed_domains,
        )

        if tls_required == 0:
            return result

        if failed_domains:
            if self._options.strict:
                return result.as_rejection(
                    RejectReason.STRICT,
                    strict_reject_text(failed_domains, self._options.info_url),
                )
            logger.debug(
                "Enforced TLS not possible to %s, passing through unchanged",
                unique_in_order(failed_domains),
            )

        if len(session.recipients) != tls_enforced and self._options.unified:
            return result.as_rejection(
                RejectReason.UNIFIED,
                unified_reject_text(self._options.info_url),
            )

        if not allowed:
            return result

        return replace(
            result,
            header_rewrites=rewrite_headers(session.headers, allowed),
            recipient_deletions=unique_in_order(
                extract_enforced_token(rcpt.raw) for rcpt in allowed
            ),
            recipient_additions=unique_in_order(rcpt.bracketed for rcpt in allowed),
        )
