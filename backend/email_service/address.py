"""
Recipient Address Parsing

Classifies raw envelope recipients into enforced, normal and malformed
addresses. A recipient asks for enforced TLS by prefixing its local part
with "s:", e.g. <s:user@domain.cc> or "s:user"@domain.cc.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

ENFORCED_PREFIX = "s:"

_ENFORCED_RE = re.compile(r'<?"?s:(.*?)"?@([A-Za-z0-9.-]*)>?')
_NORMAL_RE = re.compile(r'<?(.*?)@([A-Za-z0-9.-]*)>?')
_ENFORCED_TOKEN_RE = re.compile(r'(<?"?s:.*?"?@[A-Za-z0-9.-]*>?)')


class AddressKind(Enum):
    ENFORCED = "enforced"
    NORMAL = "normal"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class RecipientAddress:
    """Parsed view of one raw recipient token."""
    kind: AddressKind
    local_part: str
    domain: str
    raw: str

    @property
    def enforced(self) -> bool:
        return self.kind is AddressKind.ENFORCED

    @property
    def malformed(self) -> bool:
        return self.kind is AddressKind.MALFORMED

    @property
    def plain(self) -> str:
        """Address without the enforcement marker, quotes or brackets."""
        return f"{self.local_part}@{self.domain}"

    @property
    def bracketed(self) -> str:
        return f"<{self.plain}>"


def parse_recipient(raw: str) -> RecipientAddress:
    """
    Parse a raw recipient string.

    The enforced pattern is tried first; without the "s:" marker a looser
    pattern is used. Text matching neither is returned as MALFORMED and
    logged, it never raises.

    Args:
        raw: Recipient text as received from the MTA

    Returns:
        Classified RecipientAddress; raw is kept verbatim
    """
    match = _ENFORCED_RE.match(raw)
    if match:
        return RecipientAddress(AddressKind.ENFORCED, match.group(1), match.group(2), raw)

    match = _NORMAL_RE.match(raw)
    if match:
        return RecipientAddress(AddressKind.NORMAL, match.group(1), match.group(2), raw)

    logger.error("Unable to parse recipient address: %r", raw)
    return RecipientAddress(AddressKind.MALFORMED, "", "", raw)


def extract_enforced_token(raw: str) -> str:
    """
    Recover the exact enforced-form token from raw recipient text.

    Keeps the original bracket and quote form so the MTA can match it for
    deletion. Falls back to the whole raw text.
    """
    match = _ENFORCED_TOKEN_RE.search(raw)
    if match:
        return match.group(1)
    return raw
