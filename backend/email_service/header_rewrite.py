"""
Header Rewriting

Replaces enforced-form addresses in To/Cc headers with their plain form.
Each substitution rule is derived from one specific recipient, so only that
recipient's enforced address is touched.
"""

import re
from typing import Dict, Iterable, List, NamedTuple, Pattern

from .address import RecipientAddress

REWRITABLE_HEADERS = frozenset({"to", "cc"})


class HeaderEntry(NamedTuple):
    name: str
    value: str


class HeaderRewrite(NamedTuple):
    """Replacement value for the index-th (1-based) header called name."""
    name: str
    index: int
    value: str


def enforced_form_pattern(address: RecipientAddress) -> Pattern[str]:
    """Pattern matching s:local@domain for one recipient, either quote optional."""
    return re.compile(
        r'(?<![A-Za-z0-9._%+-])"?s:' + re.escape(address.local_part) + r'"?@'
        + re.escape(address.domain)
        + r"(?![A-Za-z0-9-]|\.[A-Za-z0-9])"
    )


def rewrite_header_value(value: str, addresses: Iterable[RecipientAddress]) -> str:
    for address in addresses:
        plain = address.plain
        value = enforced_form_pattern(address).sub(lambda _m: plain, value)
    return value


def rewrite_headers(
    headers: Iterable[HeaderEntry],
    addresses: List[RecipientAddress],
) -> List[HeaderRewrite]:
    """
    Compute To/Cc header changes for the given recipients.

    Args:
        headers: Message headers in arrival order
        addresses: Enforced recipients whose delivery was allowed

    Returns:
        Rewrites for headers whose value actually changed, in header order
    """
    rewrites: List[HeaderRewrite] = []
    if not addresses:
        return rewrites

    occurrences: Dict[str, int] = {}
    for name, value in headers:
        key = name.lower()
        occurrences[key] = occurrences.get(key, 0) + 1
        if key not in REWRITABLE_HEADERS:
            continue

        new_value = rewrite_header_value(value, addresses)
        if new_value != value:
            rewrites.append(HeaderRewrite(name, occurrences[key], new_value))

    return rewrites
