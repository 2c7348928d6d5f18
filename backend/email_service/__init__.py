from .address import (
    AddressKind,
    RecipientAddress,
    extract_enforced_token,
    parse_recipient,
)
from .header_rewrite import HeaderEntry, HeaderRewrite, rewrite_header_value, rewrite_headers

__all__ = [
    "AddressKind",
    "RecipientAddress",
    "extract_enforced_token",
    "parse_recipient",
    "HeaderEntry",
    "HeaderRewrite",
    "rewrite_header_value",
    "rewrite_headers",
]
