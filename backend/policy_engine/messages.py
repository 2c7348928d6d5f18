"""
Header and Rejection Texts

Builds the X-TLS announcement and the texts returned with a 550 rejection.
"""

from typing import Iterable, List

X_TLS_HEADER = "X-TLS"

REJECT_CODE = "550"
REJECT_ENHANCED_CODE = "5.5.0"


def unique_in_order(items: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _quoted_list(domains: Iterable[str]) -> str:
    return '"' + '", "'.join(domains) + '"'


def format_x_tls_value(domains: Iterable[str]) -> str:
    """Value of the X-TLS header announcing secure delivery."""
    return "Secure delivery enabled to " + _quoted_list(domains)


def strict_reject_text(failed_domains: Iterable[str], info_url: str) -> str:
    """
    Rejection text when enforced TLS is impossible to some domains.

    Domains are listed once per failed recipient, in recipient order.
    """
    domains = list(failed_domains)
    noun = "domain" if len(domains) == 1 else "domains"
    return (
        f"Enforced TLS is not possible to the {noun} {_quoted_list(domains)}. "
        f"Mail was not delivered. "
        f"For more information, please see {info_url}"
    )


def unified_reject_text(info_url: str) -> str:
    """Rejection text when not every recipient can be reached over TLS."""
    return (
        "TLS was not possible to all recipients. "
        "Mail was not delivered. "
        f"For more information, please see {info_url}"
    )
