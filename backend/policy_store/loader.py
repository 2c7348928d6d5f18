"""
Policy Map Loaders

Reads a Postfix-style TLS policy table into a plain dictionary.

Supported map specifiers:
- texthash:/path  - Postfix text table, one "domain policy" per line
- dbm:/path       - key/value database in a format the dbm module can open

Postfix hash: and btree: tables are Berkeley DB files and are not read
here; point the filter at the source text table instead.
"""

import dbm
import logging
from pathlib import Path
from typing import Dict, Tuple

from .exceptions import PolicyMapFormatError, PolicyStoreUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_MAP_TYPE = "texthash"
MAP_TYPES = frozenset({"dbm", "texthash"})
BERKELEY_DB_TYPES = frozenset({"hash", "btree"})


def split_map_spec(spec: str) -> Tuple[str, str]:
    """
    Split a map specifier into (type, path).

    A bare path without a type prefix is treated as a text table.
    """
    map_type, sep, path = spec.partition(":")
    if not sep:
        return DEFAULT_MAP_TYPE, spec
    return map_type.strip().lower(), path.strip()


def _decode(raw: bytes) -> str:
    # Postfix stores keys and values with a trailing NUL
    return raw.decode("utf-8", errors="replace").rstrip("\x00")


def load_dbm_map(path: Path) -> Dict[str, str]:
    """Read every key/value pair from a dbm-compatible database."""
    kind = dbm.whichdb(str(path))
    if kind is None:
        raise PolicyStoreUnavailableError(f"Policy database not found: {path}")
    if not kind:
        raise PolicyStoreUnavailableError(
            f"Policy database {path} is not in a format the dbm module can read"
        )

    entries: Dict[str, str] = {}
    try:
        with dbm.open(str(path), "r") as db:
            for key in db.keys():
                entries[_decode(key)] = _decode(db[key])
    except dbm.error as e:
        raise PolicyStoreUnavailableError(f"Cannot open policy database {path}: {e}") from e

    return entries


def load_text_map(path: Path) -> Dict[str, str]:
    """
    Read a Postfix text table.

    Lines starting with whitespace continue the previous entry, lines whose
    first non-blank character is '#' are comments. A later duplicate key
    overrides an earlier one.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyStoreUnavailableError(f"Cannot read policy table {path}: {e}") from e

    logical_lines = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if line[0].isspace():
            if not logical_lines:
                raise PolicyMapFormatError(
                    f"{path}:{lineno}: continuation line without a preceding entry"
                )
            prev_lineno, prev = logical_lines[-1]
            logical_lines[-1] = (prev_lineno, f"{prev} {stripped}")
        else:
            logical_lines.append((lineno, stripped))

    entries: Dict[str, str] = {}
    for lineno, line in logical_lines:
        parts = line.split(None, 1)
        if len(parts) != 2:
            raise PolicyMapFormatError(f"{path}:{lineno}: entry without a policy value")
        entries[parts[0]] = parts[1]

    return entries


def load_policy_map(spec: str) -> Dict[str, str]:
    """
    Load the policy table named by a map specifier.

    Args:
        spec: Map specifier such as "texthash:/etc/postfix/tls_policy"

    Returns:
        Mapping of domain to policy string

    Raises:
        PolicyMapFormatError: Unknown map type or unparsable table
        PolicyStoreUnavailableError: Table missing or unreadable
    """
    map_type, raw_path = split_map_spec(spec)
    if map_type in BERKELEY_DB_TYPES:
        raise PolicyMapFormatError(
            f"{map_type}: maps are Berkeley DB tables; use texthash: on the source table"
        )
    if map_type not in MAP_TYPES:
        raise PolicyMapFormatError(f"Unsupported policy map type: {map_type}")

    path = Path(raw_path)
    if map_type == "texthash":
        entries = load_text_map(path)
    else:
        entries = load_dbm_map(path)

    logger.info("Loaded %d policy entries from %s:%s", len(entries), map_type, path)
    return entries
