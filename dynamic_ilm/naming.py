"""Key validation and the resource names derived from a key."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from .exceptions import InvalidKey

UNIT_DATE_FORMAT = "%Y.%m.%d"
SEQUENCE_WIDTH = 6
MAX_NAME_BYTES = 255

# Elasticsearch index/alias naming rules.
FORBIDDEN_CHARS = frozenset('\\/*?"<>|, #:')
FORBIDDEN_PREFIXES = ("-", "_", "+")

# Longest name derived from a key: "<key>-yyyy.mm.dd-000001".
_UNIT_SUFFIX_BYTES = len("-0000.00.00-") + SEQUENCE_WIDTH


def validate_key(key: object) -> str:
    """Return *key* unchanged if every resource name derived from it is legal.

    Raises:
        InvalidKey: with the first rule the key breaks.
    """
    if not isinstance(key, str) or not key:
        raise InvalidKey(key, "must be a non-empty string")
    if key in (".", ".."):
        raise InvalidKey(key, "'.' and '..' are reserved")
    if key != key.lower():
        raise InvalidKey(key, "must be lowercase")
    if key.startswith(FORBIDDEN_PREFIXES):
        raise InvalidKey(key, "must not start with '-', '_' or '+'")

    bad = sorted(set(key) & FORBIDDEN_CHARS)
    if bad:
        raise InvalidKey(key, f"contains forbidden characters {''.join(bad)!r}")

    size = len(key.encode("utf-8"))
    if size > MAX_NAME_BYTES:
        raise InvalidKey(key, f"is {size} bytes, limit is {MAX_NAME_BYTES}")
    if size + _UNIT_SUFFIX_BYTES > MAX_NAME_BYTES:
        raise InvalidKey(key, "too long to derive dated write unit names")
    return key


@dataclass(frozen=True)
class ResourceNames:
    """Policy, template and alias names for one rollover group."""

    key: str
    policy_name: str
    template_name: str
    alias_name: str

    @classmethod
    def for_key(cls, key: str) -> ResourceNames:
        return cls(
            key=key,
            policy_name=f"{key}-ilm-policy",
            template_name=f"logstash-{key}",
            alias_name=key,
        )

    @property
    def index_pattern(self) -> str:
        return f"{self.alias_name}-*"

    @property
    def policy_cache_key(self) -> str:
        return f"policy:{self.policy_name}"

    @property
    def template_cache_key(self) -> str:
        return f"template:{self.template_name}"


def unit_name(alias: str, day: date, sequence: int) -> str:
    """``nginx`` + 2025-01-01 + 1 -> ``nginx-2025.01.01-000001``."""
    return f"{alias}-{day.strftime(UNIT_DATE_FORMAT)}-{sequence:0{SEQUENCE_WIDTH}d}"


def unit_pattern(alias: str, day: date) -> str:
    return f"{alias}-{day.strftime(UNIT_DATE_FORMAT)}-*"


def parse_unit_name(alias: str, name: str) -> Optional[tuple[date, int]]:
    """Split a write unit name into its embedded date and sequence number.

    Returns ``None`` when *name* does not follow ``<alias>-<yyyy.mm.dd>-<seq>``.
    """
    match = re.fullmatch(
        rf"{re.escape(alias)}-(\d{{4}}\.\d{{2}}\.\d{{2}})-(\d+)",
        name,
    )
    if match is None:
        return None
    try:
        day = datetime.strptime(match.group(1), UNIT_DATE_FORMAT).date()
    except ValueError:
        return None
    return day, int(match.group(2))


def next_sequence(alias: str, day: date, existing: Iterable[str]) -> int:
    """max(sequence) + 1 over the units of *alias* dated *day*, or 1 if there are none."""
    sequences = []
    for name in existing:
        parsed = parse_unit_name(alias, name)
        if parsed is not None and parsed[0] == day:
            sequences.append(parsed[1])
    return max(sequences, default=0) + 1


def utc_today() -> date:
    """Calendar day used for unit names; Elasticsearch date math is UTC."""
    return datetime.now(timezone.utc).date()
