"""Wildcard pattern matching between subscription patterns and topics/events.

Two wildcards are recognised:

``*``
    Matches any run of characters (including the empty run) at its position.
``#``
    Matches any run of characters as well, but is only accepted at the very
    start or the very end of a pattern (or as the whole pattern). Placement
    is checked by :func:`validate_pattern` when a subscription is created,
    never at match time.

Matching is case-insensitive, for literal and wildcard patterns alike::

    >>> matches("payments.order.*", "payments.order.created")
    True
    >>> matches("#.order.#", "x.order.y")
    True
    >>> matches("orderCreated", "ordercreated")
    True
"""

from __future__ import annotations

import re
from functools import lru_cache

from .exceptions import InvalidPatternError

WILDCARDS = ("*", "#")
_WILDCARD_SPLIT = re.compile(r"([*#])")


def has_wildcards(pattern: str) -> bool:
    """Return True if *pattern* contains ``*`` or ``#``."""
    return any(w in pattern for w in WILDCARDS)


def is_valid_pattern(pattern: str) -> bool:
    """Return True if every ``#`` sits at the first or last position."""
    last = len(pattern) - 1
    return all(i in (0, last) for i, ch in enumerate(pattern) if ch == "#")


def validate_pattern(pattern: str, field: str = "pattern") -> str:
    """Return *pattern* unchanged or raise :class:`InvalidPatternError`."""
    if not is_valid_pattern(pattern):
        raise InvalidPatternError(field, pattern)
    return pattern


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a case-folded wildcard pattern into an anchored regex.

    Literal segments are escaped; each wildcard becomes ``.*``. Results are
    memoized because the same subscription patterns are evaluated against
    every inbound message. Callers fold both sides with :meth:`str.casefold`.
    """
    parts = _WILDCARD_SPLIT.split(pattern)
    regex = "".join(".*" if part in WILDCARDS else re.escape(part) for part in parts)
    return re.compile(regex, re.DOTALL)


def matches(pattern: str | None, value: str | None) -> bool:
    """Return True if *value* satisfies the wildcard *pattern*."""
    if pattern is None or value is None:
        return False
    if not has_wildcards(pattern):
        return pattern.casefold() == value.casefold()
    return compile_pattern(pattern.casefold()).fullmatch(value.casefold()) is not None
