"""Mention extraction from chat message text."""

from __future__ import annotations

import re

from marias.envelopes import is_valid_user_id

# "@" followed by one or more word characters, greedy
MENTION_RE = re.compile(r"@(\w+)")


def extract_mention_tokens(content: str) -> list[str]:
    """Return the identifiers after each ``@`` in order of appearance.

    >>> extract_mention_tokens("hi @ana and @7, cc @ana")
    ['ana', '7', 'ana']
    """
    return MENTION_RE.findall(content)


def unique_in_order(ids: list[int]) -> list[int]:
    """Drop repeats, keeping the first occurrence."""
    seen: set[int] = set()
    out = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            out.append(i)
    return out


def numeric_user_id(token: str) -> int | None:
    """Read a token such as ``7`` as a user id, else None.

    Only ASCII digits count: ``\\w`` also matches characters like "²" that
    ``int()`` refuses. Values too large for an id column are treated as
    unresolvable.

    >>> numeric_user_id("7"), numeric_user_id("²"), numeric_user_id("ana")
    (7, None, None)
    """
    if not (token.isascii() and token.isdecimal()):
        return None
    value = int(token)
    return value if is_valid_user_id(value) else None
