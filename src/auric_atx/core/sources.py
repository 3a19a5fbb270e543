"""Trade source tags and source filters.

A source tag identifies the platform a trade came from (``mock``,
``ctrader:123``).  Filters are parsed from the ``sources`` CSV query
parameter and match a tag when they are equal to it, when they are its
platform prefix (``ctrader`` matches ``ctrader:123``), or when the filter
is the ``live`` token, which matches every non-mock source.
"""

from __future__ import annotations

from collections.abc import Iterable

MOCK_SOURCE = "mock"
LIVE_TOKEN = "live"


def parse_sources(*raw: str | None) -> list[str]:
    """Merge CSV source parameters into a sorted, de-duplicated filter list.

    An empty result means "all sources".
    """
    tokens: set[str] = set()
    for value in raw:
        if not value:
            continue
        for part in value.split(","):
            part = part.strip()
            if part:
                tokens.add(part)
    return sorted(tokens)


def source_matches(tag: str, filters: Iterable[str] | None) -> bool:
    """Whether a trade's source tag passes the filter list."""
    if not filters:
        return True
    for f in filters:
        if f == tag:
            return True
        if f == LIVE_TOKEN and tag != MOCK_SOURCE:
            return True
        if ":" not in f and tag.startswith(f + ":"):
            return True
    return False
