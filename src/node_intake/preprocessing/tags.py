"""Keyword tags pulled from the free-text ``notes`` column."""

from __future__ import annotations

import re

TECH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(rf"\b{keyword}\b")
    for keyword in (
        "pms",
        "crs",
        "channel manager",
        "booking engine",
        "ota",
        "api",
        "xml",
        "json",
        "soap",
        "rest",
    )
)

COUNT_PATTERN = re.compile(r"\d+\s*(?:hotels?|properties|rooms?)")

CONNECTIVITY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"connected to \w+"),
    re.compile(r"integrates with \w+"),
    re.compile(r"partners with \w+"),
)


def extract_tags(notes: str | None) -> list[str]:
    """Extract technology, size and connectivity mentions from *notes*.

    Matching is done on the lower-cased text.  Duplicates are removed while
    keeping first-seen order.

    >>> extract_tags("cloud PMS, 5000 hotels")
    ['pms', '5000 hotels']
    """
    if not notes:
        return []

    text = notes.lower()
    tags: list[str] = []

    for pattern in TECH_PATTERNS:
        match = pattern.search(text)
        if match:
            tags.append(match.group(0))

    tags.extend(COUNT_PATTERN.findall(text))

    for pattern in CONNECTIVITY_PATTERNS:
        tags.extend(pattern.findall(text))

    return list(dict.fromkeys(tags))
