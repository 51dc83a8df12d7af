"""String similarity and name/domain normalization used by the matchers."""

from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity of two strings in [0, 1].

    Both inputs are trimmed and lower-cased first.  Identical strings
    (including two empty ones) score 1.0; one empty string against a
    non-empty one scores 0.0.  The function is symmetric.
    """
    left = a.strip().lower()
    right = b.strip().lower()

    if left == right:
        return 1.0
    if not left or not right:
        return 0.0

    return Levenshtein.normalized_similarity(left, right)


def normalize_name(name: str | None) -> str:
    """Lower-case, trim, drop punctuation and collapse whitespace."""
    if not name:
        return ""
    cleaned = _NON_WORD.sub("", name.lower().strip())
    return _WHITESPACE.sub(" ", cleaned)


def name_similarity(a: str | None, b: str | None) -> float:
    """Similarity of two names after ``normalize_name``; 0.0 if either is blank."""
    left = normalize_name(a)
    right = normalize_name(b)
    if not left or not right:
        return 0.0
    return similarity(left, right)


def extract_domain(url: str | None) -> str | None:
    """Bare host of *url*: scheme, ``www.``, path and port removed.

    >>> extract_domain("https://www.Example.com:8080/a/b")
    'example.com'
    """
    if not url:
        return None

    domain = re.sub(r"^https?://", "", url.strip(), flags=re.IGNORECASE)
    domain = re.sub(r"^www\.", "", domain, flags=re.IGNORECASE)
    domain = domain.split("/")[0].split(":")[0]
    return domain.lower() or None
