"""Name and website sanitization for uploaded node rows.

Turns a validated CSV row into a ``SanitizedRow``: canonical entity name,
cleaned node name, bare host name for the website, parsed list fields and
tags pulled from the free-text notes.  Everything here is pure; the
duplicate screen that feeds the advisory confidence score is passed in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from node_intake.models.enums import DATA_TYPES, PROTOCOLS
from node_intake.preprocessing.tags import extract_tags

# Checked in this order; each one is stripped when it is the trailing word
CORPORATE_SUFFIXES: tuple[str, ...] = (
    "ltd", "ltd.", "inc", "inc.", "corp", "corp.", "llc", "llc.",
    "gmbh", "sa", "s.a.", "bv", "b.v.", "ag", "plc", "pty",
    "limited", "incorporated", "corporation", "company", "co.", "co",
)

WEBSITE_ARTIFACTS: tuple[str, ...] = (
    ".com", ".net", ".org", ".io", ".co", "www.", "http://", "https://",
)

_SUFFIX_PATTERNS = [
    re.compile(rf"\b{re.escape(suffix)}$", re.IGNORECASE) for suffix in CORPORATE_SUFFIXES
]
_LIST_SEPARATORS = re.compile(r"[,;|]")


@dataclass
class SanitizedRow:
    """A validated CSV row after sanitization, ready for staging."""

    row_number: int
    node_name: str
    entity_name: str
    website: str
    node_category: str
    direction: str
    notes: str
    connect_targets: list[str]
    protocols_supported: list[str]
    data_types_supported: list[str]
    extracted_tags: list[str]
    original_node_name: str
    original_entity_name: str
    original_website: str
    potential_duplicates: list[str] = field(default_factory=list)
    lookup_failed: bool = False
    confidence_score: float = 0.0

    @property
    def original_data(self) -> dict[str, str]:
        return {
            "original_node_name": self.original_node_name,
            "original_entity_name": self.original_entity_name,
            "original_website": self.original_website,
        }


def strip_corporate_suffixes(name: str) -> str:
    """Remove trailing corporate suffixes (``Inc``, ``GmbH``, ...) in list order."""
    cleaned = name
    for pattern in _SUFFIX_PATTERNS:
        cleaned = pattern.sub("", cleaned).strip()
    return cleaned


def sanitize_entity_name(name: str) -> str:
    """Produce the canonical, title-cased form of a company name.

    ``"Cloudbeds Inc"`` -> ``"Cloudbeds"``, ``"www.siteminder.com"`` -> ``"Siteminder"``.
    """
    cleaned = strip_corporate_suffixes(name.strip().lower())

    for artifact in WEBSITE_ARTIFACTS:
        cleaned = cleaned.replace(artifact, "").strip()

    return " ".join(word[:1].upper() + word[1:] for word in cleaned.split(" ")).strip()


def sanitize_node_name(name: str) -> str:
    """Strip corporate suffixes only; product names keep their casing."""
    return strip_corporate_suffixes(name.strip())


def normalize_website(website: str) -> str:
    """Reduce a URL to its bare lower-case host.

    ``"https://www.Example.com/path/"`` -> ``"example.com"``.  Applying the
    function to its own output returns the same value.
    """
    normalized = website.strip().lower()
    normalized = re.sub(r"^https?://", "", normalized)
    normalized = re.sub(r"^www\.", "", normalized)
    normalized = re.sub(r"/$", "", normalized)

    match = re.match(r"^[^/]+", normalized)
    return match.group(0) if match else normalized


def parse_list_field(value: str | None) -> list[str]:
    """Split a ``,``/``;``/``|`` separated cell into trimmed, non-empty items."""
    if not value or not value.strip():
        return []
    return [item.strip() for item in _LIST_SEPARATORS.split(value) if item.strip()]


def calculate_confidence_score(row: SanitizedRow) -> float:
    """Advisory data-quality score shown to reviewers, clamped to [0, 1]."""
    score = 1.0

    if row.potential_duplicates:
        score -= 0.3

    if "." in row.website:
        score += 0.1

    if len(row.entity_name) > 3 and "unknown" not in row.entity_name.lower():
        score += 0.1

    if row.extracted_tags:
        score += 0.05 * min(len(row.extracted_tags), 4)

    return max(0.0, min(1.0, score))


def sanitize_row(row: dict[str, str], row_number: int) -> SanitizedRow:
    """Build a ``SanitizedRow`` from a validated CSV row.

    Unknown protocol and data-type tokens are dropped silently.  The
    confidence score is left at 0 until the duplicate screen has run, see
    ``calculate_confidence_score``.
    """
    notes = row.get("notes", "")
    return SanitizedRow(
        row_number=row_number,
        node_name=sanitize_node_name(row["node_name"]),
        entity_name=sanitize_entity_name(row["entity_name"]),
        website=normalize_website(row["website"]),
        node_category=row["node_category"],
        direction=row["direction"],
        notes=notes,
        connect_targets=parse_list_field(row.get("connect_targets")),
        protocols_supported=[
            p for p in parse_list_field(row.get("protocols_supported")) if p in PROTOCOLS
        ],
        data_types_supported=[
            d for d in parse_list_field(row.get("data_types_supported")) if d in DATA_TYPES
        ],
        extracted_tags=extract_tags(notes),
        original_node_name=row["node_name"],
        original_entity_name=row["entity_name"],
        original_website=row["website"],
    )
