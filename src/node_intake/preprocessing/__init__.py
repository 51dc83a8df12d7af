"""Sanitization of uploaded rows: names, websites, list fields and note tags."""

from node_intake.preprocessing.sanitizer import (
    SanitizedRow,
    calculate_confidence_score,
    normalize_website,
    parse_list_field,
    sanitize_entity_name,
    sanitize_node_name,
    sanitize_row,
    strip_corporate_suffixes,
)
from node_intake.preprocessing.tags import extract_tags

__all__ = [
    "calculate_confidence_score",
    "extract_tags",
    "normalize_website",
    "parse_list_field",
    "SanitizedRow",
    "sanitize_entity_name",
    "sanitize_node_name",
    "sanitize_row",
    "strip_corporate_suffixes",
]
