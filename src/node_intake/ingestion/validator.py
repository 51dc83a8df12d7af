"""Per-row validation of parsed CSV rows.

Violations are collected, never raised: a row with at least one problem is
left out of staging and every problem is reported back to the uploader.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from node_intake.models.enums import (
    DIRECTIONS,
    NODE_CATEGORIES,
    Direction,
    NodeCategory,
    enum_values,
)

REQUIRED_FIELDS = ("node_name", "entity_name", "website")

# Header row occupies line 1, first data row is line 2
ROW_OFFSET = 2


@dataclass(frozen=True)
class RowValidationError:
    """One field-level problem in one CSV row."""

    row: int
    field: str
    error: str
    value: object


@dataclass
class ValidationOutcome:
    """Valid rows (with their 1-indexed file row number) and collected errors."""

    valid_rows: list[tuple[int, dict[str, str]]] = field(default_factory=list)
    errors: list[RowValidationError] = field(default_factory=list)
    invalid_row_count: int = 0


def validate_row(row: dict[str, str], row_number: int) -> list[RowValidationError]:
    """Return every violation found in *row* (empty list when valid)."""
    errors: list[RowValidationError] = []

    for name in REQUIRED_FIELDS:
        value = row.get(name)
        if not (value or "").strip():
            errors.append(RowValidationError(row_number, name, "Required field", value))

    category = row.get("node_category")
    if category not in NODE_CATEGORIES:
        errors.append(
            RowValidationError(
                row_number,
                "node_category",
                f"Invalid category. Must be one of: {', '.join(enum_values(NodeCategory))}",
                category,
            )
        )

    direction = row.get("direction")
    if direction not in DIRECTIONS:
        errors.append(
            RowValidationError(
                row_number,
                "direction",
                f"Invalid direction. Must be one of: {', '.join(enum_values(Direction))}",
                direction,
            )
        )

    return errors


def validate_rows(rows: list[dict[str, str]]) -> ValidationOutcome:
    """Split parsed rows into valid rows and collected validation errors."""
    outcome = ValidationOutcome()
    for index, row in enumerate(rows):
        row_number = index + ROW_OFFSET
        row_errors = validate_row(row, row_number)
        if row_errors:
            outcome.errors.extend(row_errors)
            outcome.invalid_row_count += 1
            continue
        outcome.valid_rows.append((row_number, row))
    return outcome
