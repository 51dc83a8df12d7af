"""Mapping of expected operation outcomes onto HTTP errors."""

from __future__ import annotations

from fastapi import HTTPException

from node_intake.results import OperationError, OutcomeKind

STATUS_BY_KIND = {
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.CONFLICT: 409,
    OutcomeKind.VALIDATION_FAILED: 422,
    OutcomeKind.ERROR: 500,
}


def raise_for_outcome(outcome: OperationError) -> None:
    raise HTTPException(
        status_code=STATUS_BY_KIND[outcome.kind],
        detail={"kind": outcome.kind.value, "error": outcome.message},
    )
