"""Explicit outcome kinds for operations that can fail in expected ways."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class OutcomeKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION_FAILED = "validation_failed"
    ERROR = "error"


@dataclass(frozen=True)
class OperationError:
    kind: OutcomeKind
    message: str


def not_found(message: str) -> OperationError:
    return OperationError(OutcomeKind.NOT_FOUND, message)


def conflict(message: str) -> OperationError:
    return OperationError(OutcomeKind.CONFLICT, message)


def validation_failed(message: str) -> OperationError:
    return OperationError(OutcomeKind.VALIDATION_FAILED, message)
