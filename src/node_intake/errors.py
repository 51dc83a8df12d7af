"""Exception types for failures that abort an operation.

Expected per-row and per-decision outcomes (validation problems, missing
targets, already-decided rows) are *returned* as values, see
``node_intake.results``; only the failures below are raised.
"""

from __future__ import annotations


class NodeIntakeError(Exception):
    """Base class for node intake failures."""


class ParseError(NodeIntakeError):
    """The uploaded CSV cannot be parsed (missing headers, no data rows).

    ``batch_id`` is set once the failing upload has been recorded as an
    ``error`` batch.
    """

    def __init__(self, message: str, batch_id: str | None = None) -> None:
        super().__init__(message)
        self.batch_id = batch_id


class DuplicateLookupError(NodeIntakeError):
    """The registry could not be queried for duplicate candidates."""


class BatchProcessingError(NodeIntakeError):
    """Unrecoverable failure (or timeout) while processing a batch.

    The batch has already been marked ``error`` when this is raised.
    """

    def __init__(self, message: str, batch_id: str) -> None:
        super().__init__(message)
        self.batch_id = batch_id


class RollbackError(NodeIntakeError):
    """Rollback failed; staging rows and batch status were left unchanged."""

    def __init__(self, message: str, batch_id: str) -> None:
        super().__init__(message)
        self.batch_id = batch_id
