"""CSV batch intake: parse, validate, sanitize, screen and stage.

The batch log is created first so every upload, even one that fails to
parse, leaves an inspectable record.  Row work (sanitizing and the quick
duplicate screen) runs in worker threads, at most ``max_concurrency`` at a
time; staging rows and the batch counters are then written once, in a single
transaction.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from node_intake.audit.sink import BATCH_UPLOAD, AuditSink
from node_intake.batches.lifecycle import create_batch, get_owned_batch, utcnow
from node_intake.errors import BatchProcessingError, DuplicateLookupError, ParseError
from node_intake.ingestion.csv_parser import parse_csv_content
from node_intake.ingestion.validator import RowValidationError, validate_rows
from node_intake.models.enums import BatchStatus
from node_intake.models.staging_node import StagingNode
from node_intake.preprocessing.sanitizer import (
    SanitizedRow,
    calculate_confidence_score,
    sanitize_row,
)
from node_intake.registry.reader import (
    RegistryReader,
    RegistrySnapshot,
    find_potential_duplicates,
    load_registry_snapshot,
)
from node_intake.staging.store import add_staging_nodes

logger = structlog.get_logger()


def default_batch_name(today: dt.date | None = None) -> str:
    today = today or dt.date.today()
    return f"Import_{today.isoformat()}"


@dataclass
class BatchProcessingResult:
    """Outcome of one CSV upload.

    ``invalid_rows`` counts rows, not errors: a row with two bad fields
    contributes two ``validation_errors`` but one invalid row.
    """

    batch_id: str
    total_rows: int
    valid_rows: int
    invalid_rows: int
    staging_nodes: list[StagingNode] = field(default_factory=list)
    validation_errors: list[RowValidationError] = field(default_factory=list)
    duplicate_warnings: int = 0
    lookup_failures: int = 0


class BatchProcessor:
    """Turn uploaded CSV text into a staged batch.

    Args:
        session_factory: Session factory for the batch and staging writes.
        registry: Read access to the owner's committed registry.
        audit: Audit sink notified after a successful upload.
        max_concurrency: Upper bound on rows sanitized/screened at once.
        timeout_seconds: Budget for the whole batch.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: RegistryReader,
        audit: AuditSink,
        max_concurrency: int = 8,
        timeout_seconds: float = 540.0,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry
        self.audit = audit
        self.max_concurrency = max_concurrency
        self.timeout_seconds = timeout_seconds

    async def process_batch(
        self, csv_content: str, batch_name: str | None, owner_id: str
    ) -> BatchProcessingResult:
        """Stage every valid row of *csv_content* under a new batch.

        Raises:
            ParseError: The CSV is unusable; the batch is marked ``error``
                and its id is attached to the exception.
            BatchProcessingError: Unexpected failure or timeout; the batch
                is marked ``error`` with a partial report.
        """
        name = batch_name or default_batch_name()
        async with self.session_factory() as session, session.begin():
            batch = await create_batch(session, name, owner_id)
        batch_id = batch.id
        log = logger.bind(batch_id=batch_id, owner_id=owner_id)
        log.info("batch_started", batch_name=name)

        validation_errors: list[RowValidationError] = []
        try:
            async with asyncio.timeout(self.timeout_seconds):
                result = await self._run(csv_content, batch_id, owner_id, validation_errors, log)
        except ParseError as exc:
            log.warning("batch_parse_failed", error=str(exc))
            await self._mark_error(batch_id, {"error": str(exc)}, 0)
            raise ParseError(str(exc), batch_id=batch_id) from exc
        except TimeoutError as exc:
            message = f"Batch timed out after {self.timeout_seconds}s"
            log.error("batch_timed_out", timeout_seconds=self.timeout_seconds)
            await self._mark_error(
                batch_id, _partial_report(message, validation_errors), _row_count(validation_errors)
            )
            raise BatchProcessingError(message, batch_id) from exc
        except Exception as exc:
            log.error("batch_failed", error=str(exc), exc_info=True)
            await self._mark_error(
                batch_id, _partial_report(str(exc), validation_errors), _row_count(validation_errors)
            )
            raise BatchProcessingError(f"Batch processing failed: {exc}", batch_id) from exc

        log.info(
            "batch_processed",
            total_rows=result.total_rows,
            valid_rows=result.valid_rows,
            invalid_rows=result.invalid_rows,
            duplicate_warnings=result.duplicate_warnings,
            lookup_failures=result.lookup_failures,
        )
        await self.audit.record(
            BATCH_UPLOAD,
            owner_id,
            "batch",
            batch_id,
            {
                "batch_name": name,
                "total_rows": result.total_rows,
                "valid_rows": result.valid_rows,
                "invalid_rows": result.invalid_rows,
            },
        )
        return result

    async def _run(
        self,
        csv_content: str,
        batch_id: str,
        owner_id: str,
        validation_errors: list[RowValidationError],
        log: structlog.stdlib.BoundLogger,
    ) -> BatchProcessingResult:
        rows = parse_csv_content(csv_content)
        outcome = validate_rows(rows)
        validation_errors.extend(outcome.errors)

        snapshot: RegistrySnapshot | None
        try:
            snapshot = await load_registry_snapshot(self.registry, owner_id)
        except DuplicateLookupError:
            snapshot = None

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def prepare(row_number: int, row: dict[str, str]) -> SanitizedRow:
            # The screen compares against the whole snapshot; keep it off the event loop
            async with semaphore:
                return await asyncio.to_thread(_prepare_row, row, row_number, snapshot)

        sanitized = await asyncio.gather(*(prepare(n, row) for n, row in outcome.valid_rows))

        duplicate_warnings = sum(1 for row in sanitized if row.potential_duplicates)
        lookup_failures = sum(1 for row in sanitized if row.lookup_failed)
        if lookup_failures:
            log.warning("duplicate_screen_unavailable", lookup_failures=lookup_failures)

        status = BatchStatus.PROCESSED if sanitized else BatchStatus.ERROR
        async with self.session_factory() as session, session.begin():
            staging_nodes = add_staging_nodes(session, sanitized, batch_id, owner_id)
            batch = await get_owned_batch(session, batch_id, owner_id)
            now = utcnow()
            batch.status = status.value
            batch.total_records = len(rows)
            batch.processed_records = len(sanitized)
            batch.error_records = outcome.invalid_row_count
            batch.duplicate_warnings = duplicate_warnings
            batch.error_report = (
                {"validation_errors": [_error_dict(e) for e in outcome.errors]} if outcome.errors else None
            )
            if not sanitized:
                batch.error_report = {**(batch.error_report or {}), "error": "No valid rows to stage"}
            batch.updated_at = now
            batch.completed_at = now

        return BatchProcessingResult(
            batch_id=batch_id,
            total_rows=len(rows),
            valid_rows=len(sanitized),
            invalid_rows=outcome.invalid_row_count,
            staging_nodes=staging_nodes,
            validation_errors=list(outcome.errors),
            duplicate_warnings=duplicate_warnings,
            lookup_failures=lookup_failures,
        )

    async def _mark_error(self, batch_id: str, report: dict, error_records: int) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                batch = await get_owned_batch(session, batch_id, None)
                now = utcnow()
                batch.status = BatchStatus.ERROR.value
                batch.error_report = report
                batch.error_records = error_records
                batch.updated_at = now
                batch.completed_at = now
        except Exception as exc:
            logger.error("batch_error_not_recorded", batch_id=batch_id, error=str(exc))


def _prepare_row(row: dict[str, str], row_number: int, snapshot: RegistrySnapshot | None) -> SanitizedRow:
    return _screen_row(sanitize_row(row, row_number), snapshot)


def _screen_row(row: SanitizedRow, snapshot: RegistrySnapshot | None) -> SanitizedRow:
    """Attach the quick duplicate screen and the advisory confidence score."""
    if snapshot is None:
        row.lookup_failed = True
    else:
        try:
            row.potential_duplicates = find_potential_duplicates(row.node_name, row.entity_name, snapshot)
        except Exception as exc:
            logger.warning("duplicate_screen_failed", row_number=row.row_number, error=str(exc))
            row.lookup_failed = True
    row.confidence_score = calculate_confidence_score(row)
    return row


def _error_dict(error: RowValidationError) -> dict:
    return {"row": error.row, "field": error.field, "error": error.error, "value": error.value}


def _partial_report(message: str, errors: list[RowValidationError]) -> dict:
    return {"error": message, "validation_errors": [_error_dict(e) for e in errors]}


def _row_count(errors: list[RowValidationError]) -> int:
    return len({e.row for e in errors})
