"""Batch lifecycle: creation, status transitions, listing and rollback.

Status moves forward only::

    pending -> processed | error | cancelled
    processed -> cancelled
    any state except rolled_back -> rolled_back  (terminal)

``rolled_back`` is reachable only through ``rollback_batch``, which
deletes the batch's staging rows and stamps who rolled it back in one
transaction.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from uuid import uuid4

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from node_intake.audit.sink import BATCH_ROLLBACK, BATCH_STATUS_UPDATE, AuditSink
from node_intake.errors import RollbackError
from node_intake.models.batch_log import BatchLog
from node_intake.models.enums import BatchStatus, enum_values
from node_intake.models.staging_node import StagingNode
from node_intake.results import OperationError, conflict, not_found, validation_failed
from node_intake.staging.store import delete_staging_nodes, list_staging_nodes

logger = structlog.get_logger()

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    BatchStatus.PENDING.value: frozenset(
        {
            BatchStatus.PROCESSED.value,
            BatchStatus.ERROR.value,
            BatchStatus.CANCELLED.value,
            BatchStatus.ROLLED_BACK.value,
        }
    ),
    BatchStatus.PROCESSED.value: frozenset({BatchStatus.CANCELLED.value, BatchStatus.ROLLED_BACK.value}),
    BatchStatus.ERROR.value: frozenset({BatchStatus.ROLLED_BACK.value}),
    BatchStatus.CANCELLED.value: frozenset({BatchStatus.ROLLED_BACK.value}),
    BatchStatus.ROLLED_BACK.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def utcnow() -> dt.datetime:
    """Naive UTC, matching the timezone-less timestamp columns."""
    return dt.datetime.now(dt.UTC).replace(tzinfo=None)


@dataclass
class RollbackResult:
    success: bool
    staging_nodes_deleted: int


async def create_batch(
    session: AsyncSession,
    batch_name: str,
    owner_id: str,
    source_type: str = "csv_upload",
) -> BatchLog:
    """Add a new, empty ``pending`` batch to *session* and flush it."""
    batch = BatchLog(
        id=uuid4().hex,
        batch_name=batch_name,
        source_type=source_type,
        created_by=owner_id,
        owner_id=owner_id,
        status=BatchStatus.PENDING.value,
        total_records=0,
        processed_records=0,
        error_records=0,
        duplicate_warnings=0,
    )
    session.add(batch)
    await session.flush()
    return batch


async def get_owned_batch(session: AsyncSession, batch_id: str, owner_id: str | None) -> BatchLog | None:
    """Load a batch, or ``None`` if it does not exist or belongs to someone else."""
    stmt = sa.select(BatchLog).where(BatchLog.id == batch_id)
    if owner_id is not None:
        stmt = stmt.where(BatchLog.owner_id == owner_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


class BatchManager:
    """Batch operations that span their own transactions.

    Every write commits before its audit entry is recorded.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        audit: AuditSink,
        list_limit: int = 100,
    ) -> None:
        self.session_factory = session_factory
        self.audit = audit
        self.list_limit = list_limit

    async def create_batch(
        self, batch_name: str, owner_id: str, source_type: str = "csv_upload"
    ) -> BatchLog:
        async with self.session_factory() as session, session.begin():
            batch = await create_batch(session, batch_name, owner_id, source_type)
        logger.info("batch_created", batch_id=batch.id, owner_id=owner_id, source_type=source_type)
        return batch

    async def get_batch_status(self, batch_id: str, owner_id: str | None = None) -> BatchLog | OperationError:
        async with self.session_factory() as session:
            batch = await get_owned_batch(session, batch_id, owner_id)
        if batch is None:
            return not_found(f"Batch {batch_id} not found")
        return batch

    async def list_batches(self, owner_id: str, limit: int | None = None) -> list[BatchLog]:
        """Most recent batches of *owner_id* first."""
        async with self.session_factory() as session:
            result = await session.execute(
                sa.select(BatchLog)
                .where(BatchLog.owner_id == owner_id)
                .order_by(BatchLog.created_at.desc(), BatchLog.id.desc())
                .limit(limit or self.list_limit)
            )
            return list(result.scalars().all())

    async def get_staging_nodes(self, batch_id: str, owner_id: str) -> list[StagingNode] | OperationError:
        async with self.session_factory() as session:
            if await get_owned_batch(session, batch_id, owner_id) is None:
                return not_found(f"Batch {batch_id} not found")
            return await list_staging_nodes(session, batch_id, owner_id)

    async def update_batch_status(
        self,
        batch_id: str,
        owner_id: str,
        status: str,
        processing_notes: str | None = None,
    ) -> BatchLog | OperationError:
        """Operator-driven status change, subject to the forward-only rules."""
        if status not in enum_values(BatchStatus):
            return validation_failed(f"Unknown batch status: {status}")
        if status == BatchStatus.ROLLED_BACK.value:
            return validation_failed("Batches can only be rolled back through rollback")

        async with self.session_factory() as session, session.begin():
            batch = await get_owned_batch(session, batch_id, owner_id)
            if batch is None:
                return not_found(f"Batch {batch_id} not found")
            previous = batch.status
            if not can_transition(previous, status):
                return conflict(f"Cannot move batch from {previous} to {status}")

            now = utcnow()
            batch.status = status
            batch.processing_notes = processing_notes
            batch.updated_at = now
            if batch.completed_at is None:
                batch.completed_at = now

        logger.info("batch_status_updated", batch_id=batch_id, previous=previous, status=status)
        await self.audit.record(
            BATCH_STATUS_UPDATE,
            owner_id,
            "batch",
            batch_id,
            {"previous_status": previous, "status": status, "processing_notes": processing_notes},
        )
        return batch

    async def rollback_batch(self, batch_id: str, owner_id: str) -> RollbackResult | OperationError:
        """Delete every staging row of the batch and mark it ``rolled_back``.

        Returns:
            ``RollbackResult`` on success, a ``not_found`` outcome for an
            unknown or foreign batch, a ``conflict`` outcome for a batch
            that was already rolled back.

        Raises:
            RollbackError: If the store fails mid-rollback.  Nothing was
                changed; the failure is noted in ``error_report``.
        """
        log = logger.bind(batch_id=batch_id, owner_id=owner_id)
        try:
            async with self.session_factory() as session, session.begin():
                batch = await get_owned_batch(session, batch_id, owner_id)
                if batch is None:
                    return not_found(f"Batch {batch_id} not found")
                if not can_transition(batch.status, BatchStatus.ROLLED_BACK.value):
                    return conflict(f"Batch {batch_id} is already {batch.status}")

                deleted = await delete_staging_nodes(session, batch_id)
                now = utcnow()
                batch.status = BatchStatus.ROLLED_BACK.value
                batch.rollback_at = now
                batch.rollback_by = owner_id
                batch.updated_at = now
        except Exception as exc:
            log.error("rollback_failed", error=str(exc), exc_info=True)
            await self._record_rollback_error(batch_id, str(exc))
            raise RollbackError(f"Rollback of batch {batch_id} failed: {exc}", batch_id) from exc

        log.info("batch_rolled_back", staging_nodes_deleted=deleted)
        await self.audit.record(
            BATCH_ROLLBACK, owner_id, "batch", batch_id, {"staging_nodes_deleted": deleted}
        )
        return RollbackResult(success=True, staging_nodes_deleted=deleted)

    async def _record_rollback_error(self, batch_id: str, message: str) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                batch = await get_owned_batch(session, batch_id, None)
                if batch is not None:
                    batch.error_report = {**(batch.error_report or {}), "rollback_error": message}
                    batch.updated_at = utcnow()
        except Exception as exc:
            logger.warning("rollback_error_not_recorded", batch_id=batch_id, error=str(exc))
