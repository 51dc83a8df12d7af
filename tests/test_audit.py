"""Tests for the fire-and-forget audit sink."""

from sqlalchemy import select

from node_intake.audit.sink import SqlAuditSink
from node_intake.batches.lifecycle import BatchManager
from node_intake.ingestion.batch_processor import BatchProcessor
from node_intake.models.audit_log import AuditLog

from conftest import OWNER


def broken_factory():
    raise RuntimeError("audit store down")


async def test_record_writes_entry(audit_sink, test_session_factory) -> None:
    await audit_sink.record("NODE_UPDATE", OWNER, "node", "node-1", {"node_aliases": ["A"]})

    async with test_session_factory() as session:
        entry = (await session.execute(select(AuditLog))).scalar_one()
    assert entry.action == "NODE_UPDATE"
    assert entry.resource_type == "node"
    assert entry.details == {"node_aliases": ["A"]}
    assert entry.created_at is not None


async def test_failing_sink_swallows_errors() -> None:
    await SqlAuditSink(broken_factory).record("BATCH_UPLOAD", OWNER, "batch", "b-1")


async def test_failing_sink_does_not_fail_operations(test_session_factory, registry, sample_csv) -> None:
    audit = SqlAuditSink(broken_factory)
    result = await BatchProcessor(test_session_factory, registry, audit).process_batch(sample_csv, None, OWNER)
    assert result.valid_rows == 2

    rollback = await BatchManager(test_session_factory, audit).rollback_batch(result.batch_id, OWNER)
    assert rollback.success is True
    assert rollback.staging_nodes_deleted == 2

    async with test_session_factory() as session:
        assert (await session.execute(select(AuditLog))).scalars().all() == []
