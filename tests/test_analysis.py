"""Tests for batch-level deduplication analysis."""

import pytest
from sqlalchemy import select, update

from node_intake.ingestion.batch_processor import BatchProcessor
from node_intake.matching.analysis import DeduplicationAnalyzer
from node_intake.models.staging_node import StagingNode
from node_intake.registry.reader import EntityRecord, NodeRecord
from node_intake.results import OperationError, OutcomeKind

from conftest import OTHER_OWNER, OWNER


class FailingRegistry:
    async def list_entities(self, owner_id: str) -> list[EntityRecord]:
        raise ConnectionError("registry unavailable")

    async def list_nodes(self, owner_id: str) -> list[NodeRecord]:
        return []


@pytest.fixture
async def batch_id(test_session_factory, registry, audit_sink, sample_csv, seeded_registry) -> str:
    processor = BatchProcessor(test_session_factory, registry, audit_sink)
    return (await processor.process_batch(sample_csv, "to analyze", OWNER)).batch_id


async def _rows(factory, batch_id: str) -> list[StagingNode]:
    async with factory() as session:
        result = await session.execute(
            select(StagingNode).where(StagingNode.batch_id == batch_id).order_by(StagingNode.row_number)
        )
        return list(result.scalars().all())


async def test_analysis_scores_and_stores_results(test_session_factory, registry, batch_id) -> None:
    analyzer = DeduplicationAnalyzer(test_session_factory, registry)
    results = await analyzer.analyze_deduplication(batch_id, OWNER)

    assert len(results) == 2
    by_id = {r.staging_id: r for r in results}
    cloudbeds, siteminder = await _rows(test_session_factory, batch_id)

    cloudbeds_result = by_id[cloudbeds.id]
    assert cloudbeds_result.has_duplicates is True
    assert cloudbeds_result.suggested_entity_id == "ent-cloudbeds"
    assert {m.target.id for m in cloudbeds_result.matches} == {"ent-cloudbeds", "cloudbeds_pms_abc123"}
    # The other tenant's identical entity is never a candidate
    assert all(m.target.id != "ent-foreign" for r in results for m in r.matches)

    assert by_id[siteminder.id].suggested_entity_id == "ent-siteminder"

    assert cloudbeds.status == "reviewed"
    assert cloudbeds.duplicate_analysis["staging_id"] == cloudbeds.id
    assert cloudbeds.duplicate_analysis["matches"][0]["target_type"] in ("entity", "node")
    assert cloudbeds.lookup_failed is False


async def test_registry_failure_reports_lookup_failed(test_session_factory, batch_id) -> None:
    analyzer = DeduplicationAnalyzer(test_session_factory, FailingRegistry())
    results = await analyzer.analyze_deduplication(batch_id, OWNER)

    assert all(r.lookup_failed for r in results)
    assert all(r.suggested_merge_action == "manual_review" for r in results)
    for row in await _rows(test_session_factory, batch_id):
        assert row.lookup_failed is True
        assert row.duplicate_analysis["lookup_failed"] is True


async def test_decided_rows_are_skipped(test_session_factory, registry, batch_id) -> None:
    first, second = await _rows(test_session_factory, batch_id)
    async with test_session_factory() as session, session.begin():
        await session.execute(update(StagingNode).where(StagingNode.id == first.id).values(status="rejected"))

    analyzer = DeduplicationAnalyzer(test_session_factory, registry)
    results = await analyzer.analyze_deduplication(batch_id, OWNER)

    assert [r.staging_id for r in results] == [second.id]
    first_after, _ = await _rows(test_session_factory, batch_id)
    assert first_after.status == "rejected"
    assert first_after.duplicate_analysis is None


async def test_unknown_or_foreign_batch(test_session_factory, registry, batch_id) -> None:
    analyzer = DeduplicationAnalyzer(test_session_factory, registry)

    outcome = await analyzer.analyze_deduplication("missing", OWNER)
    assert isinstance(outcome, OperationError)
    assert outcome.kind is OutcomeKind.NOT_FOUND

    outcome = await analyzer.analyze_deduplication(batch_id, OTHER_OWNER)
    assert outcome.kind is OutcomeKind.NOT_FOUND
