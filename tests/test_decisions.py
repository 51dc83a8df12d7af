"""Tests for applying reviewer decisions to staged rows."""

import re

import pytest
from sqlalchemy import select

from node_intake.ingestion.batch_processor import BatchProcessor
from node_intake.models.audit_log import AuditLog
from node_intake.models.entity import Entity
from node_intake.models.node import Node
from node_intake.models.staging_node import StagingNode
from node_intake.results import OperationError, OutcomeKind
from node_intake.review.operations import (
    Decision,
    DecisionProcessor,
    fold_names,
    generate_node_id,
    union,
    validate_manual_edits,
)

from conftest import OTHER_OWNER, OWNER, csv_text


@pytest.fixture
def processor(test_session_factory, audit_sink) -> DecisionProcessor:
    # One shared in-memory connection: decisions run one at a time
    return DecisionProcessor(test_session_factory, audit_sink, concurrency=1)


@pytest.fixture
async def staged(test_session_factory, registry, audit_sink, sample_csv, seeded_registry) -> dict[str, str]:
    """Staging ids keyed by sanitized entity name."""
    batch = await BatchProcessor(test_session_factory, registry, audit_sink).process_batch(
        sample_csv, "review", OWNER
    )
    return {node.entity_name: node.id for node in batch.staging_nodes}


async def _get(factory, model, record_id):
    async with factory() as session:
        return await session.get(model, record_id)


async def _nodes_of(factory, entity_id: str) -> list[Node]:
    async with factory() as session:
        result = await session.execute(select(Node).where(Node.entity_id == entity_id).order_by(Node.id))
        return list(result.scalars().all())


class TestHelpers:
    def test_generate_node_id(self) -> None:
        node_id = generate_node_id("Site Minder!", "BookingEngine")
        assert re.fullmatch(r"siteminder_bookingengine_[0-9a-f]{6}", node_id)

    def test_fold_names_is_case_insensitive(self) -> None:
        assert fold_names(["Mews"], ["mews", "Mews Systems", "", "MEWS SYSTEMS"]) == ["Mews", "Mews Systems"]
        assert fold_names([], ["Cloudbeds", "Cloudbeds Inc"], exclude="cloudbeds") == ["Cloudbeds Inc"]

    def test_union_keeps_order(self) -> None:
        assert union(["a", "b"], ["b", "c"]) == ["a", "b", "c"]

    def test_validate_manual_edits(self) -> None:
        assert validate_manual_edits(None) == {}
        assert validate_manual_edits({"node_name": " X "}) == {"node_name": "X"}
        assert validate_manual_edits({"owner_id": "x"}).kind is OutcomeKind.VALIDATION_FAILED
        assert validate_manual_edits({"node_category": "Nope"}).kind is OutcomeKind.VALIDATION_FAILED
        assert validate_manual_edits({"entity_name": "  "}).kind is OutcomeKind.VALIDATION_FAILED
        assert validate_manual_edits({"notes": 3}).kind is OutcomeKind.VALIDATION_FAILED


async def test_approve_new_creates_entity_and_node(processor, staged, test_session_factory) -> None:
    staging_id = staged["Cloudbeds"]
    result = await processor.apply_decisions([Decision(staging_id, "approve_new")], OWNER)
    assert result.processed == 1
    assert result.errors == []

    staging = await _get(test_session_factory, StagingNode, staging_id)
    assert staging.status == "approved"
    assert staging.decided_by == OWNER
    assert staging.decided_at is not None

    entity = await _get(test_session_factory, Entity, staging.committed_entity_id)
    assert entity.owner_id == OWNER
    assert entity.master_entity_name == "Cloudbeds"
    assert entity.alternate_names == ["Cloudbeds Inc"]
    assert entity.website == "cloudbeds.com"

    node = await _get(test_session_factory, Node, staging.committed_node_id)
    assert re.fullmatch(r"cloudbeds_pms_[0-9a-f]{6}", node.id)
    assert node.entity_id == entity.id
    assert node.entity_name == "Cloudbeds"
    assert node.protocols_supported == ["PushAPI"]
    assert node.connects_to == ["SiteMinder", "Booking.com"]
    assert node.node_aliases == []
    assert node.is_active is True


async def test_approve_new_applies_manual_edits(processor, staged, test_session_factory) -> None:
    staging_id = staged["Cloudbeds"]
    edits = {"entity_name": "Cloudbeds Group", "node_category": "CM"}
    await processor.apply_decisions([Decision(staging_id, "approve_new", manual_edits=edits)], OWNER)

    staging = await _get(test_session_factory, StagingNode, staging_id)
    entity = await _get(test_session_factory, Entity, staging.committed_entity_id)
    node = await _get(test_session_factory, Node, staging.committed_node_id)
    assert entity.master_entity_name == "Cloudbeds Group"
    assert node.node_category == "CM"
    assert node.id.startswith("cloudbedsgroup_cm_")


async def test_merge_with_entity_folds_names(processor, staged, test_session_factory) -> None:
    staging_id = staged["Siteminder"]
    result = await processor.apply_decisions(
        [Decision(staging_id, "merge_with_entity", target_id="ent-siteminder")], OWNER
    )
    assert result.processed == 1

    entity = await _get(test_session_factory, Entity, "ent-siteminder")
    # "Siteminder" equals the canonical name ignoring case; only the raw name is new
    assert entity.alternate_names == ["SiteMinder Ltd"]
    assert entity.version == 2

    nodes = await _nodes_of(test_session_factory, "ent-siteminder")
    assert [n.node_name for n in nodes] == ["SiteMinder Channel Manager"]
    assert nodes[0].entity_name == "SiteMinder"

    staging = await _get(test_session_factory, StagingNode, staging_id)
    assert staging.status == "merged"
    assert staging.committed_entity_id == "ent-siteminder"
    assert staging.committed_node_id == nodes[0].id


async def test_merge_with_node_folds_aliases_and_lists(processor, staged, test_session_factory) -> None:
    staging_id = staged["Cloudbeds"]
    decision = Decision(
        staging_id,
        "merge_with_node",
        target_id="cloudbeds_pms_abc123",
        manual_edits={"node_name": "Cloudbeds Cloud PMS"},
    )
    result = await processor.apply_decisions([decision], OWNER)
    assert result.processed == 1

    node = await _get(test_session_factory, Node, "cloudbeds_pms_abc123")
    assert node.node_aliases == ["Cloudbeds Property Management", "Cloudbeds Cloud PMS"]
    assert node.notes == "Existing record\nCloud PMS, 5000 hotels, integrates with siteminder"
    assert node.connects_to == ["Expedia", "SiteMinder", "Booking.com"]
    assert node.protocols_supported == ["PullAPI", "PushAPI"]
    assert node.data_types_supported == ["Bookings", "Availability", "Rates"]
    assert node.last_verified is not None
    assert node.version == 2

    staging = await _get(test_session_factory, StagingNode, staging_id)
    assert staging.status == "merged"
    assert staging.committed_node_id == "cloudbeds_pms_abc123"
    assert staging.committed_entity_id == "ent-cloudbeds"


async def test_reject_touches_no_registry_records(processor, staged, test_session_factory) -> None:
    staging_id = staged["Siteminder"]
    result = await processor.apply_decisions([Decision(staging_id, "reject")], OWNER)
    assert result.processed == 1

    staging = await _get(test_session_factory, StagingNode, staging_id)
    assert staging.status == "rejected"
    assert staging.committed_entity_id is None
    assert await _nodes_of(test_session_factory, "ent-siteminder") == []


async def test_already_decided_row_conflicts_without_blocking_others(
    processor, staged, test_session_factory
) -> None:
    cloudbeds, siteminder = staged["Cloudbeds"], staged["Siteminder"]
    await processor.apply_decisions([Decision(cloudbeds, "reject")], OWNER)

    result = await processor.apply_decisions(
        [Decision(cloudbeds, "approve_new"), Decision(siteminder, "approve_new")], OWNER
    )
    assert result.processed == 1
    assert [(e.staging_id, e.kind) for e in result.errors] == [(cloudbeds, OutcomeKind.CONFLICT)]
    assert "already rejected" in result.errors[0].error

    assert (await _get(test_session_factory, StagingNode, siteminder)).status == "approved"


async def test_same_row_twice_in_one_call(processor, staged) -> None:
    staging_id = staged["Cloudbeds"]
    result = await processor.apply_decisions(
        [Decision(staging_id, "approve_new"), Decision(staging_id, "reject")], OWNER
    )
    assert result.processed == 1
    assert result.errors[0].kind is OutcomeKind.CONFLICT


async def test_merge_requires_target_id(processor, staged) -> None:
    outcome = await processor.apply_decision(Decision(staged["Cloudbeds"], "merge_with_entity"), OWNER)
    assert isinstance(outcome, OperationError)
    assert outcome.kind is OutcomeKind.VALIDATION_FAILED


async def test_unknown_action(processor, staged) -> None:
    outcome = await processor.apply_decision(Decision(staged["Cloudbeds"], "archive"), OWNER)
    assert outcome.kind is OutcomeKind.VALIDATION_FAILED


async def test_missing_target_rolls_back(processor, staged, test_session_factory) -> None:
    staging_id = staged["Cloudbeds"]
    outcome = await processor.apply_decision(
        Decision(staging_id, "merge_with_node", target_id="no-such-node"), OWNER
    )
    assert outcome.kind is OutcomeKind.NOT_FOUND
    assert (await _get(test_session_factory, StagingNode, staging_id)).status == "pending"


async def test_foreign_records_are_not_found(processor, staged) -> None:
    outcome = await processor.apply_decision(
        Decision(staged["Cloudbeds"], "merge_with_entity", target_id="ent-foreign"), OWNER
    )
    assert outcome.kind is OutcomeKind.NOT_FOUND

    outcome = await processor.apply_decision(Decision(staged["Cloudbeds"], "reject"), OTHER_OWNER)
    assert outcome.kind is OutcomeKind.NOT_FOUND


async def test_decisions_are_audited(processor, staged, test_session_factory) -> None:
    await processor.apply_decisions(
        [
            Decision(staged["Cloudbeds"], "approve_new"),
            Decision(staged["Siteminder"], "reject"),
        ],
        OWNER,
    )
    async with test_session_factory() as session:
        actions = (
            await session.execute(select(AuditLog.action).where(AuditLog.action != "BATCH_UPLOAD"))
        ).scalars().all()
    assert sorted(actions) == ["ENTITY_CREATE", "NODE_CREATE", "STAGING_REJECT"]


async def test_names_emptied_by_sanitizing_need_manual_edits(
    processor, test_session_factory, registry, audit_sink
) -> None:
    # "Co" and "Ltd" are nothing but corporate suffixes
    batch = await BatchProcessor(test_session_factory, registry, audit_sink).process_batch(
        csv_text("Widget,acme.com,Co,PMS,Supply,,,,", "Ltd,acme.com,Acme,PMS,Supply,,,,"), None, OWNER
    )
    no_entity, no_node = (node.id for node in batch.staging_nodes)

    result = await processor.apply_decisions(
        [Decision(no_entity, "approve_new"), Decision(no_node, "approve_new")], OWNER
    )
    assert result.processed == 0
    assert {(e.staging_id, e.kind) for e in result.errors} == {
        (no_entity, OutcomeKind.VALIDATION_FAILED),
        (no_node, OutcomeKind.VALIDATION_FAILED),
    }
    assert {e.error.split(" ")[0] for e in result.errors} == {"entity_name", "node_name"}

    async with test_session_factory() as session:
        assert (await session.execute(select(Node))).scalars().all() == []
        assert (await session.execute(select(Entity))).scalars().all() == []
    assert (await _get(test_session_factory, StagingNode, no_node)).status == "pending"

    outcome = await processor.apply_decision(Decision(no_node, "merge_with_entity", target_id="x"), OWNER)
    assert outcome.kind is OutcomeKind.VALIDATION_FAILED

    result = await processor.apply_decisions(
        [
            Decision(no_entity, "approve_new", manual_edits={"entity_name": "Acme Widgets"}),
            Decision(no_node, "approve_new", manual_edits={"node_name": "Acme PMS"}),
        ],
        OWNER,
    )
    assert result.processed == 2
    staging = await _get(test_session_factory, StagingNode, no_node)
    assert (await _get(test_session_factory, Node, staging.committed_node_id)).node_name == "Acme PMS"
