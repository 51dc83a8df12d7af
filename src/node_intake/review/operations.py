"""Review decisions: commit, merge or reject staged rows.

Each decision runs in its own transaction.  Decisions that write to the
same registry entity or node serialize on a per-document lock, and the
``version`` column on entities and nodes turns any remaining lost update
into a ``conflict`` outcome.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import re
import weakref
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from uuid import uuid4

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from node_intake.audit.sink import (
    ENTITY_CREATE,
    ENTITY_UPDATE,
    NODE_CREATE,
    NODE_UPDATE,
    STAGING_REJECT,
    AuditSink,
)
from node_intake.batches.lifecycle import utcnow
from node_intake.models.entity import Entity
from node_intake.models.enums import (
    DIRECTIONS,
    NODE_CATEGORIES,
    OPEN_STAGING_STATUSES,
    StagingStatus,
)
from node_intake.models.node import Node
from node_intake.models.staging_node import StagingNode
from node_intake.results import (
    OperationError,
    OutcomeKind,
    conflict,
    not_found,
    validation_failed,
)
from node_intake.staging.store import get_staging_node

logger = structlog.get_logger()

APPROVE_NEW = "approve_new"
MERGE_WITH_ENTITY = "merge_with_entity"
MERGE_WITH_NODE = "merge_with_node"
REJECT = "reject"
DECISION_ACTIONS = (APPROVE_NEW, MERGE_WITH_ENTITY, MERGE_WITH_NODE, REJECT)

EDITABLE_FIELDS = ("node_name", "entity_name", "website", "notes", "node_category", "direction")

# Fields a new registry record is built from; sanitizing can leave them blank
_REQUIRED_FIELDS = {
    APPROVE_NEW: ("entity_name", "node_name"),
    MERGE_WITH_ENTITY: ("node_name",),
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# (action, resource_type, resource_id, details)
AuditEvent = tuple[str, str, str, dict]

# Locks live only while some decision holds or waits on them
DocumentLocks = weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]


@dataclass
class Decision:
    staging_id: str
    action: str
    target_id: str | None = None
    manual_edits: dict | None = None


@dataclass(frozen=True)
class DecisionProcessingError:
    staging_id: str
    kind: OutcomeKind
    error: str


@dataclass
class DecisionBatchResult:
    processed: int = 0
    errors: list[DecisionProcessingError] = field(default_factory=list)


class _Abort(Exception):
    """Carries an expected outcome out of a transaction so it rolls back."""

    def __init__(self, outcome: OperationError) -> None:
        super().__init__(outcome.message)
        self.outcome = outcome


def generate_node_id(entity_name: str, node_category: str) -> str:
    """``{entity}_{category}_{6 hex chars}`` with only lower-case alphanumerics."""
    clean_entity = _NON_ALNUM.sub("", entity_name.lower())
    clean_category = _NON_ALNUM.sub("", node_category.lower())
    return f"{clean_entity}_{clean_category}_{uuid4().hex[-6:]}"


def fold_names(existing: list[str], candidates: list[str], exclude: str | None = None) -> list[str]:
    """Append *candidates* not already present (case-insensitive) to a copy of *existing*.

    *exclude* (the canonical name) is never added.
    """
    folded = list(existing)
    seen = {name.lower() for name in folded}
    if exclude:
        seen.add(exclude.lower())
    for name in candidates:
        if name and name.lower() not in seen:
            folded.append(name)
            seen.add(name.lower())
    return folded


def union(existing: list[str], extra: list[str]) -> list[str]:
    """Order-preserving union of two lists."""
    return list(dict.fromkeys([*existing, *extra]))


def validate_manual_edits(edits: dict | None) -> dict[str, str] | OperationError:
    """Check reviewer overrides; only string values for known fields are accepted."""
    if not edits:
        return {}

    unknown = sorted(set(edits) - set(EDITABLE_FIELDS))
    if unknown:
        return validation_failed(f"Fields cannot be edited: {', '.join(unknown)}")

    cleaned: dict[str, str] = {}
    for name, value in edits.items():
        if not isinstance(value, str):
            return validation_failed(f"{name} must be a string")
        cleaned[name] = value.strip()

    for name in ("node_name", "entity_name"):
        if name in cleaned and not cleaned[name]:
            return validation_failed(f"{name} cannot be empty")
    if "node_category" in cleaned and cleaned["node_category"] not in NODE_CATEGORIES:
        return validation_failed(f"Invalid node_category: {cleaned['node_category']}")
    if "direction" in cleaned and cleaned["direction"] not in DIRECTIONS:
        return validation_failed(f"Invalid direction: {cleaned['direction']}")

    return cleaned


def _effective_fields(staging: StagingNode, edits: dict[str, str]) -> dict[str, str]:
    fields = {name: getattr(staging, name) for name in EDITABLE_FIELDS}
    fields.update(edits)
    return fields


def _build_node(
    staging: StagingNode,
    fields: dict[str, str],
    entity: Entity,
    owner_id: str,
    now: dt.datetime,
) -> Node:
    original = (staging.original_data or {}).get("original_node_name", "")
    return Node(
        id=generate_node_id(entity.master_entity_name, fields["node_category"]),
        owner_id=owner_id,
        node_name=fields["node_name"],
        entity_id=entity.id,
        entity_name=entity.master_entity_name,
        node_category=fields["node_category"],
        direction=fields["direction"],
        connects_to=list(staging.connect_targets or []),
        protocols_supported=list(staging.protocols_supported or []),
        data_types_supported=list(staging.data_types_supported or []),
        node_aliases=fold_names([], [original], exclude=fields["node_name"]),
        website=fields["website"] or None,
        notes=fields["notes"] or "",
        is_active=True,
        last_verified=now,
        updated_at=now,
    )


def _close_staging(
    staging: StagingNode,
    status: StagingStatus,
    owner_id: str,
    now: dt.datetime,
    entity_id: str | None = None,
    node_id: str | None = None,
) -> None:
    staging.status = status.value
    staging.committed_entity_id = entity_id
    staging.committed_node_id = node_id
    staging.decided_by = owner_id
    staging.decided_at = now


async def _owned(session: AsyncSession, model: type, record_id: str, owner_id: str):
    result = await session.execute(
        sa.select(model).where(model.id == record_id, model.owner_id == owner_id)
    )
    return result.scalar_one_or_none()


async def approve_new(
    session: AsyncSession, staging: StagingNode, fields: dict[str, str], owner_id: str
) -> list[AuditEvent]:
    """Create a new entity and a node under it from the staged row."""
    now = utcnow()
    original_entity = (staging.original_data or {}).get("original_entity_name", "")
    entity = Entity(
        id=uuid4().hex,
        owner_id=owner_id,
        master_entity_name=fields["entity_name"],
        alternate_names=fold_names([], [original_entity], exclude=fields["entity_name"]),
        website=fields["website"] or None,
        updated_at=now,
    )
    session.add(entity)
    await session.flush()

    node = _build_node(staging, fields, entity, owner_id, now)
    session.add(node)
    _close_staging(staging, StagingStatus.APPROVED, owner_id, now, entity.id, node.id)

    return [
        (ENTITY_CREATE, "entity", entity.id, {"staging_id": staging.id, "name": entity.master_entity_name}),
        (NODE_CREATE, "node", node.id, {"staging_id": staging.id, "entity_id": entity.id}),
    ]


async def merge_with_entity(
    session: AsyncSession,
    staging: StagingNode,
    fields: dict[str, str],
    entity_id: str,
    owner_id: str,
) -> list[AuditEvent]:
    """Fold the staged entity names into an existing entity and add a node under it."""
    entity = await _owned(session, Entity, entity_id, owner_id)
    if entity is None:
        raise _Abort(not_found(f"Entity {entity_id} not found"))

    now = utcnow()
    events: list[AuditEvent] = []
    original_entity = (staging.original_data or {}).get("original_entity_name", "")
    alternate_names = fold_names(
        entity.alternate_names or [],
        [fields["entity_name"], original_entity],
        exclude=entity.master_entity_name,
    )
    if alternate_names != (entity.alternate_names or []):
        entity.alternate_names = alternate_names
        entity.updated_at = now
        events.append(
            (ENTITY_UPDATE, "entity", entity.id, {"staging_id": staging.id, "alternate_names": alternate_names})
        )

    node = _build_node(staging, fields, entity, owner_id, now)
    session.add(node)
    _close_staging(staging, StagingStatus.MERGED, owner_id, now, entity.id, node.id)

    events.append((NODE_CREATE, "node", node.id, {"staging_id": staging.id, "entity_id": entity.id}))
    return events


async def merge_with_node(
    session: AsyncSession,
    staging: StagingNode,
    fields: dict[str, str],
    node_id: str,
    owner_id: str,
) -> list[AuditEvent]:
    """Fold aliases, notes and connectivity of the staged row into an existing node."""
    node = await _owned(session, Node, node_id, owner_id)
    if node is None:
        raise _Abort(not_found(f"Node {node_id} not found"))

    now = utcnow()
    original_node = (staging.original_data or {}).get("original_node_name", "")
    node.node_aliases = fold_names(
        node.node_aliases or [], [fields["node_name"], original_node], exclude=node.node_name
    )

    notes = fields["notes"]
    if notes and notes not in (node.notes or ""):
        node.notes = f"{node.notes}\n{notes}" if node.notes else notes

    node.connects_to = union(node.connects_to or [], staging.connect_targets or [])
    node.protocols_supported = union(node.protocols_supported or [], staging.protocols_supported or [])
    node.data_types_supported = union(node.data_types_supported or [], staging.data_types_supported or [])
    node.last_verified = now
    node.updated_at = now

    _close_staging(staging, StagingStatus.MERGED, owner_id, now, node.entity_id, node.id)
    return [(NODE_UPDATE, "node", node.id, {"staging_id": staging.id, "node_aliases": node.node_aliases})]


def reject(staging: StagingNode, owner_id: str) -> list[AuditEvent]:
    _close_staging(staging, StagingStatus.REJECTED, owner_id, utcnow())
    return [(STAGING_REJECT, "staging_node", staging.id, {"batch_id": staging.batch_id})]


class DecisionProcessor:
    """Apply reviewer decisions with bounded concurrency.

    Args:
        session_factory: One session (and transaction) per decision.
        audit: Notified after each committed decision.
        concurrency: Maximum number of decisions in flight.
        locks: Per-document lock table; pass one shared table so separate
            processors in the same process serialize on the same documents.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        audit: AuditSink,
        concurrency: int = 4,
        locks: DocumentLocks | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.audit = audit
        self.concurrency = concurrency
        self._locks = locks if locks is not None else DocumentLocks()

    def _lock(self, kind: str, document_id: str) -> asyncio.Lock:
        lock = self._locks.get((kind, document_id))
        if lock is None:
            lock = self._locks[(kind, document_id)] = asyncio.Lock()
        return lock

    async def apply_decisions(self, decisions: list[Decision], owner_id: str) -> DecisionBatchResult:
        """Apply every decision; failures are collected, never raised."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(decision: Decision) -> OperationError | None:
            async with semaphore:
                return await self.apply_decision(decision, owner_id)

        outcomes = await asyncio.gather(*(run(d) for d in decisions))

        result = DecisionBatchResult()
        for decision, outcome in zip(decisions, outcomes):
            if outcome is None:
                result.processed += 1
            else:
                result.errors.append(DecisionProcessingError(decision.staging_id, outcome.kind, outcome.message))

        logger.info(
            "decisions_applied",
            owner_id=owner_id,
            processed=result.processed,
            failed=len(result.errors),
        )
        return result

    async def apply_decision(self, decision: Decision, owner_id: str) -> OperationError | None:
        """Apply one decision in its own transaction; ``None`` means it was committed."""
        log = logger.bind(staging_id=decision.staging_id, action=decision.action, owner_id=owner_id)

        if decision.action not in DECISION_ACTIONS:
            return validation_failed(f"Unknown action: {decision.action}")
        if decision.action in (MERGE_WITH_ENTITY, MERGE_WITH_NODE) and not decision.target_id:
            return validation_failed(f"{decision.action} requires target_id")
        edits = validate_manual_edits(decision.manual_edits)
        if isinstance(edits, OperationError):
            return edits

        try:
            async with AsyncExitStack() as stack:
                await stack.enter_async_context(self._lock("staging", decision.staging_id))
                if decision.action == MERGE_WITH_ENTITY:
                    await stack.enter_async_context(self._lock("entity", decision.target_id))
                elif decision.action == MERGE_WITH_NODE:
                    await stack.enter_async_context(self._lock("node", decision.target_id))
                events = await self._commit(decision, edits, owner_id)
        except _Abort as abort:
            log.info("decision_rejected", kind=abort.outcome.kind.value, reason=abort.outcome.message)
            return abort.outcome
        except StaleDataError:
            log.warning("decision_conflict")
            return conflict(f"Target {decision.target_id} was modified concurrently")
        except Exception as exc:
            log.error("decision_failed", error=str(exc), exc_info=True)
            return OperationError(OutcomeKind.ERROR, str(exc))

        log.info("decision_applied")
        for action, resource_type, resource_id, details in events:
            await self.audit.record(action, owner_id, resource_type, resource_id, details)
        return None

    async def _commit(self, decision: Decision, edits: dict[str, str], owner_id: str) -> list[AuditEvent]:
        async with self.session_factory() as session, session.begin():
            staging = await get_staging_node(session, decision.staging_id, owner_id)
            if staging is None:
                raise _Abort(not_found(f"Staging node {decision.staging_id} not found"))
            if staging.status not in OPEN_STAGING_STATUSES:
                raise _Abort(conflict(f"Staging node {decision.staging_id} is already {staging.status}"))

            fields = _effective_fields(staging, edits)
            for name in _REQUIRED_FIELDS.get(decision.action, ()):
                if not (fields[name] or "").strip():
                    raise _Abort(
                        validation_failed(f"{name} is empty after sanitization; supply manual_edits")
                    )
            if decision.action == APPROVE_NEW:
                return await approve_new(session, staging, fields, owner_id)
            if decision.action == MERGE_WITH_ENTITY:
                return await merge_with_entity(session, staging, fields, decision.target_id, owner_id)
            if decision.action == MERGE_WITH_NODE:
                return await merge_with_node(session, staging, fields, decision.target_id, owner_id)
            return reject(staging, owner_id)
