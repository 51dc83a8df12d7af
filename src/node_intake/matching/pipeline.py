"""Deduplication pipeline for staged rows.

Scores one staged row against an owner's registry snapshot with the
entity, node and domain scorers, pools and ranks the matches, and derives
the row-level overall confidence and suggested action.  All functions are
PURE -- no database access.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal, Union

import structlog

from node_intake.matching.combiner import confidence_level, recommended_action
from node_intake.matching.config import DeduplicationConfig
from node_intake.matching.scorers import domain_score, entity_score, node_score
from node_intake.matching.similarity import extract_domain
from node_intake.matching.subject import MatchSubject
from node_intake.registry.reader import EntityRecord, NodeRecord, RegistrySnapshot

logger = structlog.get_logger()


@dataclass(frozen=True)
class EntityTarget:
    id: str
    name: str
    kind: Literal["entity"] = "entity"


@dataclass(frozen=True)
class NodeTarget:
    id: str
    name: str
    kind: Literal["node"] = "node"


@dataclass(frozen=True)
class StagingTarget:
    id: str
    name: str
    kind: Literal["staging"] = "staging"


MatchTarget = Union[EntityTarget, NodeTarget, StagingTarget]


@dataclass
class DuplicateMatch:
    """One candidate duplicate for a staged row.

    Attributes:
        target: The registry record (or staging row) that matched.
        similarity_score: Weighted score in [0, 1].
        match_reasons: Signals that fired, e.g. ``"exact_domain_match"``.
        confidence_level: ``"high"``, ``"medium"`` or ``"low"``.
        recommended_action: ``"merge"``, ``"review"`` or ``"separate"``.
    """

    target: MatchTarget
    similarity_score: float
    match_reasons: list[str]
    confidence_level: str
    recommended_action: str

    def to_dict(self) -> dict:
        return {
            "target_id": self.target.id,
            "target_type": self.target.kind,
            "target_name": self.target.name,
            "similarity_score": self.similarity_score,
            "match_reasons": list(self.match_reasons),
            "confidence_level": self.confidence_level,
            "recommended_action": self.recommended_action,
        }


@dataclass
class DeduplicationResult:
    """Ranked duplicate candidates and the suggested action for one staged row.

    Attributes:
        staging_id: The analysed staging row.
        has_duplicates: Whether any match survived the confidence floor.
        duplicate_count: Number of surviving matches.
        matches: Surviving matches, highest score first.
        overall_confidence: Confidence that the suggested action is right.
        suggested_entity_id: Best-scoring entity match, if any.
        suggested_merge_action: ``"create_new"``, ``"merge_existing"`` or
            ``"manual_review"``.
        lookup_failed: The registry could not be consulted for this row.
    """

    staging_id: str
    has_duplicates: bool
    duplicate_count: int
    matches: list[DuplicateMatch] = field(default_factory=list)
    overall_confidence: float = 1.0
    suggested_entity_id: str | None = None
    suggested_merge_action: str = "create_new"
    lookup_failed: bool = False

    def to_dict(self) -> dict:
        return {
            "staging_id": self.staging_id,
            "has_duplicates": self.has_duplicates,
            "duplicate_count": self.duplicate_count,
            "matches": [m.to_dict() for m in self.matches],
            "overall_confidence": self.overall_confidence,
            "suggested_entity_id": self.suggested_entity_id,
            "suggested_merge_action": self.suggested_merge_action,
            "lookup_failed": self.lookup_failed,
        }


def _make_match(
    target: MatchTarget, score: float, reasons: list[str], config: DeduplicationConfig
) -> DuplicateMatch:
    return DuplicateMatch(
        target=target,
        similarity_score=score,
        match_reasons=reasons,
        confidence_level=confidence_level(score, config.confidence_levels),
        recommended_action=recommended_action(score, config.actions),
    )


def find_entity_matches(
    subject: MatchSubject, entities: Iterable[EntityRecord], config: DeduplicationConfig
) -> list[DuplicateMatch]:
    matches: list[DuplicateMatch] = []
    for entity in entities:
        signals = entity_score(subject, entity, config)
        if signals.score >= config.min_confidence_score:
            matches.append(
                _make_match(
                    EntityTarget(entity.id, entity.master_entity_name),
                    signals.score,
                    signals.reasons,
                    config,
                )
            )
    return matches


def find_node_matches(
    subject: MatchSubject, nodes: Iterable[NodeRecord], config: DeduplicationConfig
) -> list[DuplicateMatch]:
    matches: list[DuplicateMatch] = []
    for node in nodes:
        signals = node_score(subject, node, config)
        if signals.score >= config.min_confidence_score:
            matches.append(
                _make_match(
                    NodeTarget(node.id, f"{node.entity_name} - {node.node_name}"),
                    signals.score,
                    signals.reasons,
                    config,
                )
            )
    return matches


def find_domain_matches(
    subject: MatchSubject, snapshot: RegistrySnapshot, config: DeduplicationConfig
) -> list[DuplicateMatch]:
    """Same-domain records, nodes first and then entities."""
    staging_domain = extract_domain(subject.website)
    if not staging_domain:
        return []

    matches: list[DuplicateMatch] = []
    for node in snapshot.nodes:
        scored = domain_score(staging_domain, subject.entity_name, node.website, node.entity_name, config)
        if scored is not None and scored[0] >= config.min_confidence_score:
            target = NodeTarget(node.id, node.entity_name or node.node_name)
            matches.append(_make_match(target, scored[0], scored[1], config))

    for entity in snapshot.entities:
        scored = domain_score(staging_domain, subject.entity_name, entity.website, None, config)
        if scored is not None and scored[0] >= config.min_confidence_score:
            matches.append(
                _make_match(EntityTarget(entity.id, entity.master_entity_name), scored[0], scored[1], config)
            )

    return matches


def overall_confidence(matches: list[DuplicateMatch], config: DeduplicationConfig | None = None) -> float:
    """Average match score, penalized for every additional candidate.

    A row with no matches is unambiguous and scores 1.0.
    """
    if config is None:
        config = DeduplicationConfig()
    if not matches:
        return 1.0

    average = sum(m.similarity_score for m in matches) / len(matches)
    penalty = max(0.0, 1.0 - len(matches) * config.suggestion.match_count_penalty)
    return max(0.0, min(1.0, average * penalty))


def suggested_action(
    matches: list[DuplicateMatch], overall: float, config: DeduplicationConfig | None = None
) -> str:
    """``create_new`` without matches, ``merge_existing`` only for a clear winner."""
    if config is None:
        config = DeduplicationConfig()
    if not matches:
        return "create_new"

    has_high = any(m.confidence_level == "high" for m in matches)
    has_merge = any(m.recommended_action == "merge" for m in matches)
    if has_high and has_merge and overall > config.suggestion.merge_min_overall:
        return "merge_existing"
    return "manual_review"


def best_entity_match(matches: list[DuplicateMatch]) -> str | None:
    """Id of the highest-scoring entity match (first one on ties)."""
    entity_matches = [m for m in matches if isinstance(m.target, EntityTarget)]
    if not entity_matches:
        return None
    return max(entity_matches, key=lambda m: m.similarity_score).target.id


def analyze_staging_row(
    subject: MatchSubject, snapshot: RegistrySnapshot, config: DeduplicationConfig | None = None
) -> DeduplicationResult:
    """Score one staged row against the registry snapshot.  PURE FUNCTION.

    1. Entity, node and (optionally) domain matches are pooled.
    2. The pool is sorted by score, highest first (stable).
    3. It is cut to ``max_suggestions`` and then filtered by
       ``min_confidence_score``.
    4. Overall confidence and suggested action are derived from what is left.
    """
    if config is None:
        config = DeduplicationConfig()

    matches = find_entity_matches(subject, snapshot.entities, config)
    matches.extend(find_node_matches(subject, snapshot.nodes, config))
    if config.enable_domain_clustering:
        matches.extend(find_domain_matches(subject, snapshot, config))

    matches.sort(key=lambda m: m.similarity_score, reverse=True)
    qualified = [
        m for m in matches[: config.max_suggestions]
        if m.similarity_score >= config.min_confidence_score
    ]

    overall = overall_confidence(qualified, config)
    return DeduplicationResult(
        staging_id=subject.id,
        has_duplicates=bool(qualified),
        duplicate_count=len(qualified),
        matches=qualified,
        overall_confidence=overall,
        suggested_entity_id=best_entity_match(qualified),
        suggested_merge_action=suggested_action(qualified, overall, config),
    )


def lookup_failed_result(staging_id: str) -> DeduplicationResult:
    """Result for a row whose duplicates could not be looked up.

    Never claims the row is new: no matches, zero confidence and a
    manual review.
    """
    return DeduplicationResult(
        staging_id=staging_id,
        has_duplicates=False,
        duplicate_count=0,
        matches=[],
        overall_confidence=0.0,
        suggested_entity_id=None,
        suggested_merge_action="manual_review",
        lookup_failed=True,
    )


def analyze_rows(
    subjects: Iterable[MatchSubject],
    snapshot: RegistrySnapshot | None,
    config: DeduplicationConfig | None = None,
) -> list[DeduplicationResult]:
    """Analyze every row; a ``None`` snapshot means the registry was unreadable.

    A row whose scoring raises is reported as ``lookup_failed`` and the
    remaining rows are still analyzed.
    """
    results: list[DeduplicationResult] = []
    for subject in subjects:
        if snapshot is None:
            results.append(lookup_failed_result(subject.id))
            continue
        try:
            results.append(analyze_staging_row(subject, snapshot, config))
        except Exception:
            logger.exception("duplicate_analysis_failed", staging_id=subject.id)
            results.append(lookup_failed_result(subject.id))
    return results
