"""Node-level similarity: names, category, direction and aliases."""

from __future__ import annotations

from node_intake.matching.combiner import WeightedSignals, percent
from node_intake.matching.config import DeduplicationConfig
from node_intake.matching.similarity import name_similarity
from node_intake.matching.subject import MatchSubject
from node_intake.registry.reader import NodeRecord


def node_score(
    subject: MatchSubject, node: NodeRecord, config: DeduplicationConfig | None = None
) -> WeightedSignals:
    """Score a staged row against one registry node.

    Category and direction contribute their full weight when equal; the
    name and alias signals contribute their similarity once above the
    threshold.
    """
    if config is None:
        config = DeduplicationConfig()
    weights = config.node_weights
    signals = WeightedSignals()

    node_name_score = name_similarity(subject.node_name, node.node_name)
    if node_name_score >= config.node_name_threshold:
        signals.add(node_name_score, weights.node_name, f"node_name_match_{percent(node_name_score)}%")

    entity_name_score = name_similarity(subject.entity_name, node.entity_name)
    if entity_name_score >= config.entity_name_threshold:
        signals.add(entity_name_score, weights.entity_name, f"entity_match_{percent(entity_name_score)}%")

    if subject.node_category == node.node_category:
        signals.add(1.0, weights.category, "same_category")

    if subject.direction == node.direction:
        signals.add(1.0, weights.direction, "same_direction")

    if node.node_aliases:
        best_alias = max(name_similarity(subject.node_name, alias) for alias in node.node_aliases)
        if best_alias >= config.node_name_threshold:
            signals.add(best_alias, weights.alias, f"alias_match_{percent(best_alias)}%")

    return signals
