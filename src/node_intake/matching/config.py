"""Deduplication configuration with sensible defaults.

All parameters can be overridden via ``config/dedup.yaml``.
If the file does not exist, defaults are used.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, model_validator


class EntityWeights(BaseModel):
    """Weight shares for the entity-match signals."""

    name: float = 0.6
    alternate_name: float = 0.5
    exact_domain: float = 0.4
    similar_domain: float = 0.3
    similar_domain_threshold: float = 0.8


class NodeWeights(BaseModel):
    """Weight shares for the node-match signals."""

    node_name: float = 0.4
    entity_name: float = 0.3
    category: float = 0.2
    direction: float = 0.1
    alias: float = 0.3


class DomainClusterConfig(BaseModel):
    """Blend of domain weight and entity-name similarity for same-domain records."""

    domain_share: float = 0.7
    name_share: float = 0.3
    similar_name_threshold: float = 0.5

    @model_validator(mode="after")
    def warn_if_shares_dont_sum(self) -> "DomainClusterConfig":
        """Log a warning if the two shares do not sum to approximately 1.0."""
        total = self.domain_share + self.name_share
        if abs(total - 1.0) > 0.01:
            structlog.get_logger().warning(
                "domain_cluster_shares_sum_mismatch",
                total=round(total, 4),
                expected=1.0,
            )
        return self


class ConfidenceLevels(BaseModel):
    """Score floors for the ``high`` and ``medium`` confidence buckets."""

    high: float = 0.9
    medium: float = 0.7


class ActionThresholds(BaseModel):
    """Score floors for the per-match ``merge`` and ``review`` recommendations."""

    merge: float = 0.95
    review: float = 0.75


class SuggestionConfig(BaseModel):
    """Parameters for the row-level overall confidence and suggested action."""

    merge_min_overall: float = 0.8
    match_count_penalty: float = 0.1


class DeduplicationConfig(BaseModel):
    """Top-level deduplication configuration combining all sub-configs."""

    entity_name_threshold: float = 0.75
    node_name_threshold: float = 0.80
    website_domain_weight: float = 0.9
    enable_domain_clustering: bool = True
    min_confidence_score: float = 0.6
    max_suggestions: int = 5

    entity_weights: EntityWeights = EntityWeights()
    node_weights: NodeWeights = NodeWeights()
    domain_cluster: DomainClusterConfig = DomainClusterConfig()
    confidence_levels: ConfidenceLevels = ConfidenceLevels()
    actions: ActionThresholds = ActionThresholds()
    suggestion: SuggestionConfig = SuggestionConfig()


def load_dedup_config(path: Path) -> DeduplicationConfig:
    """Load deduplication configuration from a YAML file.

    If the file does not exist, returns a ``DeduplicationConfig`` with all
    default values.  Partial overrides are supported -- only the keys
    present in the YAML file will override defaults.
    """
    if not path.exists():
        return DeduplicationConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return DeduplicationConfig(**data)
