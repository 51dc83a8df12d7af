"""Domain clustering: any registry record on the same website domain.

Records sharing the staged row's domain get a base score from the
configured domain weight, nudged by entity-name similarity.  Entities
carry no denormalized entity name, so their name share is 0.
"""

from __future__ import annotations

from node_intake.matching.config import DeduplicationConfig
from node_intake.matching.similarity import extract_domain, similarity


def domain_score(
    staging_domain: str | None,
    staging_entity_name: str,
    record_website: str | None,
    record_entity_name: str | None,
    config: DeduplicationConfig | None = None,
) -> tuple[float, list[str]] | None:
    """Return ``(score, reasons)`` for a same-domain record, else ``None``.

    ``score = domain_share * website_domain_weight + name_share * name``
    where ``name`` is the plain similarity of the two entity names.
    """
    if config is None:
        config = DeduplicationConfig()

    if not staging_domain:
        return None
    record_domain = extract_domain(record_website)
    if not record_domain or record_domain != staging_domain:
        return None

    cluster = config.domain_cluster
    name_score = similarity(staging_entity_name, record_entity_name) if record_entity_name else 0.0
    score = cluster.domain_share * config.website_domain_weight + cluster.name_share * name_score

    name_reason = "similar_name" if name_score > cluster.similar_name_threshold else "domain_only"
    return score, ["same_domain", name_reason]
