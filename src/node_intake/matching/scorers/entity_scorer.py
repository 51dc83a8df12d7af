"""Entity-level similarity: canonical name, alternate names and website domain.

Only signals that clear their threshold contribute; the score is the
weighted average over the contributing signals.
"""

from __future__ import annotations

from node_intake.matching.combiner import WeightedSignals, percent
from node_intake.matching.config import DeduplicationConfig
from node_intake.matching.similarity import extract_domain, name_similarity, similarity
from node_intake.matching.subject import MatchSubject
from node_intake.registry.reader import EntityRecord


def entity_score(
    subject: MatchSubject, entity: EntityRecord, config: DeduplicationConfig | None = None
) -> WeightedSignals:
    """Score a staged row against one registry entity.

    Signals:
    - canonical name similarity >= ``entity_name_threshold``
    - best alternate-name similarity >= ``entity_name_threshold``
    - exact domain match (contributes ``website_domain_weight``), otherwise
      domain string similarity above ``similar_domain_threshold``
    """
    if config is None:
        config = DeduplicationConfig()
    weights = config.entity_weights
    signals = WeightedSignals()

    name_score = name_similarity(subject.entity_name, entity.master_entity_name)
    if name_score >= config.entity_name_threshold:
        signals.add(name_score, weights.name, f"entity_name_match_{percent(name_score)}%")

    if entity.alternate_names:
        best_alt = max(name_similarity(subject.entity_name, alt) for alt in entity.alternate_names)
        if best_alt >= config.entity_name_threshold:
            signals.add(best_alt, weights.alternate_name, f"alternate_name_match_{percent(best_alt)}%")

    staging_domain = extract_domain(subject.website)
    entity_domain = extract_domain(entity.website)
    if staging_domain and entity_domain:
        if staging_domain == entity_domain:
            signals.add(config.website_domain_weight, weights.exact_domain, "exact_domain_match")
        else:
            domain_score = similarity(staging_domain, entity_domain)
            if domain_score > weights.similar_domain_threshold:
                signals.add(domain_score, weights.similar_domain, f"similar_domain_{percent(domain_score)}%")

    return signals
