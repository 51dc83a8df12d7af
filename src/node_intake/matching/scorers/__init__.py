"""Matching signal scorers -- pure functions over a staged row and registry records."""

from node_intake.matching.scorers.domain_scorer import domain_score
from node_intake.matching.scorers.entity_scorer import entity_score
from node_intake.matching.scorers.node_scorer import node_score

__all__ = ["domain_score", "entity_score", "node_score"]
