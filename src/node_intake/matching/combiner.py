"""Weighted signal accumulator and threshold-based match labelling.

Each matcher adds only the signals that cleared their threshold; the
final score is the weighted average over those signals, capped at 1.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from node_intake.matching.config import ActionThresholds, ConfidenceLevels


@dataclass
class WeightedSignals:
    """Running sum of ``score * weight`` for the signals that fired."""

    total: float = 0.0
    weight_sum: float = 0.0
    reasons: list[str] = field(default_factory=list)

    def add(self, score: float, weight: float, reason: str) -> None:
        self.total += score * weight
        self.weight_sum += weight
        self.reasons.append(reason)

    @property
    def score(self) -> float:
        """Weighted average in [0, 1]; 0.0 when nothing fired."""
        if self.weight_sum == 0:
            return 0.0
        return min(1.0, self.total / self.weight_sum)


def percent(score: float) -> int:
    """Score as a whole percentage, rounding halves up like the reason labels expect."""
    return int(score * 100 + 0.5)


def confidence_level(score: float, levels: ConfidenceLevels | None = None) -> str:
    """Bucket a match score.

    Returns:
        ``"high"`` if score >= high floor,
        ``"medium"`` if score >= medium floor,
        ``"low"`` otherwise.
    """
    if levels is None:
        levels = ConfidenceLevels()

    if score >= levels.high:
        return "high"
    if score >= levels.medium:
        return "medium"
    return "low"


def recommended_action(score: float, thresholds: ActionThresholds | None = None) -> str:
    """Per-match recommendation: ``"merge"``, ``"review"`` or ``"separate"``."""
    if thresholds is None:
        thresholds = ActionThresholds()

    if score >= thresholds.merge:
        return "merge"
    if score >= thresholds.review:
        return "review"
    return "separate"
