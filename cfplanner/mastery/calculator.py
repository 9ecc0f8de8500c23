"""
Mastery calculator: combines a topic's bin scores into current and peak mastery.

Design:
- Scores are ordered most recent first: index 0 is the current bin,
  index i is i bins ago.
- Current score is a recency-weighted power mean:
      p   = max(scores)
      w_i = e^(-0.05 * i) * (score_i / p) ** 3
      current = sum(score_i * w_i) / max(sum(w_i), 1.2)
- Peak score is the best current score obtainable by anchoring the same
  formula at any earlier bin: max over i of current(scores[i:]).
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from cfplanner.core.models import MasteryResult


def topic_scores(current_bin: int, bin_scores: Mapping[int, float]) -> list[float]:
    """
    Build the most-recent-first score sequence of one topic.

    Walks from ``current_bin`` down to the earliest bin that has a stored
    score. Bins without a record sit at their position with score 0.

    Args:
        current_bin: Bin index of "now"
        bin_scores: Stored bin scores keyed by bin index

    Returns:
        Scores, index 0 = current bin
    """
    if not bin_scores:
        return []
    earliest = min(min(bin_scores), current_bin)
    return [bin_scores.get(i, 0.0) for i in range(current_bin, earliest - 1, -1)]


class MasteryCalculator:
    """
    Recency-weighted mastery with a historical high-water mark.

    Two call modes:
    - full recompute (``calculate_mastery_score``) returns current and peak,
      rescanning every anchor; O(n^2) in bin count
    - refresh (``refresh``) computes current only and bumps the stored peak
    """

    RECENCY_DECAY = 0.05
    CONFIDENCE_FLOOR = 1.2

    def __init__(self, recency_decay: float = RECENCY_DECAY, confidence_floor: float = CONFIDENCE_FLOOR):
        """
        Initialize calculator.

        Args:
            recency_decay: Per-bin exponential decay of older bins
            confidence_floor: Lower bound on the weight normalizer
        """
        self.recency_decay = recency_decay
        self.confidence_floor = confidence_floor

    def calculate_mastery_current_score(self, scores: Sequence[float]) -> float:
        """Recency-weighted score anchored at ``scores[0]``."""
        if not scores:
            return 0.0

        p = max(scores)
        if p <= 0:
            return 0.0

        numerator = 0.0
        denominator = 0.0
        for i, score in enumerate(scores):
            weight = math.exp(-self.recency_decay * i) * (score / p) ** 3
            numerator += score * weight
            denominator += weight

        if denominator == 0:
            return 0.0
        return numerator / max(denominator, self.confidence_floor)

    def calculate_peak_score(self, scores: Sequence[float]) -> float:
        """Best current score over every anchor bin."""
        peak = 0.0
        for i in range(len(scores)):
            peak = max(peak, self.calculate_mastery_current_score(scores[i:]))
        return peak

    def calculate_mastery_score(self, scores: Sequence[float]) -> MasteryResult:
        """Full recompute: current and peak from the complete bin history."""
        current = self.calculate_mastery_current_score(scores)
        peak = max(current, self.calculate_peak_score(scores[1:]))
        return MasteryResult(current=current, peak=peak)

    def refresh(self, scores: Sequence[float], stored_peak: float) -> MasteryResult:
        """Cheap update: new current, peak only ever moves up."""
        current = self.calculate_mastery_current_score(scores)
        return MasteryResult(current=current, peak=max(stored_peak, current))


_default = MasteryCalculator()


def calculate_mastery_current_score(scores: Sequence[float]) -> float:
    """Current score with default parameters."""
    return _default.calculate_mastery_current_score(scores)


def calculate_mastery_score(scores: Sequence[float]) -> MasteryResult:
    """Current and peak score with default parameters."""
    return _default.calculate_mastery_score(scores)
