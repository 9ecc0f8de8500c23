"""
Recommendation selector: next problems for a topic at a target difficulty.

Steps:
1. target = max(mastery(topic) + inc, 800), mastery floored at 800 first
2. candidates: tagged with the topic, rated within target +/- 200 (low end
   floored at 800), unsolved, closest to target first, at most 200
3. relax a margin (50 .. 1000) until k problems pass: every other tag of a
   candidate must satisfy rating <= max(mastery(tag), 800) + margin
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Protocol

from loguru import logger

from cfplanner.core.models import CatalogProblem

BASELINE_RATING = 800
RATING_WINDOW = 200
CANDIDATE_POOL_SIZE = 200
MARGINS = (50, 100, 150, 200, 300, 500, 1000)


class CandidateSource(Protocol):
    """Catalog query the selector depends on."""

    def candidate_problems(
        self,
        handle: str,
        topic: str,
        min_rating: int,
        max_rating: int,
        target: int,
        limit: int,
    ) -> list[CatalogProblem]: ...


def whole_points(score: float) -> int:
    """Round a non-negative mastery score to the nearest point, halves up."""
    return math.floor(score + 0.5)


def topic_rating(ratings: Mapping[str, int], topic: str, baseline: int = BASELINE_RATING) -> int:
    """Whole-point mastery of a topic, floored at the baseline."""
    return max(ratings.get(topic, 0), baseline)


def target_rating(
    ratings: Mapping[str, int], topic: str, inc: int, baseline: int = BASELINE_RATING
) -> int:
    return max(topic_rating(ratings, topic, baseline) + inc, baseline)


def rating_window(target: int, baseline: int = BASELINE_RATING) -> tuple[int, int]:
    return max(target - RATING_WINDOW, baseline), target + RATING_WINDOW


def select_candidates(
    candidates: Sequence[CatalogProblem],
    topic: str,
    ratings: Mapping[str, int],
    k: int,
    baseline: int = BASELINE_RATING,
) -> list[CatalogProblem]:
    """
    Pick up to ``k`` candidates under the widening margin schedule.

    Candidates are expected in preference order; that order is kept within
    each margin pass.
    """
    picked: list[CatalogProblem] = []
    seen: set[str] = set()

    for margin in MARGINS:
        if len(picked) >= k:
            break
        for problem in candidates:
            if len(picked) >= k:
                break
            if problem.problem_id in seen:
                continue
            fits = all(
                problem.rating <= topic_rating(ratings, tag, baseline) + margin
                for tag in problem.tags
                if tag != topic
            )
            if fits:
                picked.append(problem)
                seen.add(problem.problem_id)

    return picked


class RecommendationSelector:
    """Runs the catalog query and the margin relaxation for one user."""

    def __init__(
        self,
        source: CandidateSource,
        baseline: int = BASELINE_RATING,
        pool_size: int = CANDIDATE_POOL_SIZE,
    ):
        self.source = source
        self.baseline = baseline
        self.pool_size = pool_size

    def recommend(
        self,
        handle: str,
        topic: str,
        ratings: Mapping[str, int],
        inc: int,
        k: int,
    ) -> list[CatalogProblem]:
        """
        Recommend up to ``k`` problems for ``topic``.

        Args:
            handle: User whose solved problems are excluded
            topic: Target topic slug
            ratings: Whole-point mastery per topic
            inc: Target difficulty increment over current mastery
            k: Number of problems wanted

        Returns:
            Problems in preference order, possibly fewer than ``k``
        """
        target = target_rating(ratings, topic, inc, self.baseline)
        low, high = rating_window(target, self.baseline)

        candidates = self.source.candidate_problems(
            handle, topic, low, high, target, self.pool_size
        )
        picked = select_candidates(candidates, topic, ratings, k, self.baseline)

        logger.debug(
            "Recommend {} for {}: target={} window=[{}, {}] candidates={} picked={}",
            topic,
            handle,
            target,
            low,
            high,
            len(candidates),
            len(picked),
        )
        return picked
