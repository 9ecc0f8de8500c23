"""
Daily pick: one problem per day, balancing regression repair and momentum.

Roll 0-99 on the injected random source:
- < 50: most-regressed topics first (largest decay, then lowest current)
- < 80: topics in active practice first (smallest decay, then highest current)
- else: random order

The top three topics are shuffled and tried in turn with a +100 target and
k=1. When none yields a problem, the foundational fallback topic is used.
"""

from __future__ import annotations

import random
from collections.abc import Mapping, Sequence

from loguru import logger

from cfplanner.core.exceptions import NoRecommendationError
from cfplanner.core.models import CatalogProblem, TopicStat
from cfplanner.recommend.selector import RecommendationSelector

DAILY_INCREMENT = 100
SHORTLIST_SIZE = 3
FALLBACK_TOPIC = "implementation"


class DailyPick:
    """Chooses the daily problem for a user from their mastery snapshot."""

    def __init__(
        self,
        selector: RecommendationSelector,
        rng: random.Random | None = None,
        increment: int = DAILY_INCREMENT,
        fallback_topic: str = FALLBACK_TOPIC,
    ):
        self.selector = selector
        self.rng = rng or random.Random()
        self.increment = increment
        self.fallback_topic = fallback_topic

    def order_topics(self, stats: Sequence[TopicStat]) -> list[TopicStat]:
        """Order active topics according to one roll of the random source."""
        active = [s for s in stats if s.current > 0]
        roll = self.rng.randrange(100)

        if roll < 50:
            active.sort(key=lambda s: (-s.decay, s.current))
        elif roll < 80:
            active.sort(key=lambda s: (s.decay, -s.current))
        else:
            self.rng.shuffle(active)

        logger.debug("Daily roll {} over {} active topics", roll, len(active))
        return active

    def shortlist(self, stats: Sequence[TopicStat]) -> list[TopicStat]:
        ordered = self.order_topics(stats)
        picks = ordered[:SHORTLIST_SIZE]
        self.rng.shuffle(picks)
        return picks

    def pick(
        self,
        handle: str,
        stats: Sequence[TopicStat],
        ratings: Mapping[str, int],
    ) -> CatalogProblem:
        """
        Pick today's problem.

        Raises:
            NoRecommendationError: If even the fallback topic has no candidate
        """
        for stat in self.shortlist(stats):
            found = self.selector.recommend(handle, stat.slug, ratings, self.increment, 1)
            if found:
                logger.info("Daily pick for {}: {} ({})", handle, found[0].problem_id, stat.slug)
                return found[0]

        found = self.selector.recommend(handle, self.fallback_topic, ratings, self.increment, 1)
        if found:
            logger.info("Daily pick for {}: {} (fallback)", handle, found[0].problem_id)
            return found[0]

        logger.warning("No daily problem available for {}", handle)
        raise NoRecommendationError(f"no problems found for {handle}")
