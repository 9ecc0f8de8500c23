"""
Unit tests for the proximity multiplier and per-topic solve attributes.
"""

from datetime import UTC, datetime

import pytest

from cfplanner.core.models import Submission
from cfplanner.mastery.credit import base_credit
from cfplanner.mastery.proximity import get_multiplier, solve_attributes


def _submission(*topics, rating=1600, attempts=1):
    return Submission(
        problem_id="1520F",
        rating=rating,
        attempts=attempts,
        topic_slugs=tuple(topics),
        solved_at=datetime(2024, 3, 4, tzinfo=UTC),
    )


class TestGetMultiplier:
    """Graph decay of 0.75 per hop."""

    def test_own_topic(self, ancestry):
        assert get_multiplier("dynamic programming", ["dynamic programming"], ancestry) == 1.0

    def test_parent(self, ancestry):
        assert get_multiplier("greedy", ["dynamic programming"], ancestry) == pytest.approx(0.75)

    def test_grandparent(self, ancestry):
        assert get_multiplier("implementation", ["dynamic programming"], ancestry) == pytest.approx(0.5625)

    def test_unreachable_is_zero(self, ancestry):
        assert get_multiplier("graphs", ["dynamic programming"], ancestry) == 0.0

    def test_descendant_is_zero(self, ancestry):
        assert get_multiplier("dynamic programming", ["greedy"], ancestry) == 0.0

    def test_nearest_tag_wins(self, ancestry):
        tags = ["dynamic programming", "tree dp", "trees"]
        assert get_multiplier("graphs", tags, ancestry) == pytest.approx(0.75)
        assert get_multiplier("implementation", tags, ancestry) == pytest.approx(0.5625)

    def test_unknown_tag_ignored(self, ancestry):
        assert get_multiplier("greedy", ["interactive", "greedy"], ancestry) == 1.0


class TestSolveAttributes:
    """Credit flow of one solve to every topic."""

    def test_end_to_end_dp_solve(self, ancestry):
        submission = _submission("dynamic programming")
        base = base_credit(submission.rating, submission.attempts)
        attrs = solve_attributes(submission, base, ancestry.topics, ancestry)

        assert attrs["dynamic programming"].credit == pytest.approx(1600)
        assert attrs["dynamic programming"].multiplier == 1.0
        assert attrs["implementation"].credit == pytest.approx(900)
        assert attrs["implementation"].multiplier == pytest.approx(0.5625)
        assert set(attrs) == {"dynamic programming", "greedy", "implementation"}

    def test_no_tracked_topics_credits_nothing(self, ancestry):
        assert solve_attributes(_submission(), 1600, ancestry.topics, ancestry) == {}

    def test_every_multiplier_positive(self, ancestry):
        attrs = solve_attributes(_submission("tree dp"), 2000, ancestry.topics, ancestry)
        assert all(0 < a.multiplier <= 1 for a in attrs.values())
