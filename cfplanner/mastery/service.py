"""
Mastery service: the transactional entry points of the engine.

Every write operation runs under the user's lock and inside one session
scope, so it is applied all-or-nothing:

- sync: pull judge history, credit new solves, merge bins, full recompute
- update_submission: credit one manually reported solve, cheap refresh
- refresh_and_get_all_stats: re-anchor current mastery at today's bin

Peak policy:
- a full recompute derives peak from the complete bin history
- a refresh only raises the stored peak (max of stored peak and current)
"""

from __future__ import annotations

import random
import threading
from collections import defaultdict
from collections.abc import Callable, Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session

from cfplanner.core.exceptions import AlreadySolvedError, NotSolvedError
from cfplanner.core.models import (
    CatalogProblem,
    MasteryResult,
    ProblemSolveInput,
    ProblemStatus,
    ProblemUpsert,
    SolveAttributes,
    SolveRecord,
    Submission,
    TopicGraph,
    TopicStat,
)
from cfplanner.db.repository import BinKey, MasteryRepository
from cfplanner.mastery.ancestry import AncestryIndex
from cfplanner.mastery.calculator import MasteryCalculator, topic_scores
from cfplanner.mastery.credit import submission_credit
from cfplanner.mastery.history import digest_history, hydrate_submission, parse_problem_id
from cfplanner.mastery.intervals import BinAccumulator, bin_index, merge_bin
from cfplanner.mastery.proximity import solve_attributes
from cfplanner.mastery.tags import TagMapper
from cfplanner.recommend.daily import DailyPick
from cfplanner.recommend.selector import RecommendationSelector, whole_points
from config import Settings, get_settings

SessionFactory = Callable[[], AbstractContextManager[Session]]


class UserLockRegistry:
    """One re-entrant lock per handle; different handles never contend."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, handle: str) -> Iterator[None]:
        """Hold the handle's lock; it is dropped once nobody holds or waits on it."""
        with self._guard:
            lock = self._locks.get(handle)
            if lock is None:
                lock = self._locks[handle] = threading.RLock()
            self._holders[handle] = self._holders.get(handle, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[handle] -= 1
                if not self._holders[handle]:
                    del self._holders[handle]
                    del self._locks[handle]


def topic_snapshot(stored: Mapping[str, MasteryResult]) -> list[TopicStat]:
    """Whole-point snapshot of the topics with any current mastery."""
    return [
        TopicStat(
            slug=topic,
            current=whole_points(result.current),
            peak=whole_points(result.peak),
            decay=whole_points(result.peak - result.current),
        )
        for topic, result in sorted(stored.items())
        if result.current > 0
    ]


@dataclass(frozen=True)
class SyncSummary:
    """Outcome of one sync."""

    handle: str
    new_solves: int
    unsolved: int
    bins_updated: int


class MasteryService:
    """
    Mastery engine bound to persistence and the judge.

    The ancestry index and tag mapper are built once and injected; the
    service never mutates them.
    """

    def __init__(
        self,
        ancestry: AncestryIndex,
        client: Any,
        session_factory: SessionFactory | None = None,
        tag_mapper: TagMapper | None = None,
        settings: Settings | None = None,
        calculator: MasteryCalculator | None = None,
        rng: random.Random | None = None,
        locks: UserLockRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the service.

        Args:
            ancestry: Shared ancestry index of the topic graph
            client: Submission history provider (``user_status(handle)``)
            session_factory: Transactional scope factory (default ``session_scope``)
            tag_mapper: Judge tag mapping (default tag map)
            settings: Engine settings (default from config)
            calculator: Mastery calculator
            rng: Random source of the daily pick
            locks: Per-handle lock registry
            clock: Source of "now" (UTC)
        """
        if session_factory is None:
            from cfplanner.db.database import session_scope

            session_factory = session_scope

        self.ancestry = ancestry
        self.client = client
        self.session_factory = session_factory
        self.tag_mapper = tag_mapper or TagMapper()
        self.settings = settings or get_settings()
        self.calculator = calculator or MasteryCalculator()
        self.rng = rng or random.Random()
        self.locks = locks or UserLockRegistry()
        self.clock = clock or (lambda: datetime.now(UTC))

        self.topics = tuple(sorted(set(ancestry.topics) | self.tag_mapper.topics))

    @classmethod
    def from_database(cls, client: Any, session_factory: SessionFactory | None = None, **kwargs: Any) -> MasteryService:
        """Build the ancestry index from the stored roadmap and return a service."""
        if session_factory is None:
            from cfplanner.db.database import session_scope

            session_factory = session_scope

        with session_factory() as session:
            graph = MasteryRepository(session).load_graph()
        return cls(AncestryIndex.from_graph(graph), client, session_factory, **kwargs)

    # ========================================
    # Helpers
    # ========================================

    def _now_bin(self) -> int:
        return bin_index(self.clock(), self.settings.bin_width_days)

    def _credit_topics(self, submission: Submission) -> dict[str, SolveAttributes]:
        base = submission_credit(
            submission.rating, submission.attempts, submission.time_spent_minutes
        )
        return solve_attributes(submission, base, self.topics, self.ancestry)

    def _merge_bins(
        self,
        repo: MasteryRepository,
        handle: str,
        grouped: dict[BinKey, list[SolveAttributes]],
    ) -> int:
        if not grouped:
            return 0
        stored = repo.load_bins(handle, grouped.keys(), for_update=True)
        merged = {key: merge_bin(stored.get(key), solves) for key, solves in grouped.items()}
        repo.save_bins(handle, merged)
        return len(merged)

    def _recompute(self, repo: MasteryRepository, handle: str, now_bin: int) -> dict[str, MasteryResult]:
        bins = repo.load_all_topic_bins(handle, self.topics)
        results = {
            topic: self.calculator.calculate_mastery_score(topic_scores(now_bin, bins[topic]))
            for topic in self.topics
        }
        repo.save_topic_mastery(handle, results)
        return results

    def _refresh(self, repo: MasteryRepository, handle: str, now_bin: int) -> dict[str, MasteryResult]:
        bins = repo.load_all_topic_bins(handle, self.topics)
        stored = repo.get_topic_stats(handle)
        results = {
            topic: self.calculator.refresh(
                topic_scores(now_bin, bins[topic]),
                stored.get(topic, MasteryResult()).peak,
            )
            for topic in self.topics
        }
        repo.save_topic_mastery(handle, results)
        return results

    def _stats(self, repo: MasteryRepository, handle: str) -> dict[str, MasteryResult]:
        stored = repo.get_topic_stats(handle)
        return {topic: stored.get(topic, MasteryResult()) for topic in self.topics}

    @staticmethod
    def _reject_if_solved(repo: MasteryRepository, handle: str, problem_id: str) -> None:
        if repo.problem_status(handle, problem_id) is ProblemStatus.SOLVED:
            logger.warning("Rejecting manual update for {}: {} already solved", handle, problem_id)
            raise AlreadySolvedError(problem_id)

    @staticmethod
    def _ratings(stats: Mapping[str, MasteryResult]) -> dict[str, int]:
        return {topic: whole_points(result.current) for topic, result in stats.items()}

    def _selector(self, repo: MasteryRepository) -> RecommendationSelector:
        return RecommendationSelector(
            repo,
            baseline=self.settings.baseline_rating,
            pool_size=self.settings.candidate_pool_size,
        )

    # ========================================
    # Writes
    # ========================================

    def sync(self, handle: str) -> SyncSummary:
        """
        Import the user's judge history and recompute mastery.

        Problems already marked solved are skipped. New solves are credited
        at their first accepted time; every topic is recomputed in full.
        """
        with self.locks.hold(handle):
            records = self.client.user_status(handle)

            with self.session_factory() as session:
                repo = MasteryRepository(session)
                digest = digest_history(
                    records, self.tag_mapper, skip=repo.solved_problem_ids(handle)
                )
                repo.upsert_problems(handle, digest.upserts)

                accumulator = BinAccumulator(width_days=self.settings.bin_width_days)
                for submission in digest.solves:
                    for topic, attributes in self._credit_topics(submission).items():
                        accumulator.add(topic, submission.solved_at, attributes)

                bins_updated = self._merge_bins(repo, handle, dict(accumulator.items()))
                self._recompute(repo, handle, self._now_bin())

        summary = SyncSummary(
            handle=handle,
            new_solves=len(digest.solves),
            unsolved=len(digest.upserts) - len(digest.solves),
            bins_updated=bins_updated,
        )
        logger.info(
            "Synced {}: {} new solves, {} unsolved, {} bins updated",
            handle,
            summary.new_solves,
            summary.unsolved,
            summary.bins_updated,
        )
        return summary

    def update_submission(self, handle: str, problem: ProblemSolveInput) -> dict[str, MasteryResult]:
        """
        Credit one manually reported solve.

        Raises:
            AlreadySolvedError: The problem is already marked solved
            InvalidProblemIdError: The problem id cannot be parsed
            NotSolvedError: The judge history has no accepted verdict for it
        """
        parse_problem_id(problem.problem_id)

        with self.locks.hold(handle):
            with self.session_factory() as session:
                self._reject_if_solved(MasteryRepository(session), handle, problem.problem_id)

            submission = hydrate_submission(
                self.client.user_status(handle),
                problem.problem_id,
                self.tag_mapper,
                time_spent_minutes=problem.time_spent_minutes,
            )
            if submission is None:
                logger.warning("Rejecting manual update for {}: {} not accepted", handle, problem.problem_id)
                raise NotSolvedError(problem.problem_id)

            solve_bin = bin_index(submission.solved_at, self.settings.bin_width_days)
            grouped: dict[BinKey, list[SolveAttributes]] = defaultdict(list)
            for topic, attributes in self._credit_topics(submission).items():
                grouped[(topic, solve_bin)].append(attributes)

            with self.session_factory() as session:
                repo = MasteryRepository(session)
                # Another process may have credited it while the judge was queried
                self._reject_if_solved(repo, handle, problem.problem_id)
                repo.upsert_problems(
                    handle,
                    [ProblemUpsert(problem.problem_id, ProblemStatus.SOLVED, submission.solved_at)],
                )
                self._merge_bins(repo, handle, dict(grouped))
                results = self._refresh(repo, handle, self._now_bin())

        logger.info(
            "Credited {} for {} ({} attempts, {} topics)",
            problem.problem_id,
            handle,
            submission.attempts,
            len(grouped),
        )
        return results

    # ========================================
    # Reads
    # ========================================

    def get_all_stats(self, handle: str) -> dict[str, MasteryResult]:
        """Stored mastery of every topic (0/0 where nothing is stored)."""
        with self.session_factory() as session:
            return self._stats(MasteryRepository(session), handle)

    def roadmap(self, handle: str) -> tuple[TopicGraph, dict[str, MasteryResult]]:
        """The stored topic graph together with the user's mastery of every topic."""
        with self.session_factory() as session:
            repo = MasteryRepository(session)
            return repo.load_graph(), self._stats(repo, handle)

    def refresh_and_get_all_stats(self, handle: str) -> dict[str, MasteryResult]:
        """Re-anchor current mastery at today's bin, then return every topic."""
        with self.locks.hold(handle):
            with self.session_factory() as session:
                repo = MasteryRepository(session)
                self._refresh(repo, handle, self._now_bin())
                return self._stats(repo, handle)

    def recommend_problem(
        self,
        handle: str,
        topic: str,
        inc: int | None = None,
        k: int | None = None,
    ) -> list[CatalogProblem]:
        """Up to ``k`` unsolved problems for ``topic`` just above current mastery."""
        inc = self.settings.default_target_increment if inc is None else inc
        k = self.settings.default_recommendation_count if k is None else k

        with self.session_factory() as session:
            repo = MasteryRepository(session)
            ratings = self._ratings(repo.get_topic_stats(handle))
            return self._selector(repo).recommend(handle, topic, ratings, inc, k)

    def recommend_daily_problem(self, handle: str) -> CatalogProblem:
        """
        One problem for today.

        Raises:
            NoRecommendationError: If even the fallback topic has no candidate
        """
        with self.session_factory() as session:
            repo = MasteryRepository(session)
            stored = repo.get_topic_stats(handle)
            stats = topic_snapshot(stored)
            daily = DailyPick(
                self._selector(repo),
                rng=self.rng,
                increment=self.settings.daily_target_increment,
                fallback_topic=self.settings.fallback_topic,
            )
            return daily.pick(handle, stats, self._ratings(stored))

    def recent_problems(
        self,
        handle: str,
        k: int = 10,
        status: ProblemStatus = ProblemStatus.SOLVED,
    ) -> list[SolveRecord]:
        """Last ``k`` problems with ``status``, newest first."""
        with self.session_factory() as session:
            return MasteryRepository(session).recent_problems(handle, k, status)
