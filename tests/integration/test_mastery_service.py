"""
Integration tests for MasteryService.

Runs the full engine against in-memory SQLite and a fake judge:
- sync and its idempotency
- manual submissions and their rejections
- refresh at a later bin
- recommendations and the daily pick
"""

import math
import random
import threading
import time
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from cfplanner.catalog.seed import seed_catalog
from cfplanner.core.exceptions import (
    AlreadySolvedError,
    HandleNotFoundError,
    InvalidProblemIdError,
    NoRecommendationError,
    NotSolvedError,
)
from cfplanner.core.models import MasteryResult, ProblemSolveInput, ProblemStatus, ProblemUpsert
from cfplanner.db.models import UserIntervalStat, UserProblem, UserTopicStat
from cfplanner.db.repository import MasteryRepository
from cfplanner.mastery.intervals import bin_index
from cfplanner.mastery.service import MasteryService, UserLockRegistry, topic_snapshot
from config import Settings

DP_BIN = 1600 / 1.5
DP_CURRENT = DP_BIN / 1.2


class Clock:
    """Settable time source."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock(solve_time):
    return Clock(solve_time + timedelta(hours=1))


@pytest.fixture
def service(ancestry, judge, session_factory, clock):
    return MasteryService(
        ancestry,
        judge,
        session_factory=session_factory,
        settings=Settings(),
        rng=random.Random(5),
        clock=clock,
    )


@pytest.fixture
def seed(session_factory):
    """Seed topics, roadmap and the given raw problems."""

    def _seed(*problems):
        with session_factory() as session:
            seed_catalog(MasteryRepository(session), list(problems))

    return _seed


def _raw(problem_id, rating, tags, name="Problem"):
    digits = problem_id.rstrip("ABCDEFGH")
    return {
        "contestId": int(digits),
        "index": problem_id[len(digits):],
        "name": name,
        "rating": rating,
        "tags": list(tags),
    }


class TestSync:
    """Batch import of judge history."""

    def test_single_solve_credits_ancestors(self, service, judge, make_attempt, solve_time):
        judge.add("alice", make_attempt("100A", "OK", solve_time))

        summary = service.sync("alice")
        stats = service.get_all_stats("alice")

        assert summary.new_solves == 1
        assert summary.unsolved == 0
        assert stats["dynamic programming"].current == pytest.approx(DP_CURRENT)
        assert stats["dynamic programming"].peak == pytest.approx(DP_CURRENT)
        assert stats["greedy"].current == pytest.approx(1200 / 1.5 / 1.2)
        assert stats["implementation"].current == pytest.approx(500.0)
        assert stats["graphs"].current == 0.0

    def test_bins_stored(self, service, judge, make_attempt, solve_time, session_factory):
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")

        with session_factory() as session:
            bins = MasteryRepository(session).load_all_topic_bins("alice", ["dynamic programming"])
        [score] = bins["dynamic programming"].values()
        assert score == pytest.approx(DP_BIN)

    def test_sync_twice_is_idempotent(self, service, judge, make_attempt, solve_time):
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")
        first = service.get_all_stats("alice")

        summary = service.sync("alice")

        assert summary.new_solves == 0
        assert summary.bins_updated == 0
        assert service.get_all_stats("alice") == first

    def test_retries_count_toward_attempts(self, service, judge, make_attempt, solve_time):
        judge.add(
            "alice",
            make_attempt("100A", "COMPILATION_ERROR", solve_time - timedelta(minutes=10)),
            make_attempt("100A", "WRONG_ANSWER", solve_time - timedelta(minutes=20)),
        )
        judge.add("alice", make_attempt("100A", "OK", solve_time))

        service.sync("alice")

        credit = 1600 * (0.5 + 0.5 * math.exp(-0.1))
        stats = service.get_all_stats("alice")
        assert stats["dynamic programming"].current == pytest.approx(credit / 1.5 / 1.2)

    def test_unsolved_recorded(self, service, judge, make_attempt, solve_time, session_factory):
        judge.add("alice", make_attempt("200B", "WRONG_ANSWER", solve_time))

        summary = service.sync("alice")

        assert summary.new_solves == 0
        assert summary.unsolved == 1
        with session_factory() as session:
            assert MasteryRepository(session).problem_status("alice", "200B") is ProblemStatus.UNSOLVED
        assert all(r.current == 0.0 for r in service.get_all_stats("alice").values())

    def test_unknown_handle_writes_nothing(self, service, session_factory):
        with pytest.raises(HandleNotFoundError):
            service.sync("ghost")

        with session_factory() as session:
            assert MasteryRepository(session).get_topic_stats("ghost") == {}


class TestUpdateSubmission:
    """Manually reported solves."""

    def test_credits_accepted_problem(self, service, judge, make_attempt, solve_time):
        judge.add(
            "alice",
            make_attempt("1520F2", "WRONG_ANSWER", solve_time - timedelta(minutes=5), 2000, ("binary search",)),
        )
        judge.add("alice", make_attempt("1520F2", "OK", solve_time, 2000, ("binary search",)))

        results = service.update_submission("alice", ProblemSolveInput("1520F2", time_spent_minutes=45))

        credit = 2000 * (0.5 + 0.5 * math.exp(-0.1))
        assert results["searching"].current == pytest.approx(credit / 1.5 / 1.2)
        assert results["searching"].peak == pytest.approx(credit / 1.5 / 1.2)
        assert results["sortings"].current > 0
        assert results["dynamic programming"].current == 0.0

    def test_already_solved(self, service, judge, make_attempt, solve_time):
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")

        with pytest.raises(AlreadySolvedError):
            service.update_submission("alice", ProblemSolveInput("100A"))

    def test_invalid_id_checked_before_judge(self, service, judge):
        with pytest.raises(InvalidProblemIdError):
            service.update_submission("alice", ProblemSolveInput("A100"))
        assert judge.calls == []

    def test_not_solved(self, service, judge, make_attempt, solve_time, session_factory):
        judge.add("alice", make_attempt("100A", "WRONG_ANSWER", solve_time))

        with pytest.raises(NotSolvedError):
            service.update_submission("alice", ProblemSolveInput("100A"))

        with session_factory() as session:
            assert MasteryRepository(session).problem_status("alice", "100A") is None


class TestRefresh:
    """Re-anchoring current mastery at a later bin."""

    def test_current_decays_peak_kept(self, service, judge, make_attempt, solve_time, clock):
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")

        clock.now = clock.now + timedelta(days=14)
        stats = service.refresh_and_get_all_stats("alice")

        weight = math.exp(-0.05)
        expected = DP_BIN * weight / 1.2
        assert stats["dynamic programming"].current == pytest.approx(expected)
        assert stats["dynamic programming"].peak == pytest.approx(DP_CURRENT)

    def test_get_all_stats_covers_every_topic(self, service):
        stats = service.get_all_stats("nobody")
        assert set(stats) == set(service.topics)
        assert "tree dp" in stats
        assert all(r.current == 0.0 and r.peak == 0.0 for r in stats.values())


class TestRecommendations:
    """Topic recommendations and the daily pick."""

    def test_recommend_problem(self, service, judge, make_attempt, solve_time, seed):
        seed(
            _raw("10A", 900, ["dp"]),
            _raw("11A", 1000, ["dp"]),
            _raw("12A", 1500, ["dp"]),
            _raw("13A", 950, ["dp", "graphs"]),
        )
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")

        picked = service.recommend_problem("alice", "dynamic programming")

        assert [p.problem_id for p in picked] == ["10A", "11A", "13A"]

    def test_recommend_limit(self, service, seed):
        seed(_raw("10A", 820, ["greedy"]), _raw("11A", 850, ["greedy"]))
        picked = service.recommend_problem("alice", "greedy", inc=0, k=1)
        assert [p.problem_id for p in picked] == ["10A"]

    def test_daily_finds_foundation_problem(self, service, judge, make_attempt, solve_time, seed):
        seed(_raw("10A", 900, ["implementation"]))
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")

        assert service.recommend_daily_problem("alice").problem_id == "10A"

    def test_daily_without_catalog(self, service, judge, make_attempt, solve_time):
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")

        with pytest.raises(NoRecommendationError):
            service.recommend_daily_problem("alice")


class TestActivity:
    """Recent problem listing and service wiring."""

    def test_recent_problems(self, service, judge, make_attempt, solve_time, seed):
        seed(_raw("100A", 1600, ["dp"], name="Knapsack"))
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")

        [record] = service.recent_problems("alice")
        assert record.problem_id == "100A"
        assert record.name == "Knapsack"
        assert record.last_attempted_at == solve_time
        assert service.recent_problems("alice", status=ProblemStatus.UNSOLVED) == []

    def test_from_database(self, judge, session_factory, seed):
        seed()
        service = MasteryService.from_database(judge, session_factory, settings=Settings())
        assert service.ancestry.distance("tree dp", "implementation") == 3
        assert "tree dp" in service.topics

    def test_roadmap(self, service, judge, make_attempt, solve_time, seed):
        seed()
        judge.add("alice", make_attempt("100A", "OK", solve_time))
        service.sync("alice")

        graph, stats = service.roadmap("alice")

        assert len(graph.edges) == 19
        assert set(stats) == set(service.topics)
        assert stats["dynamic programming"].current == pytest.approx(DP_CURRENT)


class TestWholePoints:
    """Float mastery converted for recommendations."""

    def test_ratings_round(self):
        ratings = MasteryService._ratings(
            {"graphs": MasteryResult(1199.7, 1199.7), "math": MasteryResult(1199.4, 1300.0)}
        )
        assert ratings == {"graphs": 1200, "math": 1199}

    def test_snapshot_decay_rounded_from_difference(self):
        [stat] = topic_snapshot(
            {"graphs": MasteryResult(1000.4, 1300.8), "math": MasteryResult(0.0, 500.0)}
        )
        assert (stat.slug, stat.current, stat.peak, stat.decay) == ("graphs", 1000, 1301, 300)


class TestTransactions:
    """All-or-nothing writes and same-user serialization."""

    def test_failed_sync_leaves_no_rows(
        self, service, judge, make_attempt, solve_time, session_factory, monkeypatch
    ):
        judge.add(
            "alice",
            make_attempt("100A", "OK", solve_time),
            make_attempt("200B", "WRONG_ANSWER", solve_time),
        )

        def fail(self, handle, results):
            raise RuntimeError("disk full")

        monkeypatch.setattr(MasteryRepository, "save_topic_mastery", fail)

        with pytest.raises(RuntimeError):
            service.sync("alice")

        with session_factory() as session:
            for model in (UserProblem, UserIntervalStat, UserTopicStat):
                assert session.execute(select(func.count()).select_from(model)).scalar_one() == 0

    def test_concurrent_syncs_credit_each_solve_once(
        self, ancestry, session_factory, clock, make_attempt, solve_time
    ):
        class GrowingJudge:
            """Every call reveals one more accepted solve."""

            def __init__(self):
                self.records = []
                self.guard = threading.Lock()

            def user_status(self, handle):
                with self.guard:
                    n = len(self.records)
                    self.records.insert(
                        0, make_attempt(f"{100 + n}A", "OK", solve_time + timedelta(minutes=n))
                    )
                    records = list(self.records)
                time.sleep(0.05)
                return records

        service = MasteryService(
            ancestry, GrowingJudge(), session_factory=session_factory, settings=Settings(), clock=clock
        )
        errors = []

        def run():
            try:
                service.sync("alice")
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert errors == []
        with session_factory() as session:
            repo = MasteryRepository(session)
            key = ("dynamic programming", bin_index(solve_time))
            bins = repo.load_bins("alice", [key], for_update=False)
            assert repo.solved_problem_ids("alice") == {"100A", "101A"}
        assert bins[key].credits == (1600.0, 1600.0)

    def test_manual_update_rechecks_status_before_writing(
        self, ancestry, session_factory, clock, make_attempt, solve_time
    ):
        class RacingJudge:
            """Another writer marks the problem solved while the judge answers."""

            def user_status(self, handle):
                with session_factory() as session:
                    MasteryRepository(session).upsert_problems(
                        handle, [ProblemUpsert("100A", ProblemStatus.SOLVED, solve_time)]
                    )
                return [make_attempt("100A", "OK", solve_time)]

        service = MasteryService(
            ancestry, RacingJudge(), session_factory=session_factory, settings=Settings(), clock=clock
        )

        with pytest.raises(AlreadySolvedError):
            service.update_submission("alice", ProblemSolveInput("100A"))

        with session_factory() as session:
            bins = MasteryRepository(session).load_all_topic_bins("alice", ["dynamic programming"])
        assert bins == {"dynamic programming": {}}


class TestUserLockRegistry:
    """Per-handle locking."""

    def test_reentrant_and_dropped_after_release(self):
        locks = UserLockRegistry()
        with locks.hold("alice"):
            with locks.hold("alice"):
                assert len(locks) == 1
            with locks.hold("bob"):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_same_handle_waits_other_handle_does_not(self):
        locks = UserLockRegistry()
        entered = threading.Event()
        release = threading.Event()
        order = []

        def first():
            with locks.hold("alice"):
                entered.set()
                release.wait(5)
                order.append("first")

        def second():
            entered.wait(5)
            with locks.hold("alice"):
                order.append("second")

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for thread in threads:
            thread.start()

        entered.wait(5)
        with locks.hold("bob"):
            order.append("bob")
        time.sleep(0.05)
        assert "second" not in order

        release.set()
        for thread in threads:
            thread.join(5)

        assert order == ["bob", "first", "second"]
        assert len(locks) == 0
