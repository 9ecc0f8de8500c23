"""
Mastery repository: the persistence collaborator of the mastery engine.

Wraps one SQLAlchemy session; never commits. The caller owns the
transaction (see ``session_scope``), so a sync or manual submission is
applied all-or-nothing.

Merge rules enforced here:
- a problem marked solved is never downgraded to unsolved
- last_attempted_at only moves forward
- bin lists are replaced wholesale with the merged lists and their score
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cfplanner.core.models import (
    BinState,
    CatalogProblem,
    MasteryResult,
    ProblemStatus,
    ProblemUpsert,
    SolveRecord,
    Topic,
    TopicEdge,
    TopicGraph,
)
from cfplanner.db.models import (
    ProblemRow,
    ProblemTag,
    TopicDependency,
    TopicRow,
    UserIntervalStat,
    UserProblem,
    UserTopicStat,
)

BinKey = tuple[str, int]


def _utc(instant: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


class MasteryRepository:
    """Reads and writes catalog and per-user mastery state."""

    def __init__(self, session: Session):
        self.session = session

    # ========================================
    # Topic graph
    # ========================================

    def load_graph(self) -> TopicGraph:
        """Load every topic and prerequisite edge, with ids resolved to slugs."""
        rows = self.session.execute(select(TopicRow).order_by(TopicRow.slug)).scalars().all()
        slug_by_id = {row.id: row.slug for row in rows}

        edges = []
        for dep in self.session.execute(select(TopicDependency)).scalars().all():
            parent = slug_by_id.get(dep.parent_id)
            child = slug_by_id.get(dep.child_id)
            if parent is None or child is None:
                logger.warning("Dangling topic dependency {} -> {}", dep.parent_id, dep.child_id)
                continue
            edges.append(TopicEdge(parent=parent, child=child))

        return TopicGraph(
            topics=tuple(Topic(slug=row.slug, display_name=row.display_name) for row in rows),
            edges=tuple(edges),
        )

    def upsert_topic(self, slug: str, display_name: str) -> TopicRow:
        row = self.session.execute(select(TopicRow).where(TopicRow.slug == slug)).scalar_one_or_none()
        if row is None:
            row = TopicRow(slug=slug, display_name=display_name)
            self.session.add(row)
            self.session.flush()
        else:
            row.display_name = display_name
        return row

    def link_topics(self, parent: str, child: str) -> bool:
        """
        Add a prerequisite edge between two existing topics.

        Returns:
            True if the edge was created, False if it existed or a topic is missing
        """
        rows = self.session.execute(
            select(TopicRow).where(TopicRow.slug.in_([parent, child]))
        ).scalars().all()
        ids = {row.slug: row.id for row in rows}
        if parent not in ids or child not in ids:
            logger.warning("Cannot link {} -> {}: unknown topic", parent, child)
            return False

        existing = self.session.get(TopicDependency, (ids[parent], ids[child]))
        if existing is not None:
            return False

        self.session.add(TopicDependency(parent_id=ids[parent], child_id=ids[child]))
        self.session.flush()
        return True

    # ========================================
    # Problem catalog
    # ========================================

    def upsert_problem(self, problem: CatalogProblem) -> None:
        """Insert a catalog problem or refresh its rating and topics."""
        row = self.session.get(ProblemRow, problem.problem_id)
        if row is None:
            row = ProblemRow(problem_id=problem.problem_id, name=problem.name, rating=problem.rating)
            self.session.add(row)
        else:
            row.rating = problem.rating

        current = {tag.topic_slug for tag in row.tags}
        wanted = set(problem.tags)
        if current != wanted:
            row.tags = [tag for tag in row.tags if tag.topic_slug in wanted]
            row.tags.extend(ProblemTag(topic_slug=slug) for slug in sorted(wanted - current))
        self.session.flush()

    def candidate_problems(
        self,
        handle: str,
        topic: str,
        min_rating: int,
        max_rating: int,
        target: int,
        limit: int,
    ) -> list[CatalogProblem]:
        """
        Unsolved problems tagged with ``topic`` in a rating window.

        Ordered by distance from ``target`` (ties by problem id).
        """
        solved = select(UserProblem.problem_id).where(
            UserProblem.handle == handle,
            UserProblem.status == ProblemStatus.SOLVED.value,
        )
        stmt = (
            select(ProblemRow)
            .join(ProblemTag, ProblemTag.problem_id == ProblemRow.problem_id)
            .where(
                ProblemTag.topic_slug == topic,
                ProblemRow.rating.between(min_rating, max_rating),
                ProblemRow.problem_id.not_in(solved),
            )
            .order_by(func.abs(ProblemRow.rating - target), ProblemRow.problem_id)
            .limit(limit)
        )
        rows = self.session.execute(stmt).scalars().all()
        return [
            CatalogProblem(
                problem_id=row.problem_id,
                name=row.name,
                rating=row.rating,
                tags=row.topic_slugs,
            )
            for row in rows
        ]

    # ========================================
    # User problems
    # ========================================

    def solved_problem_ids(self, handle: str) -> set[str]:
        stmt = select(UserProblem.problem_id).where(
            UserProblem.handle == handle,
            UserProblem.status == ProblemStatus.SOLVED.value,
        )
        return set(self.session.execute(stmt).scalars().all())

    def problem_status(self, handle: str, problem_id: str) -> ProblemStatus | None:
        stmt = select(UserProblem.status).where(
            UserProblem.handle == handle, UserProblem.problem_id == problem_id
        )
        status = self.session.execute(stmt).scalar_one_or_none()
        return ProblemStatus(status) if status is not None else None

    def upsert_problems(self, handle: str, upserts: Iterable[ProblemUpsert]) -> int:
        """
        Apply status changes under the merge rule.

        Returns:
            Number of upserts applied
        """
        upserts = list(upserts)
        if not upserts:
            return 0

        ids = {u.problem_id for u in upserts}
        existing = {
            row.problem_id: row
            for row in self.session.execute(
                select(UserProblem).where(
                    UserProblem.handle == handle, UserProblem.problem_id.in_(ids)
                )
            ).scalars()
        }

        for upsert in upserts:
            attempted_at = _utc(upsert.attempted_at)
            row = existing.get(upsert.problem_id)
            if row is None:
                row = UserProblem(
                    handle=handle,
                    problem_id=upsert.problem_id,
                    status=upsert.status.value,
                    last_attempted_at=attempted_at,
                )
                self.session.add(row)
                existing[upsert.problem_id] = row
                continue

            if row.status != ProblemStatus.SOLVED.value:
                row.status = upsert.status.value
            row.last_attempted_at = max(_utc(row.last_attempted_at), attempted_at)

        self.session.flush()
        return len(upserts)

    def recent_problems(self, handle: str, k: int, status: ProblemStatus) -> list[SolveRecord]:
        """Last ``k`` problems with ``status``, newest attempt first."""
        stmt = (
            select(UserProblem, ProblemRow)
            .join(ProblemRow, ProblemRow.problem_id == UserProblem.problem_id)
            .where(UserProblem.handle == handle, UserProblem.status == status.value)
            .order_by(UserProblem.last_attempted_at.desc())
            .limit(k)
        )
        return [
            SolveRecord(
                problem_id=problem.problem_id,
                name=problem.name,
                rating=problem.rating,
                last_attempted_at=_utc(user_problem.last_attempted_at),
                tags=problem.topic_slugs,
            )
            for user_problem, problem in self.session.execute(stmt).all()
        ]

    # ========================================
    # Interval bins
    # ========================================

    def _bin_rows(
        self, handle: str, keys: Iterable[BinKey], for_update: bool = False
    ) -> dict[BinKey, UserIntervalStat]:
        keys = set(keys)
        if not keys:
            return {}

        stmt = select(UserIntervalStat).where(
            UserIntervalStat.handle == handle,
            UserIntervalStat.topic_slug.in_({topic for topic, _ in keys}),
            UserIntervalStat.bin_idx.in_({idx for _, idx in keys}),
        )
        if for_update:
            stmt = stmt.with_for_update()

        rows = {}
        for row in self.session.execute(stmt).scalars():
            key = (row.topic_slug, row.bin_idx)
            if key in keys:
                rows[key] = row
        return rows

    def load_bins(
        self, handle: str, keys: Iterable[BinKey], for_update: bool = True
    ) -> dict[BinKey, BinState]:
        """Stored state of the requested bins; missing bins are left out."""
        return {
            key: BinState(
                credits=tuple(row.credits or ()),
                multipliers=tuple(row.multipliers or ()),
                score=row.bin_score,
            )
            for key, row in self._bin_rows(handle, keys, for_update).items()
        }

    def save_bins(self, handle: str, states: Mapping[BinKey, BinState]) -> None:
        """Persist merged bins (lists and score together)."""
        rows = self._bin_rows(handle, states.keys())
        for (topic, idx), state in states.items():
            row = rows.get((topic, idx))
            if row is None:
                row = UserIntervalStat(handle=handle, topic_slug=topic, bin_idx=idx)
                self.session.add(row)
            row.credits = list(state.credits)
            row.multipliers = list(state.multipliers)
            row.bin_score = state.score
        self.session.flush()

    def load_all_topic_bins(self, handle: str, topics: Iterable[str]) -> dict[str, dict[int, float]]:
        """Bin scores of every topic, ``{topic: {bin_idx: score}}``."""
        out: dict[str, dict[int, float]] = {topic: {} for topic in topics}
        stmt = select(
            UserIntervalStat.topic_slug, UserIntervalStat.bin_idx, UserIntervalStat.bin_score
        ).where(UserIntervalStat.handle == handle)
        for topic, idx, score in self.session.execute(stmt):
            if topic in out:
                out[topic][idx] = score
        return out

    # ========================================
    # Topic mastery
    # ========================================

    def get_topic_stats(self, handle: str) -> dict[str, MasteryResult]:
        stmt = select(UserTopicStat).where(UserTopicStat.handle == handle)
        return {
            row.topic_slug: MasteryResult(current=row.mastery_score, peak=row.peak_score)
            for row in self.session.execute(stmt).scalars()
        }

    def save_topic_mastery(self, handle: str, results: Mapping[str, MasteryResult]) -> None:
        rows = {
            row.topic_slug: row
            for row in self.session.execute(
                select(UserTopicStat).where(UserTopicStat.handle == handle)
            ).scalars()
        }
        for topic, result in results.items():
            row = rows.get(topic)
            if row is None:
                row = UserTopicStat(handle=handle, topic_slug=topic)
                self.session.add(row)
            row.mastery_score = result.current
            row.peak_score = result.peak
        self.session.flush()
