"""
Per-user tracking models.

Tables:
- user_problems: solved/unsolved status and last attempt per problem
- user_interval_stats: credit/multiplier observations and score per
  (topic, bin)
- user_topic_stats: current and peak mastery per topic, a cache that can
  always be rebuilt from user_interval_stats
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class UserProblem(Base):
    """A problem the user attempted."""

    __tablename__ = "user_problems"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    handle: Mapped[str] = mapped_column(Text, nullable=False)
    problem_id: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)  # 'solved' or 'unsolved'
    last_attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("handle", "problem_id", name="uq_user_problem"),
        Index("idx_user_problems_recent", "handle", "status", "last_attempted_at"),
    )

    def __repr__(self) -> str:
        return f"<UserProblem {self.handle}:{self.problem_id} {self.status}>"


class UserIntervalStat(Base):
    """
    Observations of one (user, topic, bin) window.

    ``credits`` and ``multipliers`` are index-aligned and append-only;
    ``bin_score`` is always recomputed from the full lists.
    """

    __tablename__ = "user_interval_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    handle: Mapped[str] = mapped_column(Text, nullable=False)
    topic_slug: Mapped[str] = mapped_column(Text, nullable=False)
    bin_idx: Mapped[int] = mapped_column(Integer, nullable=False)
    bin_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    credits: Mapped[list[float]] = mapped_column(JSON, nullable=False, default=list)
    multipliers: Mapped[list[float]] = mapped_column(JSON, nullable=False, default=list)

    last_updated: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("handle", "topic_slug", "bin_idx", name="uq_user_topic_bin"),
        Index("idx_interval_stats_handle", "handle"),
    )

    def __repr__(self) -> str:
        return f"<UserIntervalStat {self.handle}:{self.topic_slug}#{self.bin_idx} score={self.bin_score:.1f}>"


class UserTopicStat(Base):
    """Current and peak mastery of one topic for one user."""

    __tablename__ = "user_topic_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    handle: Mapped[str] = mapped_column(Text, nullable=False)
    topic_slug: Mapped[str] = mapped_column(Text, nullable=False)
    mastery_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    peak_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    last_updated: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("handle", "topic_slug", name="uq_user_topic"),)

    def __repr__(self) -> str:
        return f"<UserTopicStat {self.handle}:{self.topic_slug} {self.mastery_score:.0f}/{self.peak_score:.0f}>"
