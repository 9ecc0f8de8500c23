"""
Catalog models: the topic roadmap and the rated problem set.

Tables:
- topics: roadmap nodes
- topic_dependencies: prerequisite edges (parent is foundational to child)
- problems: rated judge problems
- problem_tags: planner topic slugs of each problem
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class TopicRow(Base):
    """A roadmap topic."""

    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    def __repr__(self) -> str:
        return f"<TopicRow {self.slug}>"


class TopicDependency(Base):
    """Prerequisite edge between two topics."""

    __tablename__ = "topic_dependencies"

    parent_id: Mapped[int] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )
    child_id: Mapped[int] = mapped_column(
        ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )

    parent: Mapped[TopicRow] = relationship(foreign_keys=[parent_id])
    child: Mapped[TopicRow] = relationship(foreign_keys=[child_id])

    def __repr__(self) -> str:
        return f"<TopicDependency {self.parent_id} -> {self.child_id}>"


class ProblemRow(Base):
    """A rated catalog problem (id is contest id + index, e.g. ``1520F2``)."""

    __tablename__ = "problems"

    problem_id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)

    tags: Mapped[list[ProblemTag]] = relationship(
        back_populates="problem", cascade="all, delete-orphan", lazy="selectin"
    )

    __table_args__ = (Index("idx_problems_rating", "rating"),)

    @property
    def topic_slugs(self) -> tuple[str, ...]:
        return tuple(sorted(tag.topic_slug for tag in self.tags))

    def __repr__(self) -> str:
        return f"<ProblemRow {self.problem_id} rating={self.rating}>"


class ProblemTag(Base):
    """Planner topic attached to a problem."""

    __tablename__ = "problem_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    problem_id: Mapped[str] = mapped_column(
        ForeignKey("problems.problem_id", ondelete="CASCADE"), nullable=False
    )
    topic_slug: Mapped[str] = mapped_column(Text, nullable=False)

    problem: Mapped[ProblemRow] = relationship(back_populates="tags")

    __table_args__ = (
        UniqueConstraint("problem_id", "topic_slug", name="uq_problem_topic"),
        Index("idx_problem_tags_topic", "topic_slug"),
    )
