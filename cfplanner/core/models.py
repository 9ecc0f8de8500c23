"""
Core domain models shared by the mastery engine, persistence and recommenders.

All engine inputs and outputs are plain frozen dataclasses so that the pure
scoring code never depends on SQLAlchemy rows or HTTP payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class ProblemStatus(str, Enum):
    """Per-user status of a catalog problem."""

    SOLVED = "solved"
    UNSOLVED = "unsolved"


# ============================================================================
# Topic graph
# ============================================================================


@dataclass(frozen=True)
class Topic:
    """A node in the prerequisite graph."""

    slug: str
    display_name: str = ""


@dataclass(frozen=True)
class TopicEdge:
    """Directed prerequisite relation: ``parent`` is foundational to ``child``."""

    parent: str
    child: str


@dataclass(frozen=True)
class TopicGraph:
    """A finished topic graph as returned by the graph provider."""

    topics: tuple[Topic, ...] = ()
    edges: tuple[TopicEdge, ...] = ()

    @property
    def slugs(self) -> list[str]:
        return [topic.slug for topic in self.topics]


# ============================================================================
# Solves and credit
# ============================================================================


@dataclass(frozen=True)
class Submission:
    """
    A credited solve event.

    ``attempts`` counts judged attempts up to and including the first accepted
    verdict. ``solved_at`` is the instant of that accepted verdict and decides
    which bin the credit lands in.
    """

    problem_id: str
    rating: int
    attempts: int
    topic_slugs: tuple[str, ...]
    solved_at: datetime
    time_spent_minutes: int = 0


@dataclass(frozen=True)
class SolveAttributes:
    """Base credit and graph-decay multiplier of one solve for one topic."""

    base_rating: float
    multiplier: float

    @property
    def credit(self) -> float:
        return self.base_rating * self.multiplier


@dataclass(frozen=True)
class BinState:
    """Stored observations of one (topic, bin) window and the derived score."""

    credits: tuple[float, ...] = ()
    multipliers: tuple[float, ...] = ()
    score: float = 0.0

    def __post_init__(self):
        if len(self.credits) != len(self.multipliers):
            raise ValueError(
                f"credits and multipliers must be index-aligned "
                f"({len(self.credits)} != {len(self.multipliers)})"
            )

    @property
    def observations(self) -> list[SolveAttributes]:
        """Rebuild the (base rating, multiplier) pairs from the stored lists."""
        return [
            SolveAttributes(base_rating=c / m, multiplier=m)
            for c, m in zip(self.credits, self.multipliers)
        ]


# ============================================================================
# Mastery
# ============================================================================


@dataclass(frozen=True)
class MasteryResult:
    """Current and peak mastery of one topic."""

    current: float = 0.0
    peak: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"current": self.current, "peak": self.peak}


@dataclass(frozen=True)
class TopicStat:
    """Whole-point mastery snapshot of a topic, as used by the daily pick."""

    slug: str
    current: int
    peak: int
    decay: int | None = None

    def __post_init__(self):
        # Regression from the historical peak
        if self.decay is None:
            object.__setattr__(self, "decay", self.peak - self.current)


# ============================================================================
# Catalog and judge history
# ============================================================================


@dataclass(frozen=True)
class CatalogProblem:
    """A rated catalog problem tagged with planner topic slugs."""

    problem_id: str
    name: str
    rating: int
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class AttemptRecord:
    """One raw judge submission as reported by the submission history provider."""

    contest_id: int
    index: str
    verdict: str
    created_at: datetime
    name: str = ""
    rating: int = 0
    tags: tuple[str, ...] = ()

    @property
    def problem_id(self) -> str:
        return f"{self.contest_id}{self.index}"


@dataclass(frozen=True)
class ProblemSolveInput:
    """A manual "I solved this" report from the learner."""

    problem_id: str
    time_spent_minutes: int = 0


@dataclass(frozen=True)
class ProblemUpsert:
    """Status change of one problem for one user."""

    problem_id: str
    status: ProblemStatus
    attempted_at: datetime


@dataclass(frozen=True)
class SolveRecord:
    """A user's problem joined with catalog data, for activity listings."""

    problem_id: str
    name: str
    rating: int
    last_attempted_at: datetime
    tags: tuple[str, ...] = field(default_factory=tuple)
