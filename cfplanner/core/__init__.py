"""
Core Module - Shared domain models and errors.

Components:
- models: Plain dataclasses passed in and out of the engine
- exceptions: Error kinds surfaced to callers

Design Principle:
The scoring and recommendation modules import from cfplanner.core rather
than from the persistence or HTTP layers.
"""

from cfplanner.core.exceptions import (
    AlreadySolvedError,
    HandleNotFoundError,
    InvalidProblemIdError,
    JudgeUnavailableError,
    NoRecommendationError,
    NotSolvedError,
    PlannerError,
)
from cfplanner.core.models import (
    AttemptRecord,
    BinState,
    CatalogProblem,
    MasteryResult,
    ProblemSolveInput,
    ProblemStatus,
    ProblemUpsert,
    SolveAttributes,
    SolveRecord,
    Submission,
    Topic,
    TopicEdge,
    TopicGraph,
    TopicStat,
)

__all__ = [
    # Models
    "AttemptRecord",
    "BinState",
    "CatalogProblem",
    "MasteryResult",
    "ProblemSolveInput",
    "ProblemStatus",
    "ProblemUpsert",
    "SolveAttributes",
    "SolveRecord",
    "Submission",
    "Topic",
    "TopicEdge",
    "TopicGraph",
    "TopicStat",
    # Errors
    "PlannerError",
    "HandleNotFoundError",
    "JudgeUnavailableError",
    "InvalidProblemIdError",
    "AlreadySolvedError",
    "NotSolvedError",
    "NoRecommendationError",
]
