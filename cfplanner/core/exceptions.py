"""
Planner error hierarchy.

Every condition the caller must tell apart gets its own class. Persistence
failures are not wrapped: SQLAlchemy errors propagate unchanged so the
enclosing transaction rolls back.
"""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for all planner errors."""


class HandleNotFoundError(PlannerError):
    """The judge reported the handle as unknown or invalid."""

    def __init__(self, handle: str, comment: str | None = None):
        self.handle = handle
        self.comment = comment
        message = f"handle '{handle}' not found or invalid"
        if comment:
            message = f"{message}: {comment}"
        super().__init__(message)


class JudgeUnavailableError(PlannerError):
    """The judge could not be reached or returned a malformed payload."""


class InvalidProblemIdError(PlannerError):
    """A problem identifier could not be parsed."""

    def __init__(self, problem_id: str):
        self.problem_id = problem_id
        super().__init__(f"invalid problem id: {problem_id}")


class AlreadySolvedError(PlannerError):
    """A manual submission targeted a problem already marked solved."""

    def __init__(self, problem_id: str):
        self.problem_id = problem_id
        super().__init__(f"problem {problem_id} already solved")


class NotSolvedError(PlannerError):
    """A manual submission targeted a problem with no accepted verdict."""

    def __init__(self, problem_id: str):
        self.problem_id = problem_id
        super().__init__(f"problem {problem_id} has not been solved")


class NoRecommendationError(PlannerError):
    """No candidate problem exists even for the fallback topic."""
