"""
Judge history interpretation.

Turns raw attempt records into credited solves:
- attempts are grouped per problem
- each problem's attempts are scanned oldest first
- compile errors, skipped and still-judging submissions are not attempts
- the first accepted verdict ends the scan; its time is the solve time
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from cfplanner.core.exceptions import InvalidProblemIdError
from cfplanner.core.models import AttemptRecord, ProblemStatus, ProblemUpsert, Submission
from cfplanner.mastery.tags import TagMapper

ACCEPTED = "OK"
EXCLUDED_VERDICTS = frozenset({"COMPILATION_ERROR", "SKIPPED", "TESTING"})

_PROBLEM_ID_RE = re.compile(r"^(\d+)([A-Za-z0-9]+)$")


def parse_problem_id(problem_id: str) -> tuple[int, str]:
    """
    Split a problem id like ``1520F2`` into ``(1520, "F2")``.

    Raises:
        InvalidProblemIdError: If the id is not digits followed by an index
    """
    match = _PROBLEM_ID_RE.match(problem_id or "")
    if match is None:
        raise InvalidProblemIdError(problem_id)
    return int(match.group(1)), match.group(2)


def newest_first(attempts: Iterable[AttemptRecord]) -> list[AttemptRecord]:
    """Order attempts by submission time, newest first; ties keep input order."""
    return sorted(attempts, key=lambda record: record.created_at, reverse=True)


def group_by_problem(records: Iterable[AttemptRecord]) -> dict[str, list[AttemptRecord]]:
    """
    Group attempts per problem id.

    The judge may deliver history in any order, so each group is sorted
    newest first.
    """
    grouped: dict[str, list[AttemptRecord]] = {}
    for record in records:
        grouped.setdefault(record.problem_id, []).append(record)
    return {problem_id: newest_first(attempts) for problem_id, attempts in grouped.items()}


def first_accepted(attempts: Sequence[AttemptRecord]) -> tuple[AttemptRecord | None, int]:
    """
    Find the first accepted attempt of one problem.

    Args:
        attempts: Attempts of a single problem, newest first

    Returns:
        (accepted attempt or None, judged attempts counted up to it)
    """
    counted = 0
    for record in reversed(attempts):
        if record.verdict in EXCLUDED_VERDICTS:
            continue
        counted += 1
        if record.verdict == ACCEPTED:
            return record, counted
    return None, counted


@dataclass(frozen=True)
class HistoryDigest:
    """What a batch of judge history means for one user."""

    solves: tuple[Submission, ...]
    upserts: tuple[ProblemUpsert, ...]


def digest_history(
    records: Iterable[AttemptRecord],
    tag_mapper: TagMapper,
    skip: Iterable[str] = (),
) -> HistoryDigest:
    """
    Derive credited solves and status upserts from raw history.

    Problems in ``skip`` (already solved) are ignored entirely. Solved
    problems are upserted at their first accepted time; unsolved ones at
    their newest attempt.
    """
    skipped = set(skip)
    solves: list[Submission] = []
    upserts: list[ProblemUpsert] = []

    grouped = group_by_problem(r for r in records if r.problem_id not in skipped)
    for problem_id, attempts in grouped.items():
        accepted, count = first_accepted(attempts)
        if accepted is None:
            upserts.append(
                ProblemUpsert(problem_id, ProblemStatus.UNSOLVED, attempts[0].created_at)
            )
            continue

        upserts.append(ProblemUpsert(problem_id, ProblemStatus.SOLVED, accepted.created_at))
        solves.append(
            Submission(
                problem_id=problem_id,
                rating=accepted.rating,
                attempts=count,
                topic_slugs=tag_mapper.topic_slugs(accepted.tags),
                solved_at=accepted.created_at,
            )
        )

    return HistoryDigest(solves=tuple(solves), upserts=tuple(upserts))


def hydrate_submission(
    records: Iterable[AttemptRecord],
    problem_id: str,
    tag_mapper: TagMapper,
    time_spent_minutes: int = 0,
) -> Submission | None:
    """
    Build the credited solve of one problem from the user's history.

    Returns None when the problem has no accepted verdict.

    Raises:
        InvalidProblemIdError: If ``problem_id`` cannot be parsed
    """
    contest_id, index = parse_problem_id(problem_id)
    attempts = newest_first(r for r in records if r.contest_id == contest_id and r.index == index)

    accepted, count = first_accepted(attempts)
    if accepted is None:
        return None

    return Submission(
        problem_id=problem_id,
        rating=accepted.rating,
        attempts=count,
        topic_slugs=tag_mapper.topic_slugs(accepted.tags),
        solved_at=accepted.created_at,
        time_spent_minutes=time_spent_minutes,
    )
