"""
Interval aggregation: folds every credited solve of a time bin into one score.

Bins are fixed-width, calendar-anchored windows:
    bin_index = floor(unix_seconds / (width_days * 86400))

Bin score (confidence-weighted power mean):
    p     = max(credit_i)
    w_i   = (credit_i / p) ** 3
    score = sum(credit_i * w_i) / max(sum(multiplier_i * w_i), 1.5)

The cubic weight is not associative, so a bin score is always recomputed
from the complete observation list whenever an observation is added.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from cfplanner.core.models import BinState, SolveAttributes

BIN_WIDTH_DAYS = 14
SECONDS_PER_DAY = 86400
CONFIDENCE_FLOOR = 1.5


def bin_index(instant: datetime, width_days: int = BIN_WIDTH_DAYS) -> int:
    """
    Absolute bin index of an instant.

    Naive datetimes are taken to be UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return int(instant.timestamp()) // (width_days * SECONDS_PER_DAY)


def score_bin(credits: Sequence[float], multipliers: Sequence[float]) -> float:
    """
    Score of a bin from its full observation lists.

    Args:
        credits: Credit of each observation (base rating * multiplier)
        multipliers: Graph-decay multiplier of each observation, index-aligned

    Returns:
        Bin score in rating points (0 for an empty or zero-credit bin)
    """
    if len(credits) != len(multipliers):
        raise ValueError("credits and multipliers must be index-aligned")
    if not credits:
        return 0.0

    p = max(credits)
    if p <= 0:
        return 0.0

    numerator = 0.0
    denominator = 0.0
    for credit, multiplier in zip(credits, multipliers):
        weight = (credit / p) ** 3
        numerator += credit * weight
        denominator += multiplier * weight

    return numerator / max(denominator, CONFIDENCE_FLOOR)


def calculate_interval_bin(solves: Iterable[SolveAttributes]) -> float:
    """Bin score from (base rating, multiplier) pairs."""
    solves = list(solves)
    return score_bin([s.credit for s in solves], [s.multiplier for s in solves])


def aggregate_bin(
    existing_credits: Sequence[float],
    existing_multipliers: Sequence[float],
    new_credit: float,
    new_multiplier: float,
) -> float:
    """Score of a bin after appending one observation to its stored lists."""
    return score_bin(
        [*existing_credits, new_credit],
        [*existing_multipliers, new_multiplier],
    )


def merge_bin(stored: BinState | None, new_solves: Iterable[SolveAttributes]) -> BinState:
    """
    Append new observations to a stored bin and recompute its score.

    Stored observations keep their positions; new ones are appended after them.
    """
    stored = stored or BinState()
    credits = list(stored.credits)
    multipliers = list(stored.multipliers)
    for solve in new_solves:
        if solve.multiplier <= 0:
            continue
        credits.append(solve.credit)
        multipliers.append(solve.multiplier)

    return BinState(
        credits=tuple(credits),
        multipliers=tuple(multipliers),
        score=score_bin(credits, multipliers),
    )


@dataclass
class BinAccumulator:
    """
    Groups new observations by (topic, bin index) during a batch sync.

    Observations are kept in arrival order per key; nothing is scored until
    the accumulated pairs are merged with the stored bin state.
    """

    width_days: int = BIN_WIDTH_DAYS
    _bins: dict[tuple[str, int], list[SolveAttributes]] = field(default_factory=dict)

    def add(self, topic: str, solved_at: datetime, solve: SolveAttributes) -> None:
        if solve.multiplier <= 0:
            return
        key = (topic, bin_index(solved_at, self.width_days))
        self._bins.setdefault(key, []).append(solve)

    def keys(self) -> list[tuple[str, int]]:
        return list(self._bins)

    def items(self) -> list[tuple[tuple[str, int], list[SolveAttributes]]]:
        return list(self._bins.items())

    def __len__(self) -> int:
        return len(self._bins)

    def __bool__(self) -> bool:
        return bool(self._bins)
