"""
Credit model: turns one solved problem into a base credit value.

Formulas:
    base_credit = rating                                    if attempts <= 1
                = rating * (0.5 + 0.5 * e^(-0.1 * (attempts - 1)))  otherwise

    speed_factor     = (45 + 10) / (minutes + 10)
    speed_multiplier = 0.85 + 0.15 * speed_factor
    base_credit_with_time = base_credit * speed_multiplier

Attempts dominate; time spent is a secondary signal and only applies when
the learner reports it.
"""

from __future__ import annotations

import math

ATTEMPT_DECAY = 0.1
ATTEMPT_FLOOR = 0.5

AVERAGE_MINUTES = 45
TIME_SMOOTHING = 10
SPEED_FLOOR = 0.85


def base_credit(rating: int, attempts: int) -> float:
    """
    Credit before graph decay.

    Args:
        rating: Problem difficulty rating
        attempts: Judged attempts up to and including the accepted one

    Returns:
        Credit in rating points, between 50% and 100% of ``rating``
    """
    if attempts <= 1:
        return float(rating)

    modifier = ATTEMPT_FLOOR + (1 - ATTEMPT_FLOOR) * math.exp(-ATTEMPT_DECAY * (attempts - 1))
    return rating * modifier


def base_credit_with_time(rating: int, attempts: int, minutes_spent: int) -> float:
    """Credit before graph decay, scaled by how fast the problem was solved."""
    base = base_credit(rating, attempts)
    speed_factor = (AVERAGE_MINUTES + TIME_SMOOTHING) / (minutes_spent + TIME_SMOOTHING)
    speed_multiplier = SPEED_FLOOR + (1 - SPEED_FLOOR) * speed_factor
    return base * speed_multiplier


def submission_credit(rating: int, attempts: int, minutes_spent: int = 0) -> float:
    """Pick the time-aware formula only when time spent was supplied."""
    if minutes_spent > 0:
        return base_credit_with_time(rating, attempts, minutes_spent)
    return base_credit(rating, attempts)
