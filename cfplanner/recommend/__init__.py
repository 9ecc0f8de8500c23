"""Problem recommendation on top of a user's mastery snapshot."""

from cfplanner.recommend.daily import DailyPick
from cfplanner.recommend.selector import (
    MARGINS,
    CandidateSource,
    RecommendationSelector,
    select_candidates,
    whole_points,
)

__all__ = [
    "MARGINS",
    "CandidateSource",
    "DailyPick",
    "RecommendationSelector",
    "select_candidates",
    "whole_points",
]
