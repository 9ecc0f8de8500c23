"""
Mastery engine.

Pure scoring code (ancestry, credit, proximity, intervals, calculator) plus
the judge-history interpretation and the transactional service that ties
them to persistence.
"""

from cfplanner.mastery.ancestry import AncestryIndex, build_ancestry_map
from cfplanner.mastery.calculator import (
    MasteryCalculator,
    calculate_mastery_current_score,
    calculate_mastery_score,
    topic_scores,
)
from cfplanner.mastery.credit import base_credit, base_credit_with_time, submission_credit
from cfplanner.mastery.intervals import (
    BinAccumulator,
    aggregate_bin,
    bin_index,
    calculate_interval_bin,
    merge_bin,
    score_bin,
)
from cfplanner.mastery.proximity import get_multiplier, solve_attributes
from cfplanner.mastery.tags import DEFAULT_TAG_MAP, TagMapper, display_name

__all__ = [
    "DEFAULT_TAG_MAP",
    "AncestryIndex",
    "BinAccumulator",
    "MasteryCalculator",
    "TagMapper",
    "aggregate_bin",
    "base_credit",
    "base_credit_with_time",
    "bin_index",
    "build_ancestry_map",
    "calculate_interval_bin",
    "calculate_mastery_current_score",
    "calculate_mastery_score",
    "display_name",
    "get_multiplier",
    "merge_bin",
    "score_bin",
    "solve_attributes",
    "submission_credit",
    "topic_scores",
]
