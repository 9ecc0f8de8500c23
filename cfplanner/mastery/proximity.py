"""
Proximity multiplier: how much of a solve's credit flows to a target topic.

multiplier = 0.75 ** d, where d is the smallest ancestry distance from any
of the submission's topics up to the target. Unreachable targets get 0.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from cfplanner.core.models import SolveAttributes, Submission

DISTANCE_DECAY = 0.75


def get_multiplier(
    target_topic: str,
    topic_slugs: Iterable[str],
    ancestry: Mapping[str, Mapping[str, int]],
) -> float:
    """
    Graph-decay factor of a solve for ``target_topic``.

    Args:
        target_topic: Topic receiving credit
        topic_slugs: Topics the solved problem is tagged with
        ancestry: Ancestry map (topic -> {ancestor: distance})

    Returns:
        Multiplier in (0, 1], or 0 if no tagged topic has the target as ancestor
    """
    min_dist: int | None = None
    for topic in topic_slugs:
        dist = ancestry.get(topic, {}).get(target_topic)
        if dist is not None and (min_dist is None or dist < min_dist):
            min_dist = dist

    if min_dist is None:
        return 0.0
    return DISTANCE_DECAY**min_dist


def solve_attributes(
    submission: Submission,
    base_rating: float,
    topics: Iterable[str],
    ancestry: Mapping[str, Mapping[str, int]],
) -> dict[str, SolveAttributes]:
    """
    Attributes of one solve for every topic that receives credit.

    Topics with a zero multiplier are left out entirely.
    """
    attributes: dict[str, SolveAttributes] = {}
    for topic in topics:
        multiplier = get_multiplier(topic, submission.topic_slugs, ancestry)
        if multiplier <= 0:
            continue
        attributes[topic] = SolveAttributes(base_rating=base_rating, multiplier=multiplier)
    return attributes
