"""
Judge tag to planner topic mapping.

Codeforces tags are finer-grained than the roadmap, so several tags collapse
onto one planner topic. Tags with no entry are simply not tracked.

One topic is derived rather than mapped: a problem that lands on both
"trees" and "dynamic programming" is also credited to "tree dp".
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

TREE_DP = "tree dp"
TREES = "trees"
DYNAMIC_PROGRAMMING = "dynamic programming"

DEFAULT_TAG_MAP: Mapping[str, str] = MappingProxyType(
    {
        "implementation": "implementation",
        "brute force": "implementation",
        "constructive algorithms": "ad hoc",
        "sortings": "sortings",
        "two pointers": "two pointers",
        "binary search": "searching",
        "ternary search": "searching",
        "divide and conquer": "searching",
        "meet-in-the-middle": "meet in the middle",
        "greedy": "greedy",
        "math": "math",
        "number theory": "math",
        "combinatorics": "math",
        "matrices": "math",
        "probabilities": "math",
        "fft": "advanced math",
        "chinese remainder theorem": "advanced math",
        "geometry": "geometry",
        "graphs": "graphs",
        "dfs and similar": "graphs",
        "shortest paths": "graphs",
        "dsu": "graphs",
        "flows": "advanced graphs",
        "graph matchings": "advanced graphs",
        "2-sat": "advanced graphs",
        "trees": TREES,
        "strings": "strings",
        "hashing": "strings",
        "string suffix structures": "advanced strings",
        "data structures": "data structures",
        "bitmasks": "data structures",
        "dp": DYNAMIC_PROGRAMMING,
    }
)

_DISPLAY_OVERRIDES = {
    TREE_DP: "Tree DP",
    DYNAMIC_PROGRAMMING: "DP",
}


def display_name(slug: str) -> str:
    """Human-readable topic name ("two pointers" -> "Two Pointers")."""
    if slug in _DISPLAY_OVERRIDES:
        return _DISPLAY_OVERRIDES[slug]
    return " ".join(word[:1].upper() + word[1:] for word in slug.split())


class TagMapper:
    """Translates judge tags into planner topic slugs."""

    def __init__(self, tag_map: Mapping[str, str] = DEFAULT_TAG_MAP):
        self._tag_map = MappingProxyType(dict(tag_map))

    @property
    def tag_map(self) -> Mapping[str, str]:
        return self._tag_map

    @property
    def topics(self) -> frozenset[str]:
        """Every topic reachable through the map, plus the derived tree dp."""
        return frozenset(self._tag_map.values()) | {TREE_DP}

    def topic_slugs(self, tags: Iterable[str]) -> tuple[str, ...]:
        """
        Planner topics of a problem, sorted and de-duplicated.

        Args:
            tags: Raw judge tags

        Returns:
            Topic slugs; empty if no tag is tracked
        """
        slugs = {self._tag_map[tag] for tag in tags if tag in self._tag_map}
        if TREES in slugs and DYNAMIC_PROGRAMMING in slugs:
            slugs.add(TREE_DP)
        return tuple(sorted(slugs))
