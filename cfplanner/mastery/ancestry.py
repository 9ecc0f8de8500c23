"""
Topic ancestry index.

For every topic, records the shortest hop distance to each of its ancestors
(topics reachable by walking prerequisite edges backwards, child to parent).
Distances only go upward: solving an advanced-topic problem exercises its
prerequisites, never its descendants or siblings.

The index is built once per graph version and shared read-only.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from loguru import logger

from cfplanner.core.models import Topic, TopicEdge, TopicGraph


def build_ancestry_map(
    topics: Iterable[Topic], edges: Iterable[TopicEdge]
) -> dict[str, dict[str, int]]:
    """
    Compute ``{topic: {ancestor: distance}}`` by BFS over reversed edges.

    Each topic maps to itself at distance 0. On cycles the first-discovered
    distance wins, which BFS guarantees is the shortest.

    Args:
        topics: All topics of the graph
        edges: Prerequisite edges (parent -> child)

    Returns:
        Two-level dict keyed by topic slug
    """
    slugs = [topic.slug for topic in topics]
    known = set(slugs)

    parents: dict[str, list[str]] = {slug: [] for slug in slugs}
    for edge in edges:
        if edge.parent not in known or edge.child not in known:
            logger.warning("Ignoring edge with unknown topic: {} -> {}", edge.parent, edge.child)
            continue
        parents[edge.child].append(edge.parent)

    ancestry: dict[str, dict[str, int]] = {}
    for slug in slugs:
        distances = {slug: 0}
        queue = deque([slug])
        while queue:
            current = queue.popleft()
            for parent in parents[current]:
                if parent not in distances:
                    distances[parent] = distances[current] + 1
                    queue.append(parent)
        ancestry[slug] = distances

    return ancestry


class AncestryIndex(Mapping[str, Mapping[str, int]]):
    """
    Immutable ancestry lookup.

    Behaves as a read-only mapping ``topic -> {ancestor: distance}``.
    """

    def __init__(self, ancestry: Mapping[str, Mapping[str, int]]):
        self._ancestry = MappingProxyType(
            {topic: MappingProxyType(dict(dist)) for topic, dist in ancestry.items()}
        )

    @classmethod
    def from_graph(cls, graph: TopicGraph) -> AncestryIndex:
        """Build the index from a finished topic graph."""
        index = cls(build_ancestry_map(graph.topics, graph.edges))
        logger.debug("Built ancestry index for {} topics, {} edges", len(graph.topics), len(graph.edges))
        return index

    def __getitem__(self, topic: str) -> Mapping[str, int]:
        return self._ancestry[topic]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ancestry)

    def __len__(self) -> int:
        return len(self._ancestry)

    @property
    def topics(self) -> list[str]:
        return list(self._ancestry)

    def distance(self, topic: str, ancestor: str) -> int | None:
        """Hop distance from ``topic`` up to ``ancestor``, or None if unreachable."""
        return self._ancestry.get(topic, {}).get(ancestor)

    def ancestors(self, topic: str) -> list[str]:
        """All ancestors of ``topic`` (excluding itself), nearest first."""
        dist = self._ancestry.get(topic, {})
        return sorted((a for a in dist if a != topic), key=lambda a: (dist[a], a))
