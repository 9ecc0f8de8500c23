"""
Unit tests for catalog filtering and the default roadmap.
"""

from cfplanner.catalog.seed import ROADMAP_EDGES, catalog_problem, is_cyrillic


class TestRoadmap:
    """Default prerequisite edges."""

    def test_edge_count(self):
        assert len(ROADMAP_EDGES) == 19
        assert len(set(ROADMAP_EDGES)) == 19

    def test_every_edge_topic_is_tracked(self, tag_mapper):
        for parent, child in ROADMAP_EDGES:
            assert parent in tag_mapper.topics
            assert child in tag_mapper.topics


class TestCatalogProblem:
    """Problemset entry filtering."""

    def test_rated_problem(self, tag_mapper):
        raw = {"contestId": 1520, "index": "F2", "name": "Guess", "rating": 2200, "tags": ["binary search"]}
        problem = catalog_problem(raw, tag_mapper)
        assert problem.problem_id == "1520F2"
        assert problem.tags == ("searching",)

    def test_unrated_skipped(self, tag_mapper):
        raw = {"contestId": 1, "index": "A", "name": "Unrated", "tags": ["math"]}
        assert catalog_problem(raw, tag_mapper) is None

    def test_cyrillic_name_skipped(self, tag_mapper):
        raw = {"contestId": 1, "index": "A", "name": "Задача", "rating": 800, "tags": ["math"]}
        assert catalog_problem(raw, tag_mapper) is None

    def test_no_tracked_topic_skipped(self, tag_mapper):
        raw = {"contestId": 1, "index": "A", "name": "Games", "rating": 800, "tags": ["games"]}
        assert catalog_problem(raw, tag_mapper) is None

    def test_is_cyrillic(self):
        assert is_cyrillic("Мат")
        assert not is_cyrillic("Tree Queries")
