"""
Catalog seeding: roadmap topics, prerequisite edges and the rated problemset.

Problems are skipped when they are unrated, have a Cyrillic statement
name (Russian-only rounds), or carry no tracked topic.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from cfplanner.core.models import CatalogProblem
from cfplanner.db.repository import MasteryRepository
from cfplanner.mastery.tags import TagMapper, display_name

ROADMAP_EDGES: tuple[tuple[str, str], ...] = (
    ("implementation", "ad hoc"),
    ("implementation", "sortings"),
    ("implementation", "data structures"),
    ("implementation", "greedy"),
    ("implementation", "math"),
    ("implementation", "strings"),
    ("sortings", "two pointers"),
    ("sortings", "searching"),
    ("data structures", "searching"),
    ("data structures", "graphs"),
    ("greedy", "dynamic programming"),
    ("math", "advanced math"),
    ("math", "geometry"),
    ("strings", "advanced strings"),
    ("searching", "meet in the middle"),
    ("dynamic programming", "tree dp"),
    ("trees", "tree dp"),
    ("graphs", "advanced graphs"),
    ("graphs", "trees"),
)


@dataclass
class SeedReport:
    topics: int = 0
    edges: int = 0
    problems: int = 0
    skipped: int = 0


def is_cyrillic(text: str) -> bool:
    """True if any character of ``text`` is Cyrillic."""
    return any("CYRILLIC" in unicodedata.name(ch, "") for ch in text)


def catalog_problem(raw: dict[str, Any], tag_mapper: TagMapper) -> CatalogProblem | None:
    """Convert one problemset entry, or None if it must not be catalogued."""
    rating = int(raw.get("rating", 0) or 0)
    name = raw.get("name", "")
    if rating == 0 or is_cyrillic(name):
        return None

    topics = tag_mapper.topic_slugs(raw.get("tags", ()))
    if not topics:
        return None

    return CatalogProblem(
        problem_id=f"{raw['contestId']}{raw['index']}",
        name=name,
        rating=rating,
        tags=topics,
    )


def seed_topics(repo: MasteryRepository, tag_mapper: TagMapper) -> int:
    for slug in sorted(tag_mapper.topics):
        repo.upsert_topic(slug, display_name(slug))
    return len(tag_mapper.topics)


def seed_roadmap(
    repo: MasteryRepository,
    edges: Iterable[tuple[str, str]] = ROADMAP_EDGES,
) -> int:
    return sum(1 for parent, child in edges if repo.link_topics(parent, child))


def seed_problems(
    repo: MasteryRepository,
    problems: Iterable[dict[str, Any]],
    tag_mapper: TagMapper,
) -> tuple[int, int]:
    """
    Upsert rated problems into the catalog.

    Returns:
        (problems saved, problems skipped)
    """
    saved = skipped = 0
    for raw in problems:
        problem = catalog_problem(raw, tag_mapper)
        if problem is None:
            skipped += 1
            continue
        repo.upsert_problem(problem)
        saved += 1
    return saved, skipped


def seed_catalog(
    repo: MasteryRepository,
    problems: Iterable[dict[str, Any]],
    tag_mapper: TagMapper | None = None,
) -> SeedReport:
    """Seed topics, roadmap and problems in one pass."""
    tag_mapper = tag_mapper or TagMapper()
    report = SeedReport()
    report.topics = seed_topics(repo, tag_mapper)
    report.edges = seed_roadmap(repo)
    report.problems, report.skipped = seed_problems(repo, problems, tag_mapper)
    logger.info(
        "Seeded {} topics, {} new edges, {} problems ({} skipped)",
        report.topics,
        report.edges,
        report.problems,
        report.skipped,
    )
    return report
