"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cfplanner.catalog.seed import ROADMAP_EDGES  # noqa: E402
from cfplanner.core.exceptions import HandleNotFoundError  # noqa: E402
from cfplanner.core.models import AttemptRecord, Topic, TopicEdge, TopicGraph  # noqa: E402
from cfplanner.db.models import Base  # noqa: E402
from cfplanner.mastery.ancestry import AncestryIndex  # noqa: E402
from cfplanner.mastery.history import parse_problem_id  # noqa: E402
from cfplanner.mastery.tags import TagMapper, display_name  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory SQLite)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Topic graph
# ========================================


@pytest.fixture(scope="session")
def tag_mapper():
    """Default judge tag mapping."""
    return TagMapper()


@pytest.fixture(scope="session")
def roadmap_graph(tag_mapper):
    """The default roadmap as a finished topic graph."""
    topics = tuple(Topic(slug, display_name(slug)) for slug in sorted(tag_mapper.topics))
    edges = tuple(TopicEdge(parent, child) for parent, child in ROADMAP_EDGES)
    return TopicGraph(topics=topics, edges=edges)


@pytest.fixture(scope="session")
def ancestry(roadmap_graph):
    """Ancestry index of the default roadmap."""
    return AncestryIndex.from_graph(roadmap_graph)


# ========================================
# Database
# ========================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database shared across sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Transactional scope bound to the test database."""
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    @contextmanager
    def scope():
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return scope


@pytest.fixture
def session(session_factory):
    """One session, committed at teardown."""
    with session_factory() as session:
        yield session


# ========================================
# Judge
# ========================================


class FakeJudge:
    """In-memory submission history provider."""

    def __init__(self):
        self.history: dict[str, list[AttemptRecord]] = {}
        self.calls: list[str] = []

    def add(self, handle: str, *records: AttemptRecord) -> None:
        """Prepend records so the history stays newest first."""
        self.history[handle] = list(records) + self.history.get(handle, [])

    def user_status(self, handle: str) -> list[AttemptRecord]:
        self.calls.append(handle)
        if handle not in self.history:
            raise HandleNotFoundError(handle)
        return list(self.history[handle])


@pytest.fixture
def judge():
    """Empty fake judge."""
    return FakeJudge()


def attempt(
    problem_id: str,
    verdict: str,
    when: datetime,
    rating: int = 1600,
    tags: tuple[str, ...] = ("dp",),
    name: str = "Sample Problem",
) -> AttemptRecord:
    """Build an attempt record from a compact problem id like ``1520F2``."""
    contest_id, index = parse_problem_id(problem_id)
    return AttemptRecord(
        contest_id=contest_id,
        index=index,
        verdict=verdict,
        created_at=when,
        name=name,
        rating=rating,
        tags=tags,
    )


@pytest.fixture
def solve_time():
    """A fixed instant used as the solve time in scenarios."""
    return datetime(2024, 3, 4, 12, 0, tzinfo=UTC)


@pytest.fixture
def make_attempt():
    """Factory for attempt records."""
    return attempt
