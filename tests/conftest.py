"""Pytest fixtures for testing."""
import random
import threading
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.db.database import Base
from app.db import models  # noqa: F401
from app.main import create_app
from app.rate_limit import limiter
from app.services.puzzle import Difficulty
from app.services.ranking_store import RankingStoreError, SqlRankingStore
from app.services.ranking_sync import RankingSynchronizer
from app.services.session_manager import SessionManager
from app.services.snapshot_store import SqlSnapshotStore

# Tests submit far more answers per minute than a player would
limiter.enabled = False

SHORT_WORD_LISTS = {
    Difficulty.EASY: ["OF"],
    Difficulty.MEDIUM: ["AX"],
}


class FailingRankingStore:
    """Wraps a store and raises RankingStoreError from the named operations."""

    def __init__(self, inner, failing=("count", "find_by_name", "get_by_id", "update_score", "insert", "top_n")):
        self.inner = inner
        self.failing = set(failing)
        self.calls = []

    def __getattr__(self, operation):
        target = getattr(self.inner, operation)

        def call(*args):
            self.calls.append(operation)
            if operation in self.failing:
                raise RankingStoreError(f"{operation} unavailable")
            return target(*args)

        return call


class StaleReadRankingStore:
    """Accepts updates but reads back a different score, like a silently failed write."""

    def __init__(self, inner):
        self.inner = inner

    def __getattr__(self, operation):
        return getattr(self.inner, operation)

    def update_score(self, player_id, score):
        return 1


class LockstepLookupStore:
    """Holds every name lookup until ``parties`` lookups are in flight.

    Forces concurrent upserts to all read before any of them writes.
    """

    def __init__(self, inner, parties=2):
        self.inner = inner
        self.barrier = threading.Barrier(parties, timeout=5)

    def __getattr__(self, operation):
        return getattr(self.inner, operation)

    def find_by_name(self, name):
        found = self.inner.find_by_name(name)
        self.barrier.wait()
        return found


@pytest.fixture(scope="function")
def test_engine(tmp_path):
    """Create a fresh database file for each test.

    File-backed so store calls running in worker threads each get their own
    connection, as they would against a real server.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 15}
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autoflush=False, autocommit=False)


@pytest.fixture
def ranking_store(session_factory):
    return SqlRankingStore(session_factory)


@pytest.fixture
def snapshot_store(session_factory):
    return SqlSnapshotStore(session_factory)


@pytest.fixture
def synchronizer(ranking_store):
    return RankingSynchronizer(ranking_store)


@pytest.fixture
def manager(synchronizer, snapshot_store):
    """Session manager with one-word tiers and no word-complete pause."""
    return SessionManager(
        synchronizer,
        snapshot_store,
        resume_on_return=True,
        word_complete_delay=0,
        word_lists=SHORT_WORD_LISTS,
        rng=random.Random(42)
    )


@pytest.fixture
def client(manager):
    """Test client running the app lifespan around the test manager."""
    with TestClient(create_app(session_manager=manager)) as test_client:
        yield test_client


def solve(view):
    """Answer for the equation in a session view."""
    equation = view["equation"]
    return (equation["right"] - equation["constant"]) // equation["coefficient"]
