# tests/conftest.py
"""
Shared pytest fixtures for galibot_engine tests.

External services (embedding, completion) are replaced by small fakes; the
cache runs on a manually advanced clock so expiry is deterministic.
"""

import logging
from datetime import UTC, datetime, timedelta

import pytest

from galibot_engine.background import BackgroundTasks
from galibot_engine.cache import CachedReads, CacheStore
from galibot_engine.models import ChunkRecord
from galibot_engine.retrieval import InMemoryVectorStore
from galibot_engine.storage import InMemoryPersistentStore

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("galibot_engine").setLevel(logging.DEBUG)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateTimeClock:
    """datetime clock for components that stamp records; frozen unless advanced."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeEmbedder:
    """EmbeddingService returning a fixed vector and recording queries."""

    def __init__(self, vector: list[float] | None = None):
        self.vector = vector or [1.0, 0.0]
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return list(self.vector)


class FakeCompletion:
    """CompletionService returning queued answers and recording requests."""

    def __init__(self, *answers: str, model: str = "gpt-test"):
        self.answers = list(answers)
        self.model = model
        self.calls: list[dict] = []

    async def generate(self, messages, max_tokens, temperature, request_id=None) -> str:
        self.calls.append(
            {
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "request_id": request_id,
            }
        )
        return self.answers.pop(0) if self.answers else "מה אתה כבר יודע על הנושא?"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def datetime_clock():
    return FakeDateTimeClock()


@pytest.fixture
def cache(clock):
    return CacheStore(clock=clock)


@pytest.fixture
def cached_reads(cache):
    return CachedReads(cache, state_ttl=60, history_ttl=30, first_contact_ttl=60)


@pytest.fixture
def store():
    return InMemoryPersistentStore()


@pytest.fixture
def background():
    return BackgroundTasks()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def median_chunks():
    """Three chunks, two from the same file, all aligned with [1, 0]."""
    return [
        ChunkRecord(
            id="c1",
            text="החציון הוא הערך האמצעי בסדרה ממוינת.",
            embedding=[1.0, 0.0],
            source="courses/statistics/median.pdf",
            category="statistics",
        ),
        ChunkRecord(
            id="c2",
            text="חישוב חציון במספר זוגי של תצפיות.",
            embedding=[0.9, 0.1],
            source="median.pdf",
            category="statistics",
        ),
        ChunkRecord(
            id="c3",
            text="ממוצע מול חציון בהתפלגות אסימטרית.",
            embedding=[0.8, 0.3],
            source="courses/statistics/skew.pdf",
            category="statistics",
        ),
    ]


@pytest.fixture
def vector_store(median_chunks):
    return InMemoryVectorStore(median_chunks)
