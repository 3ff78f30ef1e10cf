"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests.
External collaborators (embeddings, generative model, cosmos, astrology)
are replaced by in-process fakes through `app.dependency_overrides`.
"""
import json
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from attune.core.deps import (
    get_astrology_client,
    get_attunement_cache,
    get_cosmos_client,
    get_embedder,
    get_generator,
)
from attune.core.errors import ConfigurationError
from attune.db.base import Base, get_db
from attune.main import app
from attune.models.embedding import EMBEDDING_DIMENSIONS
from attune.schemas.context import (
    AstrologicalInsight,
    Astronomy,
    CosmicData,
    NatalChart,
    Planet,
)
from attune.services.cache import SynthesisCache
from attune.services.embeddings import EmbeddingResult, prepare_input

SQLITE_URL = "sqlite:///./test_attune.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_REPLY = json.dumps({
    "insightfulQuestion": "Why does your energy drop every afternoon?",
    "synthesizedAnswer": "Your logs show three leaks after 2 PM. Take a walk at 1:30 today.",
})


def unit_vector(index: int = 0) -> list[float]:
    vec = [0.0] * EMBEDDING_DIMENSIONS
    vec[index] = 1.0
    return vec


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeEmbedder:
    """Every text maps to the same unit vector unless overridden in `vectors`."""

    model = "fake/bge-small"

    def __init__(self):
        self.configured = True
        self.calls: list[str] = []
        self.vectors: dict[str, list[float]] = {}
        self.error: Exception | None = None

    def embed(self, text: str) -> EmbeddingResult:
        self.calls.append(text)
        payload = prepare_input(text)
        if self.error is not None:
            raise self.error
        return EmbeddingResult(vector=self.vectors.get(payload, unit_vector()), model=self.model)


class FakeGenerator:
    def __init__(self, reply: str = DEFAULT_REPLY):
        self.configured = True
        self.reply = reply
        self.calls: list[dict] = []
        self.error: Exception | None = None

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("GOOGLE_API_KEY")

    def generate(self, prompt, history=(), system=None) -> str:
        self.ensure_configured()
        self.calls.append({"prompt": prompt, "history": list(history), "system": system})
        if self.error is not None:
            raise self.error
        return self.reply


class FakeCosmos:
    def __init__(self):
        self.configured = True
        self.calls: list[tuple] = []
        self.error: Exception | None = None

    def fetch(self, latitude=None, longitude=None, location=None, day=None) -> CosmicData:
        self.calls.append((latitude, longitude, location, day))
        if self.error is not None:
            raise self.error
        return make_cosmic()


class FakeAstrology:
    def __init__(self):
        self.configured = True
        self.calls: list[tuple] = []
        self.error: Exception | None = None

    def fetch(self, birth_data, user_id, analysis_type="all", options=None) -> AstrologicalInsight:
        self.calls.append((birth_data, user_id, analysis_type))
        if self.error is not None:
            raise self.error
        return make_astrology()


def make_cosmic() -> CosmicData:
    return CosmicData(astronomy=Astronomy(
        date="2026-10-18",
        current_time="09:15:00",
        sunrise="06:58",
        sunset="18:21",
        day_length="11:23",
        moon_phase="WAXING_CRESCENT",
        moon_illumination_percentage="23.4",
    ))


def make_astrology() -> AstrologicalInsight:
    return AstrologicalInsight(natal_chart=NatalChart(
        sun_sign="Scorpio",
        moon_sign="Leo",
        ascendant="Virgo",
        planets=[Planet(name="Mars", sign="Aries", house=8, degree=12.5)],
    ))


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def user_id():
    """Tables live for the whole session, so each test gets its own user."""
    return f"user-{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def now():
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

@pytest.fixture()
def embedder():
    return FakeEmbedder()


@pytest.fixture()
def generator():
    return FakeGenerator()


@pytest.fixture()
def cosmos():
    return FakeCosmos()


@pytest.fixture()
def astrology():
    return FakeAstrology()


@pytest.fixture()
def synthesis_cache():
    return SynthesisCache()


@pytest.fixture()
def client(embedder, generator, cosmos, astrology, synthesis_cache):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_embedder] = lambda: embedder
    app.dependency_overrides[get_generator] = lambda: generator
    app.dependency_overrides[get_cosmos_client] = lambda: cosmos
    app.dependency_overrides[get_astrology_client] = lambda: astrology
    app.dependency_overrides[get_attunement_cache] = lambda: synthesis_cache
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
