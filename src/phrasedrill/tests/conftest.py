"""Test configuration."""
import os
import tempfile
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="phrasedrill-test-"))

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from phrasedrill.config import QuizSettings, VocabularySettings, ensure_directories
from phrasedrill.models.base import Database
from phrasedrill.services.local_store import LocalStore
from phrasedrill.services.phrase_service import PhraseService


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def quiz_settings() -> QuizSettings:
    """Quiz settings with short delays so timers fire quickly."""
    return QuizSettings(
        min_xp=1,
        max_xp=10,
        fast_response_ms=2000,
        slow_response_ms=30000,
        correct_delay_ms=10,
        reveal_delay_ms=20,
        mastery_ceiling=3,
        base_practice_chance=0.3,
        practice_chance_cap=0.9,
        practice_chance_scale=8,
        history_days=14,
    )


@pytest.fixture
def vocabulary_settings() -> VocabularySettings:
    return VocabularySettings(
        supported_languages=["en", "pt"],
        acceptable_similarity=0.5,
        default_limit=10,
        max_limit=100,
        random_language_chance=0.5,
    )


@pytest.fixture
def store(tmp_path) -> LocalStore:
    """A local store in a fresh temporary directory."""
    return LocalStore(tmp_path / "state")


@pytest.fixture
def database():
    """An initialized in-memory database."""
    database = Database("sqlite://", echo=False)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def db(database):
    """A session on the in-memory database."""
    with database.session() as session:
        yield session


@pytest.fixture
def phrase_service(db, vocabulary_settings) -> PhraseService:
    return PhraseService(db, vocabulary_settings)


def seed_vocabulary(service: PhraseService) -> dict:
    """A small English/Portuguese vocabulary.

    thank you <-> obrigado (1.0), obrigada (0.9)
    house <-> casa (1.0)
    dog <-> cão (0.95); cachorro (0.3, below the acceptable similarity)
    big <-> grande (1.0), big ~ large (0.8, same language)
    """
    ids = {}
    for text, language in [
        ("thank you", "en"), ("obrigado", "pt"), ("obrigada", "pt"),
        ("house", "en"), ("casa", "pt"),
        ("dog", "en"), ("cão", "pt"), ("cachorro", "pt"),
        ("big", "en"), ("large", "en"), ("grande", "pt"),
    ]:
        ids[text] = service.insert_phrase(text, language, category="basics").id
    service.insert_similarity(ids["thank you"], ids["obrigado"], 1.0)
    service.insert_similarity(ids["thank you"], ids["obrigada"], 0.9)
    service.insert_similarity(ids["house"], ids["casa"], 1.0)
    service.insert_similarity(ids["dog"], ids["cão"], 0.95)
    service.insert_similarity(ids["dog"], ids["cachorro"], 0.3)
    service.insert_similarity(ids["big"], ids["grande"], 1.0)
    service.insert_similarity(ids["big"], ids["large"], 0.8)
    return ids


@pytest.fixture
def seeded(phrase_service) -> dict:
    """Seed through the test's own session."""
    return seed_vocabulary(phrase_service)


@pytest.fixture
def seeded_database(database, vocabulary_settings) -> dict:
    """Seed through a session that is closed again before the test runs.

    The in-memory database shares one connection, so tests that open their
    own sessions must not hold the ``db`` fixture at the same time.
    """
    with database.session() as session:
        return seed_vocabulary(PhraseService(session, vocabulary_settings))
