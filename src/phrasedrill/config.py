"""Configuration settings for the vocabulary trainer."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
STATE_DIR = DATA_DIR / "state"
CACHE_DIR = DATA_DIR / "cache"
EXPLANATIONS_DIR = CACHE_DIR / "explanations"

# Public list of the thousand most common Portuguese words
WORDLIST_URL = (
    "https://raw.githubusercontent.com/SMenigat/thousand-most-common-words/"
    "refs/heads/master/words/pt.json"
)


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        STATE_DIR,
        CACHE_DIR,
        EXPLANATIONS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


def _get_list(name: str, default: str) -> list[str]:
    """Read a comma separated environment variable."""
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    state_dir: Path = STATE_DIR
    cache_dir: Path = CACHE_DIR
    explanations_dir: Path = EXPLANATIONS_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'vocabulary.db'}")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class ApiSettings:
    """HTTP API and API client settings."""
    host: str = os.getenv("API_HOST", "127.0.0.1")
    port: int = int(os.getenv("API_PORT", "3000"))
    preshared_key: str = os.getenv("PRESHARED_KEY", "")
    base_url: str = os.getenv("API_BASE_URL", "http://localhost:3000")
    timeout: float = float(os.getenv("API_TIMEOUT", "10"))
    retries: int = int(os.getenv("API_RETRIES", "3"))
    backoff: float = float(os.getenv("API_BACKOFF", "0.5"))
    metrics_port: int = int(os.getenv("METRICS_PORT", "0"))


@dataclass
class VocabularySettings:
    """Phrase store settings."""
    supported_languages: list[str] = field(
        default_factory=lambda: _get_list("SUPPORTED_LANGUAGES", "en,pt")
    )
    acceptable_similarity: float = float(os.getenv("ACCEPTABLE_SIMILARITY", "0.5"))
    default_limit: int = int(os.getenv("DEFAULT_LIMIT", "10"))
    max_limit: int = int(os.getenv("MAX_LIMIT", "100"))
    random_language_chance: float = float(os.getenv("RANDOM_LANGUAGE_CHANCE", "0.5"))


@dataclass
class QuizSettings:
    """Quiz session settings."""
    min_xp: int = int(os.getenv("MIN_XP", "1"))
    max_xp: int = int(os.getenv("MAX_XP", "10"))
    fast_response_ms: int = int(os.getenv("FAST_RESPONSE_MS", "2000"))
    slow_response_ms: int = int(os.getenv("SLOW_RESPONSE_MS", "30000"))
    correct_delay_ms: int = int(os.getenv("CORRECT_DELAY_MS", "500"))
    reveal_delay_ms: int = int(os.getenv("REVEAL_DELAY_MS", "2000"))
    mastery_ceiling: int = int(os.getenv("MASTERY_CEILING", "3"))
    base_practice_chance: float = float(os.getenv("BASE_PRACTICE_CHANCE", "0.3"))
    practice_chance_cap: float = float(os.getenv("PRACTICE_CHANCE_CAP", "0.9"))
    practice_chance_scale: float = float(os.getenv("PRACTICE_CHANCE_SCALE", "8"))
    history_days: int = int(os.getenv("HISTORY_DAYS", "14"))


@dataclass
class ExplanationSettings:
    """Explanation generation settings."""
    api_key: str = os.getenv("OPENAI_API_KEY", "")
    model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    cache_days: int = int(os.getenv("EXPLANATION_CACHE_DAYS", "90"))
    native_language: str = os.getenv("NATIVE_LANGUAGE", "en")
    cache_dir: Path = EXPLANATIONS_DIR


@dataclass
class MigrationSettings:
    """Word list import settings."""
    wordlist_url: str = os.getenv("WORDLIST_URL", WORDLIST_URL)
    wordlist_language: str = os.getenv("WORDLIST_LANGUAGE", "pt")
    similarity: float = float(os.getenv("WORDLIST_SIMILARITY", "0.8"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_api_settings() -> ApiSettings:
    """Get API settings."""
    return ApiSettings()


def get_vocabulary_settings() -> VocabularySettings:
    """Get vocabulary settings."""
    return VocabularySettings()


def get_quiz_settings() -> QuizSettings:
    """Get quiz settings."""
    return QuizSettings()


def get_explanation_settings() -> ExplanationSettings:
    """Get explanation settings."""
    return ExplanationSettings()


def get_migration_settings() -> MigrationSettings:
    """Get migration settings."""
    return MigrationSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    api: ApiSettings = field(default_factory=get_api_settings)
    vocabulary: VocabularySettings = field(default_factory=get_vocabulary_settings)
    quiz: QuizSettings = field(default_factory=get_quiz_settings)
    explanation: ExplanationSettings = field(default_factory=get_explanation_settings)
    migration: MigrationSettings = field(default_factory=get_migration_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        quiz = self.quiz
        if quiz.min_xp > quiz.max_xp:
            raise ValueError("MIN_XP cannot be greater than MAX_XP")

        if quiz.fast_response_ms >= quiz.slow_response_ms:
            raise ValueError("FAST_RESPONSE_MS must be lower than SLOW_RESPONSE_MS")

        if quiz.mastery_ceiling < 1:
            raise ValueError("MASTERY_CEILING must be positive")

        for name in ("base_practice_chance", "practice_chance_cap"):
            value = getattr(quiz, name)
            if value < 0 or value > 1:
                raise ValueError(f"{name.upper()} must be between 0 and 1")

        if quiz.base_practice_chance > quiz.practice_chance_cap:
            raise ValueError("BASE_PRACTICE_CHANCE cannot be greater than PRACTICE_CHANCE_CAP")

        if quiz.practice_chance_scale <= 0:
            raise ValueError("PRACTICE_CHANCE_SCALE must be positive")

        vocabulary = self.vocabulary
        if len(vocabulary.supported_languages) < 2:
            raise ValueError("SUPPORTED_LANGUAGES needs at least two languages")

        if vocabulary.acceptable_similarity < 0 or vocabulary.acceptable_similarity > 1:
            raise ValueError("ACCEPTABLE_SIMILARITY must be between 0 and 1")

        if vocabulary.random_language_chance < 0 or vocabulary.random_language_chance > 1:
            raise ValueError("RANDOM_LANGUAGE_CHANCE must be between 0 and 1")

        if vocabulary.default_limit < 1 or vocabulary.default_limit > vocabulary.max_limit:
            raise ValueError("DEFAULT_LIMIT must be between 1 and MAX_LIMIT")


# Create global settings instance
settings = Settings()
settings.validate()
