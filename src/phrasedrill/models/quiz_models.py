"""Models for quiz-related data structures."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from phrasedrill.models.models import Phrase


@dataclass(frozen=True)
class PhraseData:
    """Detached, read-only copy of a stored phrase."""
    id: int
    text: str
    language: str
    relative_frequency: Optional[float] = None
    category: Optional[str] = None

    @classmethod
    def from_model(cls, phrase: Phrase) -> "PhraseData":
        """Build from a database row."""
        return cls(
            id=phrase.id,
            text=phrase.phrase,
            language=phrase.language,
            relative_frequency=phrase.relative_frequency,
            category=phrase.category,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhraseData":
        """Build from the API representation."""
        return cls(
            id=int(data["id"]),
            text=data["phrase"],
            language=data["language"],
            relative_frequency=data.get("relativeFrequency"),
            category=data.get("category"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """API representation."""
        return {
            "id": self.id,
            "phrase": self.text,
            "language": self.language,
            "relativeFrequency": self.relative_frequency,
            "category": self.category,
        }


@dataclass(frozen=True)
class TranslationCandidate:
    """A phrase accepted as an answer for some source phrase, with its score."""
    phrase: PhraseData
    similarity: float

    @property
    def id(self) -> int:
        return self.phrase.id

    @property
    def text(self) -> str:
        return self.phrase.text

    @property
    def language(self) -> str:
        return self.phrase.language

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationCandidate":
        """Build from the API representation."""
        return cls(phrase=PhraseData.from_dict(data), similarity=float(data["similarity"]))

    def to_dict(self) -> Dict[str, Any]:
        """API representation."""
        return {**self.phrase.to_dict(), "similarity": self.similarity}


@dataclass(frozen=True)
class QuizDirection:
    """Which language is prompted and which one is expected."""
    from_language: str
    to_language: str

    @property
    def label(self) -> str:
        """Short form such as ``en-to-pt``."""
        return f"{self.from_language}-to-{self.to_language}"


@dataclass(frozen=True)
class PracticePair:
    """A source phrase together with its ranked translation candidates."""
    source: PhraseData
    target_options: List[TranslationCandidate]

    def __post_init__(self) -> None:
        if not self.target_options:
            raise ValueError(f"Phrase {self.source.id} has no translation candidates")
        ranked = sorted(self.target_options, key=lambda c: c.similarity, reverse=True)
        object.__setattr__(self, "target_options", ranked)

    @property
    def expected(self) -> TranslationCandidate:
        """The canonical answer."""
        return self.target_options[0]

    @property
    def direction(self) -> QuizDirection:
        return QuizDirection(self.source.language, self.expected.language)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PracticePair":
        """Build from the API representation."""
        return cls(
            source=PhraseData.from_dict(data["sourcePhrase"]),
            target_options=[TranslationCandidate.from_dict(o) for o in data["targetOptions"]],
        )

    def to_dict(self) -> Dict[str, Any]:
        """API representation."""
        return {
            "sourcePhrase": self.source.to_dict(),
            "targetOptions": [option.to_dict() for option in self.target_options],
            "direction": self.direction.label,
        }


class QuizItemKind(Enum):
    """Where the current question came from."""
    NEW = "new"  # Drawn at random from the phrase store
    PRACTICE = "practice"  # Taken from the practice backlog


@dataclass(frozen=True)
class QuizItem:
    """One question: a phrase pair tagged as new or practice."""
    kind: QuizItemKind
    pair: PracticePair
    correct_count: int = 0

    @property
    def phrase_id(self) -> int:
        return self.pair.source.id

    @property
    def is_practice(self) -> bool:
        return self.kind is QuizItemKind.PRACTICE

    @property
    def direction(self) -> QuizDirection:
        return self.pair.direction

    @property
    def prompt(self) -> str:
        """Text shown to the learner."""
        return self.pair.source.text

    @property
    def answer(self) -> str:
        """Canonical expected answer."""
        return self.pair.expected.text


@dataclass
class PracticeEntry:
    """A phrase in the practice backlog."""
    phrase_id: int
    correct_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PracticeEntry":
        """Build from the persisted form."""
        return cls(phrase_id=int(data["id"]), correct_count=int(data.get("correctCount", 0)))

    def to_dict(self) -> Dict[str, Any]:
        """Persisted form."""
        return {"id": self.phrase_id, "correctCount": self.correct_count}


@dataclass(frozen=True)
class DayStat:
    """Correct answers on one calendar day."""
    date: str  # YYYY-MM-DD
    count: int
    normalized: float


class QuizState(Enum):
    """Lifecycle of one question in a session."""
    IDLE = "idle"
    LOADING = "loading"
    TYPING = "typing"
    CORRECT = "correct"
    REVEALED = "revealed"
    EXPLAINING = "explaining"
    EXPLAINED = "explained"
    EXHAUSTED = "exhausted"  # Nothing to ask at all


@dataclass
class Explanation:
    """Generated explanation of a phrase pair."""
    example: str = ""
    definition: str = ""
    explanation: str = ""
    grammar: str = ""
    facts: str = ""
    pronunciation_ipa: str = ""
    pronunciation_english: str = ""
    synonyms: str = ""
    alternatives: str = ""
    word: str = ""
    reference: str = ""

    _KEYS = {
        "pronunciation_ipa": "pronunciationIPA",
        "pronunciation_english": "pronunciationEnglish",
    }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Explanation":
        """Build from the API or model representation, ignoring unknown keys."""
        values = {}
        for name in cls.__dataclass_fields__:
            key = cls._KEYS.get(name, name)
            value = data.get(key, data.get(name))
            if value is not None:
                values[name] = value if isinstance(value, str) else str(value)
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        """API representation."""
        return {self._KEYS.get(name, name): getattr(self, name) for name in self.__dataclass_fields__}


@dataclass
class ImportPair:
    """One line of a bulk import."""
    phrase1: Optional[str]
    language1: Optional[str]
    phrase2: Optional[str]
    language2: Optional[str]
    similarity: Optional[float]
    category1: Optional[str] = None
    category2: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImportPair":
        """Build from loosely typed input; bad values are checked on import."""
        category = data.get("category")
        return cls(
            phrase1=data.get("phrase1"),
            language1=data.get("language1"),
            phrase2=data.get("phrase2"),
            language2=data.get("language2"),
            similarity=data.get("similarity"),
            category1=data.get("category1", category),
            category2=data.get("category2", category),
        )

    def to_dict(self) -> Dict[str, Any]:
        """API representation."""
        data = {
            "phrase1": self.phrase1,
            "language1": self.language1,
            "phrase2": self.phrase2,
            "language2": self.language2,
            "similarity": self.similarity,
        }
        if self.category1 is not None:
            data["category1"] = self.category1
        if self.category2 is not None:
            data["category2"] = self.category2
        return data


@dataclass
class ImportResult:
    """Outcome of a bulk import."""
    imported: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def message(self) -> str:
        return (
            f"Import completed: {self.imported} imported, "
            f"{self.skipped} skipped, {self.errors} errors"
        )

    def to_dict(self) -> Dict[str, Any]:
        """API representation."""
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "errors": self.errors,
            "message": self.message,
        }
