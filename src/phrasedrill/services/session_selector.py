"""Chooses the next question: a new phrase or one from the practice backlog."""
import logging
import math
import random
from typing import Iterable, List, Optional, Protocol

from phrasedrill.config import QuizSettings, VocabularySettings, settings
from phrasedrill.errors import NoPhrasesAvailableError
from phrasedrill.models.quiz_models import Explanation, PracticePair, QuizItem, QuizItemKind
from phrasedrill.services.practice_ledger import PracticeLedger

logger = logging.getLogger(__name__)


class PhraseSource(Protocol):
    """Where phrases and their translation candidates come from."""

    async def get_random(self, languages: Iterable[str]) -> Optional[PracticePair]:
        ...

    async def get_by_id(self, phrase_id: int) -> Optional[PracticePair]:
        ...


class Explainer(Protocol):
    """Produces a natural-language explanation of a phrase pair."""

    async def explain(self, source_id: int, expected_id: int) -> Explanation:
        ...


def practice_chance(backlog_size: int, quiz_settings: QuizSettings = settings.quiz) -> float:
    """Probability of asking a backlog phrase instead of a new one.

    Grows from BASE_PRACTICE_CHANCE towards PRACTICE_CHANCE_CAP as the backlog
    fills up, never reaching the cap.
    """
    if backlog_size <= 0:
        return 0.0
    base = quiz_settings.base_practice_chance
    cap = quiz_settings.practice_chance_cap
    return base + (cap - base) * (1 - math.exp(-backlog_size / quiz_settings.practice_chance_scale))


class SessionSelector:
    """Picks the next QuizItem from the ledger or the phrase source."""

    def __init__(
        self,
        source: PhraseSource,
        ledger: PracticeLedger,
        languages: Optional[List[str]] = None,
        quiz_settings: QuizSettings = settings.quiz,
        vocabulary_settings: VocabularySettings = settings.vocabulary,
        rng: Optional[random.Random] = None,
    ):
        self.source = source
        self.ledger = ledger
        self.languages = list(languages or vocabulary_settings.supported_languages)
        self.quiz_settings = quiz_settings
        self.rng = rng or random.Random()

    def chance(self) -> float:
        return practice_chance(self.ledger.count(), self.quiz_settings)

    async def _from_practice(self) -> Optional[QuizItem]:
        """Sample the backlog; an unresolvable entry is dropped and None returned."""
        phrase_id = self.ledger.sample()
        if phrase_id is None:
            return None
        pair = await self.source.get_by_id(phrase_id)
        if pair is None:
            logger.warning(f"Practice phrase {phrase_id} no longer exists, dropping it")
            self.ledger.remove(phrase_id)
            return None
        entry = self.ledger.get(phrase_id)
        logger.info(f"Selected practice phrase {phrase_id}")
        return QuizItem(
            kind=QuizItemKind.PRACTICE,
            pair=pair,
            correct_count=entry.correct_count if entry else 0,
        )

    async def _new(self) -> QuizItem:
        pair = await self.source.get_random(self.languages)
        if pair is None:
            raise NoPhrasesAvailableError(f"No phrases available for {self.languages}")
        entry = self.ledger.get(pair.source.id)
        if entry is not None:
            # Drawn at random but already in the backlog: treat it as practice
            return QuizItem(kind=QuizItemKind.PRACTICE, pair=pair, correct_count=entry.correct_count)
        logger.info(f"Selected new phrase {pair.source.id} ({pair.direction.label})")
        return QuizItem(kind=QuizItemKind.NEW, pair=pair)

    async def next(self) -> QuizItem:
        """Return the next question.

        Raises NoPhrasesAvailableError when neither the backlog nor the phrase
        source can provide anything, and PhraseSourceError on transport failure.
        """
        tried_practice = False
        if not self.ledger.is_empty() and self.rng.random() < self.chance():
            tried_practice = True
            item = await self._from_practice()
            if item is not None:
                return item
        try:
            return await self._new()
        except NoPhrasesAvailableError:
            if tried_practice or self.ledger.is_empty():
                raise
            item = await self._from_practice()
            if item is None:
                raise
            return item
