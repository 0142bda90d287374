"""In-process phrase source backed by the local database."""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from phrasedrill.errors import ExplanationError, PhraseSourceError
from phrasedrill.models.base import Database
from phrasedrill.models.quiz_models import Explanation, ImportResult, PracticePair
from phrasedrill.services.explanation_service import ExplanationService
from phrasedrill.services.phrase_service import PhraseService

logger = logging.getLogger(__name__)


class LocalBackend:
    """Async phrase source that runs PhraseService calls in a worker thread.

    Every call gets its own session, so calls never share ORM state.
    """

    def __init__(self, database: Database, explanation_service: Optional[ExplanationService] = None):
        self.database = database
        self.explanation_service = explanation_service

    def _run(self, operation: str, func, *args):
        try:
            with self.database.session() as db:
                return func(PhraseService(db), *args)
        except SQLAlchemyError as e:
            logger.error(f"Database error during {operation}: {e}")
            raise PhraseSourceError(f"Database error during {operation}") from e

    async def get_random(self, languages: Iterable[str]) -> Optional[PracticePair]:
        languages = list(languages)
        return await asyncio.to_thread(
            self._run, "get_random", lambda service: service.get_random_pair(languages)
        )

    async def get_by_id(self, phrase_id: int) -> Optional[PracticePair]:
        return await asyncio.to_thread(
            self._run, "get_by_id", lambda service: service.get_pair(phrase_id)
        )

    async def get_stats(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._run, "get_stats", PhraseService.get_stats)

    async def import_pairs(self, pairs: List[Dict[str, Any]], overwrite: bool = False) -> ImportResult:
        return await asyncio.to_thread(
            self._run, "import_pairs", lambda service: service.import_pairs(pairs, overwrite)
        )

    async def explain(self, source_id: int, expected_id: int) -> Explanation:
        """Explain a pair; unknown ids are reported as an explanation failure."""
        if self.explanation_service is None:
            raise ExplanationError("Explanations are not configured")

        def _explain(service: PhraseService) -> Explanation:
            return self.explanation_service.explain_phrases(service, source_id, expected_id)

        try:
            return await asyncio.to_thread(self._run, "explain", _explain)
        except LookupError as e:
            raise ExplanationError(str(e)) from e

    async def aclose(self) -> None:
        self.database.close()
