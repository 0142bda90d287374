"""Service for managing phrases and their similarity edges."""
import logging
import random
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import exists, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from phrasedrill.config import VocabularySettings, settings
from phrasedrill.errors import PhraseSourceError
from phrasedrill.models.models import Phrase, Similarity
from phrasedrill.models.quiz_models import (
    ImportPair,
    ImportResult,
    PhraseData,
    PracticePair,
    TranslationCandidate,
)
from phrasedrill.monitoring import db_operations
from phrasedrill.services.answer_validator import validate
from phrasedrill.services.text_normalizer import normalize

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


def _contains_pattern(query: str) -> str:
    """LIKE pattern matching ``query`` literally anywhere in the text."""
    escaped = (
        query.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class PhraseService:
    """Service for managing phrases and their similarity edges."""

    def __init__(self, db: Session, vocabulary_settings: VocabularySettings = settings.vocabulary,
                 rng: Optional[random.Random] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.settings = vocabulary_settings
        self.rng = rng or random.Random()

    def insert_phrase(
        self,
        text: str,
        language: str,
        relative_frequency: Optional[float] = None,
        category: Optional[str] = None,
    ) -> Phrase:
        """Insert a new phrase and return it."""
        phrase = Phrase(
            phrase=text,
            language=language,
            relative_frequency=relative_frequency,
            category=category,
        )
        self.db.add(phrase)
        self.db.commit()
        self.db.refresh(phrase)
        db_operations.labels(operation_type="insert_phrase").inc()
        return phrase

    def find_existing_phrase(self, text: str, language: str) -> Optional[int]:
        """Get the id of the phrase with this exact text and language."""
        row = (
            self.db.query(Phrase.id)
            .filter(Phrase.phrase == text, Phrase.language == language)
            .first()
        )
        return row[0] if row else None

    def get_phrase(self, phrase_id: int) -> Optional[Phrase]:
        """Get a phrase by its ID."""
        return self.db.query(Phrase).filter(Phrase.id == phrase_id).first()

    def _add_similarity(self, from_id: int, to_id: int, similarity: float) -> None:
        """Add one directed edge unless it already exists. Does not commit."""
        existing = (
            self.db.query(Similarity.id)
            .filter(Similarity.from_phrase_id == from_id, Similarity.to_phrase_id == to_id)
            .first()
        )
        if existing:
            return
        self.db.add(Similarity(from_phrase_id=from_id, to_phrase_id=to_id, similarity=similarity))
        self.db.flush()

    def insert_similarity(
        self, from_id: int, to_id: int, similarity: float, bidirectional: bool = True
    ) -> None:
        """Connect two phrases, in both directions unless told otherwise."""
        if similarity < 0 or similarity > 1:
            raise ValueError(f"Similarity {similarity} outside [0, 1]")
        self._add_similarity(from_id, to_id, similarity)
        if bidirectional and from_id != to_id:
            self._add_similarity(to_id, from_id, similarity)
        self.db.commit()
        db_operations.labels(operation_type="insert_similarity").inc()

    def _neighbours(
        self,
        phrase_id: int,
        same_language: bool,
        min_similarity: Optional[float],
        limit: Optional[int],
    ) -> List[TranslationCandidate]:
        if min_similarity is None:
            min_similarity = self.settings.acceptable_similarity
        if limit is None:
            limit = self.settings.default_limit
        limit = max(1, min(limit, self.settings.max_limit))

        source = aliased(Phrase)
        target = aliased(Phrase)
        language_filter = (
            target.language == source.language if same_language
            else target.language != source.language
        )
        rows = (
            self.db.query(target, Similarity.similarity)
            .join(Similarity, Similarity.to_phrase_id == target.id)
            .join(source, Similarity.from_phrase_id == source.id)
            .filter(
                source.id == phrase_id,
                language_filter,
                Similarity.similarity >= min_similarity,
            )
            .order_by(Similarity.similarity.desc(), target.id)
            .limit(limit)
            .all()
        )
        db_operations.labels(operation_type="select_neighbours").inc()
        return [
            TranslationCandidate(phrase=PhraseData.from_model(phrase), similarity=score)
            for phrase, score in rows
        ]

    def get_translations(
        self,
        phrase_id: int,
        min_similarity: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[TranslationCandidate]:
        """Other-language phrases connected to ``phrase_id``, best first."""
        return self._neighbours(phrase_id, False, min_similarity, limit)

    def get_similar(
        self,
        phrase_id: int,
        min_similarity: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[TranslationCandidate]:
        """Same-language phrases connected to ``phrase_id`` (synonyms), best first."""
        return self._neighbours(phrase_id, True, min_similarity, limit)

    def get_random_phrase(self, language: str) -> Optional[Phrase]:
        """Random phrase of ``language`` that has at least one acceptable translation."""
        target = aliased(Phrase)
        has_translation = exists().where(
            Similarity.from_phrase_id == Phrase.id,
            Similarity.to_phrase_id == target.id,
            target.language != Phrase.language,
            Similarity.similarity >= self.settings.acceptable_similarity,
        )
        db_operations.labels(operation_type="select_random").inc()
        return (
            self.db.query(Phrase)
            .filter(Phrase.language == language, has_translation)
            .order_by(func.random())
            .first()
        )

    def get_random_pair(self, languages: Optional[Iterable[str]] = None) -> Optional[PracticePair]:
        """Random phrase in one of ``languages`` with its ranked translations.

        The source language is drawn first; for two languages the first one is
        picked with RANDOM_LANGUAGE_CHANCE, for more they are equally likely.
        The remaining languages are tried before giving up.
        """
        candidates = [lang for lang in (languages or self.settings.supported_languages) if lang]
        if not candidates:
            return None
        if len(candidates) == 2:
            first = 0 if self.rng.random() < self.settings.random_language_chance else 1
            order = [candidates[first], candidates[1 - first]]
        else:
            order = list(candidates)
            self.rng.shuffle(order)

        for language in order:
            phrase = self.get_random_phrase(language)
            if phrase is None:
                continue
            pair = self.get_pair(phrase.id)
            if pair is not None:
                return pair
        logger.warning(f"No phrase with translations found for languages {candidates}")
        return None

    def get_pair(self, phrase_id: int) -> Optional[PracticePair]:
        """A phrase with its ranked translations, or None if unknown or untranslated."""
        phrase = self.get_phrase(phrase_id)
        if phrase is None:
            return None
        options = self.get_translations(phrase.id)
        if not options:
            return None
        return PracticePair(source=PhraseData.from_model(phrase), target_options=options)

    def get_stats(self) -> Dict[str, Any]:
        """Counts and averages over the whole store."""
        total_phrases = self.db.query(func.count(Phrase.id)).scalar() or 0
        total_similarities = self.db.query(func.count(Similarity.id)).scalar() or 0
        average = self.db.query(func.avg(Similarity.similarity)).scalar()
        breakdown = dict(
            self.db.query(Phrase.language, func.count(Phrase.id))
            .group_by(Phrase.language)
            .all()
        )
        db_operations.labels(operation_type="stats").inc()
        return {
            "totalPhrases": total_phrases,
            "totalSimilarities": total_similarities,
            "languageBreakdown": breakdown,
            "averageSimilarity": float(average) if average is not None else 0.0,
        }

    def validate_answer(self, source_id: int, answer: str) -> Dict[str, Any]:
        """Check ``answer`` against every acceptable translation of ``source_id``."""
        correct_answers = self.get_translations(source_id)
        matched = validate(correct_answers, answer)
        return {
            "isCorrect": matched is not None,
            "matchedPhrase": matched.to_dict() if matched else None,
            "correctAnswers": [candidate.to_dict() for candidate in correct_answers],
            "normalizedUserInput": normalize(answer),
        }

    def _skip_reason(self, pair: ImportPair) -> Optional[str]:
        """Why a pair cannot be imported, or None if it is fine."""
        for text in (pair.phrase1, pair.phrase2):
            if not isinstance(text, str) or not text.strip():
                return "empty phrase"
        for language in (pair.language1, pair.language2):
            if not isinstance(language, str) or language not in self.settings.supported_languages:
                return f"unsupported language {language!r}"
        similarity = pair.similarity
        if isinstance(similarity, bool) or not isinstance(similarity, (int, float)):
            return "similarity is not a number"
        if similarity < 0 or similarity > 1:
            return f"similarity {similarity} outside [0, 1]"
        if pair.phrase1.strip() == pair.phrase2.strip() and pair.language1 == pair.language2:
            return "identical phrases"
        return None

    def _get_or_create_id(self, text: str, language: str, category: Optional[str],
                          known: Dict[tuple, int]) -> int:
        key = (text, language)
        if key not in known:
            phrase_id = self.find_existing_phrase(text, language)
            if phrase_id is None:
                phrase = Phrase(phrase=text, language=language, category=category)
                self.db.add(phrase)
                self.db.flush()
                phrase_id = phrase.id
            known[key] = phrase_id
        return known[key]

    def import_pairs(
        self,
        pairs: Iterable[Union[ImportPair, Dict[str, Any]]],
        overwrite: bool = False,
    ) -> ImportResult:
        """Bulk load phrase pairs in one transaction.

        Invalid pairs are counted as skipped, pairs that fail in the database
        as errors; neither stops the batch.
        """
        result = ImportResult()
        known: Dict[tuple, int] = {}
        try:
            if overwrite:
                self._delete_everything()
                logger.info("Cleared existing vocabulary data")

            for raw in pairs:
                if not isinstance(raw, (ImportPair, dict)):
                    logger.debug(f"Skipping malformed import entry {raw!r}")
                    result.skipped += 1
                    continue
                pair = raw if isinstance(raw, ImportPair) else ImportPair.from_dict(raw)
                reason = self._skip_reason(pair)
                if reason:
                    logger.debug(f"Skipping pair {pair}: {reason}")
                    result.skipped += 1
                    continue

                try:
                    with self.db.begin_nested():
                        first = self._get_or_create_id(
                            pair.phrase1.strip(), pair.language1, pair.category1, known
                        )
                        second = self._get_or_create_id(
                            pair.phrase2.strip(), pair.language2, pair.category2, known
                        )
                        self._add_similarity(first, second, float(pair.similarity))
                        if first != second:
                            self._add_similarity(second, first, float(pair.similarity))
                    result.imported += 1
                except SQLAlchemyError as e:
                    logger.error(f"Error importing pair {pair}: {e}")
                    # Ids created inside the rolled back savepoint are gone
                    known.clear()
                    result.errors += 1

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Import transaction failed: {e}")
            raise PhraseSourceError(f"Import failed: {e}") from e

        db_operations.labels(operation_type="import").inc()
        logger.info(result.message)
        return result

    def _delete_everything(self) -> None:
        self.db.query(Similarity).delete()
        self.db.query(Phrase).delete()

    def clear_all(self) -> None:
        """Delete every phrase and edge."""
        self._delete_everything()
        self.db.commit()
        logger.info("All vocabulary data cleared from database")

    def delete_phrase(self, phrase_id: int) -> bool:
        """Delete a phrase and its edges."""
        phrase = self.get_phrase(phrase_id)
        if not phrase:
            return False
        self.db.delete(phrase)
        self.db.commit()
        db_operations.labels(operation_type="delete_phrase").inc()
        logger.info(f"Deleted phrase {phrase_id}")
        return True

    def delete_similarity(self, first_id: int, second_id: int) -> int:
        """Remove the edges between two phrases in both directions."""
        removed = (
            self.db.query(Similarity)
            .filter(
                or_(
                    (Similarity.from_phrase_id == first_id) & (Similarity.to_phrase_id == second_id),
                    (Similarity.from_phrase_id == second_id) & (Similarity.to_phrase_id == first_id),
                )
            )
            .delete()
        )
        self.db.commit()
        db_operations.labels(operation_type="delete_similarity").inc()
        return removed

    def list_orphans(self) -> List[PhraseData]:
        """Phrases without any translation."""
        target = aliased(Phrase)
        has_translation = exists().where(
            Similarity.from_phrase_id == Phrase.id,
            Similarity.to_phrase_id == target.id,
            target.language != Phrase.language,
        )
        phrases = self.db.query(Phrase).filter(~has_translation).order_by(Phrase.id).all()
        return [PhraseData.from_model(phrase) for phrase in phrases]

    def search_phrases(self, query: str, limit: Optional[int] = None) -> List[PhraseData]:
        """Phrases whose text contains ``query``."""
        limit = min(limit or self.settings.max_limit, self.settings.max_limit)
        phrases = (
            self.db.query(Phrase)
            .filter(Phrase.phrase.ilike(_contains_pattern(query), escape=LIKE_ESCAPE))
            .order_by(Phrase.phrase)
            .limit(limit)
            .all()
        )
        return [PhraseData.from_model(phrase) for phrase in phrases]

    def search_pairs(self, query: str) -> Dict[str, List[Dict[str, Any]]]:
        """Connected phrase pairs matching ``query`` on either side, grouped by category."""
        source = aliased(Phrase)
        target = aliased(Phrase)
        pattern = _contains_pattern(query)
        rows = (
            self.db.query(source, target, Similarity.similarity)
            .join(Similarity, Similarity.from_phrase_id == source.id)
            .join(target, Similarity.to_phrase_id == target.id)
            .filter(or_(
                source.phrase.ilike(pattern, escape=LIKE_ESCAPE),
                target.phrase.ilike(pattern, escape=LIKE_ESCAPE),
            ))
            .order_by(source.category, source.id, target.id)
            .all()
        )
        grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for first, second, score in rows:
            grouped[first.category or "Uncategorized"].append({
                "fromPhrase": PhraseData.from_model(first).to_dict(),
                "toPhrase": PhraseData.from_model(second).to_dict(),
                "similarity": score,
            })
        return dict(grouped)

    def get_categories(self) -> List[str]:
        """All distinct categories in use."""
        rows = (
            self.db.query(Phrase.category)
            .filter(Phrase.category.isnot(None))
            .distinct()
            .order_by(Phrase.category)
            .all()
        )
        return [row[0] for row in rows]

    def update_frequency(self, phrase_id: int, relative_frequency: float) -> bool:
        """Set the relative frequency of a phrase."""
        phrase = self.get_phrase(phrase_id)
        if not phrase:
            return False
        phrase.relative_frequency = relative_frequency
        self.db.commit()
        return True
