"""Explanation generation service using OpenAI."""
import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, List, Optional, Tuple

from openai import OpenAI, OpenAIError

from phrasedrill.config import ExplanationSettings, settings
from phrasedrill.errors import ExplanationError
from phrasedrill.models.quiz_models import Explanation, PhraseData, TranslationCandidate
from phrasedrill.monitoring import error_count, explanation_requests

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "en": "English",
    "pt": "Portuguese",
    "de": "German",
    "es": "Spanish",
    "fr": "French",
    "it": "Italian",
}

SYSTEM_PROMPT = (
    "You are a {language} language expert helping {native}-speaking learners understand "
    "{language} phrases, their meanings, usage, and cultural context. Provide clear, "
    "accurate, and beginner-friendly explanations. Return ONLY a JSON object."
)

USER_PROMPT = """You are explaining the {language} phrase "{phrase}" for language learners. The primary {native} translation is "{reference}".

CONTEXT:
- {language} synonyms: {synonyms}
- {native} alternatives: {alternatives}

Always focus on the {language} phrase "{phrase}", but write your answer in {native}.

Return a JSON object with exactly these string fields:
"example": one practical {language} sentence using "{phrase}" with the {native} translation in parentheses,
"explanation": 3-4 sentences on meaning, usage and why "{reference}" is a good translation,
"definition": a precise 1-2 sentence definition,
"grammar": part of speech and essential grammar information,
"facts": 2-3 sentences on etymology or cultural context,
"pronunciationIPA": IPA notation for "{phrase}",
"pronunciationEnglish": an approximation using familiar {native} sounds,
"synonyms": how the listed synonyms differ in meaning and register,
"alternatives": when to use "{reference}" rather than the other translations.
"""


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def cache_key(source_id: int, expected_id: int) -> str:
    """Stable cache file name of a phrase pair."""
    return hashlib.sha256(f"phrase-{source_id}-{expected_id}".encode("utf-8")).hexdigest()


def _format_candidates(candidates: List[TranslationCandidate]) -> str:
    if not candidates:
        return "None available"
    return ", ".join(f'"{c.text}" (similarity: {c.similarity})' for c in candidates)


class ExplanationService:
    """Explains a phrase pair in the learner's native language.

    Results are cached on disk per ``(source, expected)`` pair and expire after
    EXPLANATION_CACHE_DAYS.
    """

    def __init__(self, client: Optional[OpenAI] = None,
                 explanation_settings: ExplanationSettings = settings.explanation):
        self.settings = explanation_settings
        self.cache_dir = Path(explanation_settings.cache_dir)
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.api_key:
                raise ExplanationError("OPENAI_API_KEY is not configured")
            self._client = OpenAI(api_key=self.settings.api_key)
        return self._client

    def _cache_path(self, source_id: int, expected_id: int) -> Path:
        return self.cache_dir / f"{cache_key(source_id, expected_id)}.json"

    def get_cached(self, source_id: int, expected_id: int) -> Optional[Explanation]:
        """Cached explanation of the pair, or None when missing or expired."""
        path = self._cache_path(source_id, expected_id)
        try:
            with path.open(encoding="utf-8") as f:
                cached = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable explanation cache {path}: {e}")
            return None
        if (
            not isinstance(cached, dict)
            or not isinstance(cached.get("expiresAt", 0), (int, float))
            or not isinstance(cached.get("data", {}), dict)
        ):
            logger.warning(f"Ignoring malformed explanation cache {path}")
            return None

        if time.time() * 1000 >= cached.get("expiresAt", 0):
            path.unlink(missing_ok=True)
            logger.info(f"Expired explanation cache removed for {source_id} -> {expected_id}")
            return None
        return Explanation.from_dict(cached.get("data", {}))

    def store(self, source_id: int, expected_id: int, explanation: Explanation) -> None:
        """Write an explanation to the cache. Failures are only logged."""
        now = int(time.time() * 1000)
        payload = {
            "data": explanation.to_dict(),
            "timestamp": now,
            "expiresAt": now + self.settings.cache_days * 24 * 60 * 60 * 1000,
        }
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with self._cache_path(source_id, expected_id).open("w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            logger.info(f"Cached explanation for {source_id} -> {expected_id}")
        except OSError as e:
            logger.error(f"Failed to cache explanation: {e}")

    def pick_focus(
        self, source: PhraseData, expected: TranslationCandidate, options: List[TranslationCandidate]
    ) -> Tuple[PhraseData, PhraseData]:
        """Split a pair into (phrase to explain, native-language reference)."""
        native = self.settings.native_language
        if source.language != native:
            reference = expected.phrase if expected.language == native else next(
                (o.phrase for o in options if o.language == native), expected.phrase
            )
            return source, reference
        focus = expected.phrase if expected.language != native else next(
            (o.phrase for o in options if o.language != native), expected.phrase
        )
        return focus, source

    def generate(
        self,
        focus: PhraseData,
        reference: PhraseData,
        synonyms: List[TranslationCandidate],
        alternatives: List[TranslationCandidate],
    ) -> Explanation:
        """Ask the model for an explanation of ``focus``."""
        language = language_name(focus.language)
        native = language_name(self.settings.native_language)
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT.format(language=language, native=native)},
            {
                "role": "user",
                "content": USER_PROMPT.format(
                    language=language,
                    native=native,
                    phrase=focus.text,
                    reference=reference.text,
                    synonyms=_format_candidates(synonyms),
                    alternatives=_format_candidates(alternatives),
                ),
            },
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.settings.model,
                response_format={"type": "json_object"},
                messages=messages,
            )
            raw = response.choices[0].message.content or "{}"
            data: Any = json.loads(raw)
        except (OpenAIError, ValueError) as e:
            error_count.labels(error_type="explanation").inc()
            explanation_requests.labels(status="failed").inc()
            logger.error(f"Error generating explanation for '{focus.text}': {e}")
            raise ExplanationError("Failed to generate explanation. Please try again.") from e

        if not isinstance(data, dict) or not data:
            explanation_requests.labels(status="failed").inc()
            raise ExplanationError("The model returned no explanation data")

        explanation = Explanation.from_dict(data)
        explanation.word = focus.text
        explanation.reference = reference.text
        explanation_requests.labels(status="generated").inc()
        logger.info(f"Explanation generated for '{focus.text}'")
        return explanation

    def explain_phrases(self, phrase_service, source_id: int, expected_id: int) -> Explanation:
        """Explain a stored pair, from cache when possible.

        Raises LookupError when either id does not resolve to a connected pair.
        """
        cached = self.get_cached(source_id, expected_id)
        if cached is not None:
            explanation_requests.labels(status="cached").inc()
            logger.info(f"Serving cached explanation for {source_id} -> {expected_id}")
            return cached

        pair = phrase_service.get_pair(source_id)
        if pair is None:
            raise LookupError(f"Source phrase with ID {source_id} not found")
        expected = next((o for o in pair.target_options if o.id == expected_id), None)
        if expected is None:
            raise LookupError(f"Expected answer with ID {expected_id} not found in target options")

        focus, reference = self.pick_focus(pair.source, expected, pair.target_options)
        synonyms = phrase_service.get_similar(focus.id)
        if focus.id == pair.source.id:
            alternatives = list(pair.target_options)
        else:
            alternatives = phrase_service.get_translations(focus.id)

        explanation = self.generate(focus, reference, synonyms, alternatives)
        self.store(source_id, expected_id, explanation)
        return explanation
