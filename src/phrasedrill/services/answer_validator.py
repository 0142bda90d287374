"""Checks typed answers against the accepted translations."""
from typing import Iterable, Optional

from phrasedrill.models.quiz_models import TranslationCandidate
from phrasedrill.services.text_normalizer import normalize


def validate(candidates: Iterable[TranslationCandidate], raw_input: str) -> Optional[TranslationCandidate]:
    """Return the first candidate whose normalized text equals the normalized input.

    Only exact matches after normalization count. Similarity decides which
    candidates are acceptable at all, not how close the typing has to be.
    """
    answer = normalize(raw_input)
    if not answer:
        return None
    for candidate in candidates:
        if normalize(candidate.text) == answer:
            return candidate
    return None
