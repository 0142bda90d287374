"""Seed the phrase store from a public word list."""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from phrasedrill.config import MigrationSettings, settings
from phrasedrill.errors import PhraseSourceError
from phrasedrill.models.quiz_models import ImportPair, ImportResult
from phrasedrill.services.api_client import PhraseApiClient

logger = logging.getLogger(__name__)

NUMERIC = re.compile(r"^\d+$")
SAMPLE_SIZE = 10


def filter_words(words: Iterable[Any]) -> List[Dict[str, str]]:
    """Keep word list entries worth turning into phrase pairs.

    Drops entries without both words, identical pairs (ignoring case),
    words shorter than two characters and purely numeric words.
    """
    kept = []
    for word in words:
        if not isinstance(word, dict):
            continue
        english = word.get("englishWord")
        target = word.get("targetWord")
        if not isinstance(english, str) or not isinstance(target, str):
            continue
        english, target = english.strip(), target.strip()
        if not english or not target:
            continue
        if english.lower() == target.lower():
            continue
        if len(english) < 2 or len(target) < 2:
            continue
        if NUMERIC.match(english) or NUMERIC.match(target):
            continue
        kept.append({"englishWord": english, "targetWord": target})
    return kept


def to_import_pairs(words: Iterable[Dict[str, str]], language: str, similarity: float) -> List[ImportPair]:
    return [
        ImportPair(
            phrase1=word["englishWord"],
            language1="en",
            phrase2=word["targetWord"],
            language2=language,
            similarity=similarity,
        )
        for word in words
    ]


async def fetch_wordlist(url: str, client: Optional[httpx.AsyncClient] = None) -> List[Any]:
    """Download the word list and return its ``words`` array."""
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.api.timeout)
    try:
        response = await client.get(url, headers={"User-Agent": "phrasedrill-migration/1.0"})
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        raise PhraseSourceError(f"Failed to fetch vocabulary from {url}: {e}") from e
    except ValueError as e:
        raise PhraseSourceError(f"Word list at {url} is not valid JSON") from e
    finally:
        if owns_client:
            await client.aclose()

    words = data.get("words") if isinstance(data, dict) else None
    if not isinstance(words, list):
        raise PhraseSourceError("Invalid vocabulary data format received from external source")
    logger.info(f"Fetched {len(words)} words from {url}")
    return words


async def migrate(
    api: Optional[PhraseApiClient],
    source_url: Optional[str] = None,
    overwrite: bool = False,
    dry_run: bool = False,
    migration_settings: MigrationSettings = settings.migration,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Optional[ImportResult]:
    """Fetch, filter and import the word list.

    Returns None for a dry run or when the store already holds data and
    ``overwrite`` is not set.
    """
    if not dry_run:
        if api is None:
            raise ValueError("An API client is required unless dry_run is set")
        stats = await api.get_stats()
        existing = stats.get("totalPhrases", 0)
        if existing and not overwrite:
            logger.warning(
                f"Store already contains {existing} phrases, use --overwrite to replace them"
            )
            return None

    words = await fetch_wordlist(source_url or migration_settings.wordlist_url, http_client)
    filtered = filter_words(words)
    logger.info(f"{len(filtered)} of {len(words)} words kept after filtering")
    pairs = to_import_pairs(filtered, migration_settings.wordlist_language, migration_settings.similarity)

    for pair in pairs[:SAMPLE_SIZE]:
        logger.info(f'  "{pair.phrase1}" ({pair.language1}) <-> "{pair.phrase2}" ({pair.language2})')
    if len(pairs) > SAMPLE_SIZE:
        logger.info(f"  ... and {len(pairs) - SAMPLE_SIZE} more")

    if dry_run:
        logger.info(f"Dry run: would import {len(pairs)} phrase pairs")
        return None
    if not pairs:
        logger.warning("Nothing to import")
        return ImportResult()

    result = await api.import_pairs(pairs, overwrite=overwrite)
    logger.info(result.message)
    final = await api.get_stats()
    logger.info(
        f"Store now holds {final.get('totalPhrases', 0)} phrases and "
        f"{final.get('totalSimilarities', 0)} connections"
    )
    return result
