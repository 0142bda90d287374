"""Practice backlog of phrases that need more review."""
import logging
import random
from typing import Dict, List, Optional

from phrasedrill.config import QuizSettings, settings
from phrasedrill.models.quiz_models import PracticeEntry
from phrasedrill.monitoring import practice_backlog
from phrasedrill.services.local_store import PRACTICE_KEY, LocalStore

logger = logging.getLogger(__name__)


class PracticeLedger:
    """Durable set of ``{phrase_id, correct_count}`` entries.

    A phrase enters the ledger when its answer had to be revealed or explained,
    earns one point per later correct answer, and leaves once it reaches the
    mastery ceiling.
    """

    def __init__(self, store: LocalStore, quiz_settings: QuizSettings = settings.quiz,
                 rng: Optional[random.Random] = None):
        self.store = store
        self.ceiling = quiz_settings.mastery_ceiling
        self.rng = rng or random.Random()

    def _read(self) -> Dict[int, PracticeEntry]:
        entries: Dict[int, PracticeEntry] = {}
        raw = self.store.get(PRACTICE_KEY, [])
        if not isinstance(raw, list):
            logger.warning(f"Discarding malformed practice list: {raw!r}")
            return entries
        for item in raw:
            try:
                entry = PracticeEntry.from_dict(item)
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed practice entry: {item!r}")
                continue
            if 0 <= entry.correct_count < self.ceiling:
                entries[entry.phrase_id] = entry
        return entries

    def _write(self, entries: Dict[int, PracticeEntry]) -> None:
        self.store.set(PRACTICE_KEY, [entry.to_dict() for entry in entries.values()])
        practice_backlog.set(len(entries))

    def add(self, phrase_id: int) -> None:
        """Put a phrase in the backlog, resetting its count if already there."""
        entries = self._read()
        entries[phrase_id] = PracticeEntry(phrase_id=phrase_id, correct_count=0)
        self._write(entries)
        logger.info(f"Phrase {phrase_id} added to practice ({len(entries)} in backlog)")

    def bump(self, phrase_id: int) -> Optional[PracticeEntry]:
        """Count a correct answer; returns the entry, or None once mastered or unknown."""
        entries = self._read()
        entry = entries.get(phrase_id)
        if entry is None:
            return None
        entry.correct_count += 1
        if entry.correct_count >= self.ceiling:
            del entries[phrase_id]
            logger.info(f"Phrase {phrase_id} mastered, removed from practice")
            entry = None
        self._write(entries)
        return entry

    def remove(self, phrase_id: int) -> bool:
        """Drop a phrase from the backlog."""
        entries = self._read()
        if entries.pop(phrase_id, None) is None:
            return False
        self._write(entries)
        return True

    def sample(self) -> Optional[int]:
        """Uniformly random phrase id from the backlog, or None when empty."""
        entries = self._read()
        if not entries:
            return None
        return self.rng.choice(list(entries))

    def get(self, phrase_id: int) -> Optional[PracticeEntry]:
        return self._read().get(phrase_id)

    def contains(self, phrase_id: int) -> bool:
        return phrase_id in self._read()

    def entries(self) -> List[PracticeEntry]:
        """All entries currently in the backlog."""
        return list(self._read().values())

    def is_empty(self) -> bool:
        return not self._read()

    def count(self) -> int:
        return len(self._read())

    def __len__(self) -> int:
        return self.count()
