"""Per-day count of correct answers."""
import logging
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from phrasedrill.config import QuizSettings, settings
from phrasedrill.models.quiz_models import DayStat
from phrasedrill.services.local_store import DAILY_STATS_KEY, LocalStore

logger = logging.getLogger(__name__)

HISTOGRAM_CHARACTERS = "▁▂▃▄▅▆▇█"


class DailyStatsTracker:
    """Durable ``{YYYY-MM-DD: count}`` map with rolling views.

    Days come from the local wall clock at call time. No timezone
    normalization is attempted, so travelling across timezones can split or
    merge a day.
    """

    def __init__(self, store: LocalStore, quiz_settings: QuizSettings = settings.quiz,
                 today: Callable[[], date] = date.today):
        self.store = store
        self.history_days = quiz_settings.history_days
        self._today = today

    def _read(self) -> Dict[str, int]:
        raw = self.store.get(DAILY_STATS_KEY, {})
        if not isinstance(raw, dict):
            logger.warning(f"Discarding malformed daily stats: {raw!r}")
            return {}
        stats = {}
        for day, count in raw.items():
            if isinstance(count, int) and not isinstance(count, bool) and count >= 0:
                stats[str(day)] = count
        return stats

    def _day(self, offset: int = 0) -> str:
        return (self._today() - timedelta(days=offset)).isoformat()

    def increment_today(self) -> int:
        """Record one correct answer today and return today's new total."""
        stats = self._read()
        today = self._day()
        stats[today] = stats.get(today, 0) + 1
        self.store.set(DAILY_STATS_KEY, stats)
        return stats[today]

    def count_for(self, day: str) -> int:
        return self._read().get(day, 0)

    def today_count(self) -> int:
        return self.count_for(self._day())

    def yesterday_count(self) -> int:
        return self.count_for(self._day(1))

    def diff(self) -> int:
        """Today's count minus yesterday's."""
        stats = self._read()
        return stats.get(self._day(), 0) - stats.get(self._day(1), 0)

    def last_days(self, days: Optional[int] = None) -> List[DayStat]:
        """Trailing window, oldest first, zero-filled, with counts scaled to [0, 1]."""
        days = days or self.history_days
        stats = self._read()
        window = [(self._day(offset), stats.get(self._day(offset), 0))
                  for offset in range(days - 1, -1, -1)]
        peak = max([count for _, count in window] + [1])
        return [DayStat(date=day, count=count, normalized=count / peak) for day, count in window]

    def last_14_days(self) -> List[DayStat]:
        return self.last_days(14)

    def histogram(self) -> str:
        """Block-character sparkline of the trailing window."""
        levels = len(HISTOGRAM_CHARACTERS)
        return "".join(
            HISTOGRAM_CHARACTERS[min(int(day.normalized * levels), levels - 1)]
            for day in self.last_days()
        )
