"""XP reward for answering quickly."""
import math

from phrasedrill.config import QuizSettings, settings


class XPScorer:
    """Maps response time to XP on a piecewise-linear curve."""

    def __init__(self, quiz_settings: QuizSettings = settings.quiz):
        self.min_xp = quiz_settings.min_xp
        self.max_xp = quiz_settings.max_xp
        self.fast_ms = quiz_settings.fast_response_ms
        self.slow_ms = quiz_settings.slow_response_ms

    def score_for(self, response_time_ms: float) -> int:
        """XP for an answer given ``response_time_ms`` after the question appeared.

        Answers within the fast threshold earn the maximum, answers past the
        slow threshold earn the minimum, anything between decays linearly and
        is rounded up.
        """
        if response_time_ms <= self.fast_ms:
            return self.max_xp
        if response_time_ms >= self.slow_ms:
            return self.min_xp

        time_ratio = (response_time_ms - self.fast_ms) / (self.slow_ms - self.fast_ms)
        xp = math.ceil(self.max_xp - time_ratio * (self.max_xp - self.min_xp))
        return max(self.min_xp, min(self.max_xp, xp))


def calculate_xp(response_time_ms: float) -> int:
    """XP for a response time using the configured curve."""
    return XPScorer().score_for(response_time_ms)
