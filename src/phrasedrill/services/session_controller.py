"""Per-question lifecycle of a quiz session."""
import asyncio
import logging
import time
from typing import Callable, List, Optional

from phrasedrill.config import QuizSettings, settings
from phrasedrill.errors import NoPhrasesAvailableError, PhraseDrillError
from phrasedrill.models.quiz_models import Explanation, QuizItem, QuizState, TranslationCandidate
from phrasedrill.monitoring import answers, error_count, xp_awarded
from phrasedrill.services.answer_validator import validate
from phrasedrill.services.daily_stats import DailyStatsTracker
from phrasedrill.services.local_store import XP_KEY, LocalStore
from phrasedrill.services.practice_ledger import PracticeLedger
from phrasedrill.services.session_selector import Explainer, SessionSelector
from phrasedrill.services.xp_scorer import XPScorer

logger = logging.getLogger(__name__)

Listener = Callable[["SessionController"], None]

# States in which the question is finished and waits for the auto-advance
FINISHED_STATES = (QuizState.CORRECT, QuizState.REVEALED, QuizState.EXPLAINED)


class SessionController:
    """Drives questions through typing, correct, revealed and explained.

    All transitions run on one event loop. Auto-advance is a single
    cancellable task per question sleeping on the loop's monotonic clock;
    loading a new question, a manual next and ``close()`` cancel it.
    Triggers that do not apply to the current state are ignored.
    """

    def __init__(
        self,
        selector: SessionSelector,
        ledger: PracticeLedger,
        stats: DailyStatsTracker,
        store: LocalStore,
        explainer: Optional[Explainer] = None,
        scorer: Optional[XPScorer] = None,
        quiz_settings: QuizSettings = settings.quiz,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.selector = selector
        self.ledger = ledger
        self.stats = stats
        self.store = store
        self.explainer = explainer
        self.scorer = scorer or XPScorer(quiz_settings)
        self.correct_delay = quiz_settings.correct_delay_ms / 1000
        self.reveal_delay = quiz_settings.reveal_delay_ms / 1000
        self._clock = clock

        self.state = QuizState.IDLE
        self.item: Optional[QuizItem] = None
        self.input_text = ""
        self.matched: Optional[TranslationCandidate] = None
        self.explanation: Optional[Explanation] = None
        self.error: Optional[str] = None
        self.last_xp = 0
        self._shown_at = 0.0
        self._timer: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self._closed = False

    @property
    def xp(self) -> int:
        """Total XP earned across sessions."""
        value = self.store.get(XP_KEY, 0)
        return value if isinstance(value, int) and not isinstance(value, bool) else 0

    @property
    def pending_advance(self) -> Optional[asyncio.Task]:
        """The scheduled auto-advance, if any."""
        return self._timer

    def subscribe(self, listener: Listener) -> None:
        """Call ``listener(controller)`` after every transition."""
        self._listeners.append(listener)

    def _set_state(self, state: QuizState) -> None:
        logger.debug(f"Quiz state {self.state.value} -> {state.value}")
        self.state = state
        for listener in self._listeners:
            listener(self)

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    def _schedule_advance(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._advance_after(delay, self.item))

    async def _advance_after(self, delay: float, item: Optional[QuizItem]) -> None:
        await asyncio.sleep(delay)
        if self._closed or item is not self.item or self.state not in FINISHED_STATES:
            return
        await self._load()

    async def _load(self) -> None:
        self._cancel_timer()
        self.error = None
        self._set_state(QuizState.LOADING)
        try:
            item = await self.selector.next()
        except NoPhrasesAvailableError as e:
            logger.error(f"No phrases available: {e}")
            self.item = None
            self.error = "No phrases available. Import some vocabulary first."
            self._set_state(QuizState.EXHAUSTED)
            return
        except PhraseDrillError as e:
            logger.error(f"Failed to load the next phrase: {e}")
            error_count.labels(error_type="phrase_source").inc()
            self.item = None
            self.error = f"Could not load the next phrase: {e}"
            self._set_state(QuizState.IDLE)
            return

        if self._closed:
            return
        self.item = item
        self.input_text = ""
        self.matched = None
        self.explanation = None
        self.last_xp = 0
        self._shown_at = self._clock()
        self._set_state(QuizState.TYPING)

    async def start(self) -> None:
        """Load the first question."""
        if self.state is QuizState.IDLE and not self._closed:
            await self._load()

    async def next(self) -> bool:
        """Skip to the next question; only honoured while typing or idle."""
        if self._closed or self.state not in (QuizState.TYPING, QuizState.IDLE):
            return False
        await self._load()
        return True

    def handle_input(self, text: str) -> bool:
        """Re-validate on every change of the answer field; True when it is correct."""
        if self.state is not QuizState.TYPING or self.item is None:
            return False
        self.input_text = text
        matched = validate(self.item.pair.target_options, text)
        if matched is None:
            return False
        self.matched = matched
        self._on_correct()
        return True

    def _on_correct(self) -> None:
        item = self.item
        elapsed_ms = (self._clock() - self._shown_at) * 1000
        self.last_xp = self.scorer.score_for(elapsed_ms)
        self.store.set(XP_KEY, self.xp + self.last_xp)
        self.stats.increment_today()
        if item.is_practice:
            entry = self.ledger.bump(item.phrase_id)
            if entry is None:
                logger.info(f"Phrase {item.phrase_id} left the practice backlog")

        answers.labels(result="correct").inc()
        xp_awarded.inc(self.last_xp)
        logger.info(f"Correct answer for phrase {item.phrase_id} in {elapsed_ms:.0f}ms, +{self.last_xp} XP")
        self._set_state(QuizState.CORRECT)
        self._schedule_advance(self.correct_delay)

    def reveal(self) -> bool:
        """Show the expected answer and put the phrase up for practice."""
        if self.state is not QuizState.TYPING or self.item is None:
            return False
        self.ledger.add(self.item.phrase_id)
        answers.labels(result="revealed").inc()
        logger.info(f"Answer revealed for phrase {self.item.phrase_id}")
        self._set_state(QuizState.REVEALED)
        self._schedule_advance(self.reveal_delay)
        return True

    async def explain(self) -> bool:
        """Fetch an explanation of the current pair.

        A failure sets ``error`` and returns to the previous state, leaving the
        backlog untouched.
        """
        if self.state not in (QuizState.TYPING, QuizState.REVEALED) or self.item is None:
            return False
        if self.explainer is None:
            self.error = "Explanations are not available"
            self._set_state(self.state)
            return False

        item = self.item
        previous = self.state
        self._cancel_timer()
        self._set_state(QuizState.EXPLAINING)
        try:
            explanation = await self.explainer.explain(item.phrase_id, item.pair.expected.id)
        except PhraseDrillError as e:
            logger.error(f"Explanation failed for phrase {item.phrase_id}: {e}")
            if self._closed or item is not self.item:
                return False
            self.error = f"Could not explain this phrase: {e}"
            self._set_state(previous)
            if previous is QuizState.REVEALED:
                self._schedule_advance(self.reveal_delay)
            return False

        if self._closed or item is not self.item:
            return False
        self.explanation = explanation
        self.ledger.add(item.phrase_id)
        answers.labels(result="explained").inc()
        self._set_state(QuizState.EXPLAINED)
        self._schedule_advance(self.reveal_delay)
        return True

    def dismiss_error(self) -> None:
        if self.error is not None:
            self.error = None
            self._set_state(self.state)

    async def close(self) -> None:
        """Stop the session and cancel any pending auto-advance."""
        self._closed = True
        timer = self._timer
        self._cancel_timer()
        if timer is not None and timer is not asyncio.current_task():
            try:
                await timer
            except asyncio.CancelledError:
                pass
        logger.info("Quiz session closed")
