"""Terminal front-end for a quiz session."""
import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional

from phrasedrill.config import settings
from phrasedrill.models.base import Database
from phrasedrill.models.quiz_models import QuizState
from phrasedrill.services.api_client import PhraseApiClient
from phrasedrill.services.daily_stats import DailyStatsTracker
from phrasedrill.services.explanation_service import ExplanationService
from phrasedrill.services.local_backend import LocalBackend
from phrasedrill.services.local_store import LocalStore
from phrasedrill.services.practice_ledger import PracticeLedger
from phrasedrill.services.session_controller import SessionController
from phrasedrill.services.session_selector import SessionSelector

logger = logging.getLogger(__name__)

HELP = "Type your answer. Commands: :show  :explain  :next (or empty line)  :stats  :quit"

EXPLANATION_FIELDS = [
    ("Definition", "definition"),
    ("Example", "example"),
    ("Explanation", "explanation"),
    ("Grammar", "grammar"),
    ("Pronunciation", "pronunciation_ipa"),
    ("Sounds like", "pronunciation_english"),
    ("Synonyms", "synonyms"),
    ("Alternatives", "alternatives"),
    ("Facts", "facts"),
]


class QuizCli:
    """Renders controller transitions and turns input lines into commands."""

    def __init__(self, controller: SessionController, stats: DailyStatsTracker,
                 output: Callable[[str], None] = print):
        self.controller = controller
        self.stats = stats
        self.output = output
        controller.subscribe(self.render)

    def render(self, controller: SessionController) -> None:
        item = controller.item
        state = controller.state
        if controller.error:
            self.output(f"! {controller.error}")
        if state is QuizState.TYPING and not controller.input_text:
            tag = " [practice]" if item.is_practice else ""
            self.output(f"\n({item.direction.label}){tag} {item.prompt}")
        elif state is QuizState.CORRECT:
            self.output(f"Correct: {controller.matched.text}  +{controller.last_xp} XP")
        elif state is QuizState.REVEALED:
            options = ", ".join(o.text for o in item.pair.target_options)
            self.output(f"Answer: {item.answer}  (accepted: {options})")
        elif state is QuizState.EXPLAINING:
            self.output("Asking for an explanation...")
        elif state is QuizState.EXPLAINED:
            self.output(f"Answer: {item.answer}")
            for label, field in EXPLANATION_FIELDS:
                value = getattr(controller.explanation, field)
                if value:
                    self.output(f"  {label}: {value}")
        elif state is QuizState.EXHAUSTED:
            self.output("Nothing left to practise.")

    def stats_summary(self) -> str:
        diff = self.stats.diff()
        return (
            f"Today: {self.stats.today_count()} ({diff:+d} vs yesterday)  "
            f"XP: {self.controller.xp}  "
            f"Practice: {self.controller.ledger.count()}\n"
            f"Last {self.stats.history_days} days: {self.stats.histogram()}"
        )

    async def handle_line(self, line: str) -> bool:
        """Apply one input line; returns False when the session should end."""
        command = line.strip()
        controller = self.controller
        if controller.error:
            controller.dismiss_error()

        if command == ":quit":
            return False
        if command == ":help":
            self.output(HELP)
        elif command == ":stats":
            self.output(self.stats_summary())
        elif command == ":show":
            controller.reveal()
        elif command == ":explain":
            await controller.explain()
        elif command in ("", ":next"):
            if not await controller.next():
                logger.debug(f"Next ignored in state {controller.state.value}")
        elif not controller.handle_input(line.rstrip("\n")):
            if controller.state is QuizState.TYPING:
                self.output("Not quite, try again.")
        return controller.state is not QuizState.EXHAUSTED

    async def run(self, read_line: Optional[Callable[[], Awaitable[str]]] = None) -> None:
        """Read lines until :quit, end of input or an exhausted store."""
        read_line = read_line or (lambda: asyncio.to_thread(sys.stdin.readline))
        self.output(HELP)
        await self.controller.start()
        while self.controller.state is not QuizState.EXHAUSTED:
            line = await read_line()
            if not line:
                break
            if not await self.handle_line(line):
                break
        await self.controller.close()
        self.output(self.stats_summary())


async def run_quiz(api_url: Optional[str] = None, local: bool = False) -> None:
    """Build a session against the local database or a remote API and run it."""
    if local:
        database = Database()
        database.initialize()
        explanation_service = ExplanationService() if settings.explanation.api_key else None
        source = LocalBackend(database, explanation_service)
    else:
        source = PhraseApiClient(base_url=api_url)

    store = LocalStore()
    ledger = PracticeLedger(store)
    stats = DailyStatsTracker(store)
    selector = SessionSelector(source, ledger)
    controller = SessionController(selector, ledger, stats, store, explainer=source)
    try:
        await QuizCli(controller, stats).run()
    finally:
        await source.aclose()
