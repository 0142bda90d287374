"""Tests for the terminal quiz front-end."""
from datetime import date
from unittest.mock import AsyncMock

import pytest

from phrasedrill.models.quiz_models import Explanation, QuizState
from phrasedrill.quiz_cli import QuizCli
from phrasedrill.services.daily_stats import DailyStatsTracker
from phrasedrill.services.local_backend import LocalBackend
from phrasedrill.services.practice_ledger import PracticeLedger
from phrasedrill.services.session_controller import SessionController
from phrasedrill.services.session_selector import SessionSelector


@pytest.fixture
def output():
    return []


@pytest.fixture
def cli(database, seeded_database, store, quiz_settings, output):
    backend = LocalBackend(database)
    ledger = PracticeLedger(store, quiz_settings)
    stats = DailyStatsTracker(store, quiz_settings, today=lambda: date(2024, 3, 15))
    selector = SessionSelector(backend, ledger, languages=["pt"], quiz_settings=quiz_settings)
    explainer = AsyncMock()
    explainer.explain.return_value = Explanation(definition="a place to live")
    controller = SessionController(selector, ledger, stats, store, explainer=explainer,
                                   quiz_settings=quiz_settings)
    return QuizCli(controller, stats, output=output.append)


@pytest.mark.asyncio
async def test_prompt_and_correct_answer(cli, output):
    await cli.controller.start()
    item = cli.controller.item
    assert any(item.prompt in line for line in output)

    assert await cli.handle_line(item.answer.upper() + "\n")
    assert cli.controller.state is QuizState.CORRECT
    assert any(line.startswith("Correct:") for line in output)
    await cli.controller.close()


@pytest.mark.asyncio
async def test_wrong_answer_and_reveal(cli, output):
    await cli.controller.start()
    await cli.handle_line("definitely wrong")
    assert output[-1] == "Not quite, try again."

    await cli.handle_line(":show")
    assert cli.controller.state is QuizState.REVEALED
    assert output[-1].startswith("Answer:")
    assert cli.controller.ledger.contains(cli.controller.item.phrase_id)
    await cli.controller.close()


@pytest.mark.asyncio
async def test_explain_and_stats(cli, output):
    await cli.controller.start()
    await cli.handle_line(":explain")
    assert cli.controller.state is QuizState.EXPLAINED
    assert "  Definition: a place to live" in output

    await cli.handle_line(":stats")
    assert "Last 14 days:" in output[-1]
    await cli.controller.close()


@pytest.mark.asyncio
async def test_run_until_quit(cli, output):
    lines = iter(["\n", ":next\n", ":quit\n"])

    async def read_line():
        return next(lines)

    await cli.run(read_line)
    assert "Today: 0" in output[-1]
