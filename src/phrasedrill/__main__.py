"""Main entry point: ``python -m phrasedrill serve|quiz|migrate``."""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from phrasedrill.app import PhraseDrillServer
from phrasedrill.config import ensure_directories, settings
from phrasedrill.errors import PhraseDrillError
from phrasedrill.logging_config import setup_logging
from phrasedrill.migrate import migrate
from phrasedrill.quiz_cli import run_quiz
from phrasedrill.services.api_client import PhraseApiClient

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="phrasedrill", description="Vocabulary flashcard trainer")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    quiz = commands.add_parser("quiz", help="Practise in the terminal")
    target = quiz.add_mutually_exclusive_group()
    target.add_argument("--api", default=None, help="Base URL of a running server")
    target.add_argument("--local", action="store_true", help="Use the local database directly")

    seed = commands.add_parser("migrate", help="Import the public word list through the API")
    seed.add_argument("--overwrite", action="store_true", help="Replace existing data")
    seed.add_argument("--dry-run", action="store_true", help="Only show what would be imported")
    seed.add_argument("--source", default=None, help="Word list URL")
    seed.add_argument("--api", default=None, help="Base URL of a running server")
    return parser


async def _migrate(args: argparse.Namespace) -> int:
    if not args.dry_run and not settings.api.preshared_key:
        logger.error("PRESHARED_KEY is required to import data")
        return 1
    api = None if args.dry_run else PhraseApiClient(base_url=args.api)
    try:
        await migrate(api, source_url=args.source, overwrite=args.overwrite, dry_run=args.dry_run)
    finally:
        if api is not None:
            await api.aclose()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    ensure_directories()

    if args.command == "serve":
        setup_logging(f"Starting PhraseDrill v{VERSION} ...", args.log_level)
        PhraseDrillServer(host=args.host, port=args.port).run()
        return 0

    if args.command == "quiz":
        # Keep the terminal readable while practising
        setup_logging(level=args.log_level or "WARNING")
        try:
            asyncio.run(run_quiz(api_url=args.api, local=args.local))
        except KeyboardInterrupt:
            pass
        except PhraseDrillError as e:
            logger.error(f"Quiz stopped: {e}")
            return 1
        return 0

    setup_logging(f"PhraseDrill migration v{VERSION}", args.log_level)
    try:
        return asyncio.run(_migrate(args))
    except PhraseDrillError as e:
        logger.error(f"Migration failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
