"""Tests for the server lifecycle and entry point."""
from unittest.mock import patch

import pytest

from phrasedrill.__main__ import build_parser, main
from phrasedrill.app import PhraseDrillServer
from phrasedrill.models.base import Database


@pytest.fixture
def server() -> PhraseDrillServer:
    return PhraseDrillServer(database=Database("sqlite://"), host="127.0.0.1", port=3999)


@pytest.mark.asyncio
async def test_start(server):
    """Test starting the server."""
    await server.start()

    assert server.running
    assert server.server is not None
    assert server.database.is_initialized
    assert server.server.config.port == 3999

    await server.stop()


@pytest.mark.asyncio
async def test_stop(server):
    """Test stopping the server."""
    await server.start()
    await server.stop()

    assert not server.running
    assert server.server is None
    assert not server.database.is_initialized


@pytest.mark.asyncio
async def test_start_twice_is_harmless(server):
    await server.start()
    uvicorn_server = server.server
    await server.start()
    assert server.server is uvicorn_server
    await server.stop()


def test_parser():
    parser = build_parser()
    args = parser.parse_args(["migrate", "--dry-run", "--source", "http://words"])
    assert args.command == "migrate"
    assert args.dry_run
    assert not args.overwrite
    assert args.source == "http://words"

    args = parser.parse_args(["quiz", "--local"])
    assert args.local
    with pytest.raises(SystemExit):
        parser.parse_args(["quiz", "--local", "--api", "http://x"])


def test_migrate_requires_key_unless_dry_run():
    with patch("phrasedrill.__main__.settings") as settings, \
            patch("phrasedrill.__main__.setup_logging"):
        settings.api.preshared_key = ""
        assert main(["migrate"]) == 1
