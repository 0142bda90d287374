"""Tests for the HTTP API client."""
import json

import httpx
import pytest

from phrasedrill.config import ApiSettings
from phrasedrill.errors import AuthenticationError, ExplanationError, PhraseSourceError
from phrasedrill.models.quiz_models import ImportPair
from phrasedrill.services.api_client import PhraseApiClient

PAIR = {
    "sourcePhrase": {"id": 1, "phrase": "casa", "language": "pt", "relativeFrequency": None, "category": None},
    "targetOptions": [
        {"id": 2, "phrase": "house", "language": "en", "relativeFrequency": None, "category": None,
         "similarity": 1.0},
    ],
    "direction": "pt-to-en",
}

API_SETTINGS = ApiSettings(base_url="http://test", preshared_key="secret", retries=3, backoff=0, timeout=1)


def make_client(handler) -> PhraseApiClient:
    return PhraseApiClient(api_settings=API_SETTINGS, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_get_random():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": PAIR})

    client = make_client(handler)
    pair = await client.get_random(["en", "pt"])
    await client.aclose()

    assert pair.source.text == "casa"
    assert pair.expected.text == "house"
    assert seen[0].url.path == "/api/vocabulary/random"
    assert seen[0].url.params["languages"] == "en,pt"
    assert seen[0].headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_not_found_is_none():
    client = make_client(lambda request: httpx.Response(404, json={"success": False, "error": "nope"}))
    assert await client.get_by_id(5) is None
    assert await client.get_random(["en"]) is None
    await client.aclose()


@pytest.mark.asyncio
async def test_transient_failures_are_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("refused", request=request)
        if len(calls) == 2:
            return httpx.Response(503, json={"success": False, "error": "busy"})
        return httpx.Response(200, json={"success": True, "data": PAIR})

    client = make_client(handler)
    pair = await client.get_by_id(1)
    await client.aclose()

    assert pair.source.id == 1
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_gives_up_after_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, json={"success": False, "error": "boom"})

    client = make_client(handler)
    with pytest.raises(PhraseSourceError):
        await client.get_by_id(1)
    await client.aclose()
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, json={"success": False, "error": "Invalid authorization token"})

    client = make_client(handler)
    with pytest.raises(AuthenticationError, match="Invalid authorization token"):
        await client.get_stats()
    await client.aclose()
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_explain():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"sourcePhraseId": 1, "expectedAnswerId": 2}
        return httpx.Response(200, json={"success": True, "data": {"definition": "home", "pronunciationIPA": "ˈkazɐ"}})

    client = make_client(handler)
    explanation = await client.explain(1, 2)
    await client.aclose()
    assert explanation.definition == "home"
    assert explanation.pronunciation_ipa == "ˈkazɐ"


@pytest.mark.asyncio
async def test_explain_failure():
    client = make_client(lambda request: httpx.Response(502, json={"success": False, "error": "down"}))
    with pytest.raises(ExplanationError):
        await client.explain(1, 2)
    await client.aclose()


@pytest.mark.asyncio
async def test_import_pairs():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["overwrite"] is True
        assert body["data"][0] == {
            "phrase1": "cat", "language1": "en", "phrase2": "gato", "language2": "pt", "similarity": 0.8,
        }
        return httpx.Response(200, json={"success": True, "data": {
            "imported": 1, "skipped": 0, "errors": 0, "message": "Import completed: 1 imported, 0 skipped, 0 errors",
        }})

    client = make_client(handler)
    result = await client.import_pairs([ImportPair("cat", "en", "gato", "pt", 0.8)], overwrite=True)
    await client.aclose()
    assert result.imported == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [
    {"sourcePhrase": {"id": 1}},
    {"sourcePhrase": PAIR["sourcePhrase"], "targetOptions": [{"id": "two"}]},
    ["casa", "house"],
    "casa",
])
async def test_malformed_pair_is_a_source_error(data):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"success": True, "data": data})

    client = make_client(handler)
    with pytest.raises(PhraseSourceError, match="Malformed response"):
        await client.get_random(["en"])
    with pytest.raises(PhraseSourceError, match="Malformed response"):
        await client.get_by_id(1)
    await client.aclose()
    assert len(calls) == 2
