"""HTTP client for the vocabulary API."""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx

from phrasedrill.config import ApiSettings, settings
from phrasedrill.errors import AuthenticationError, ExplanationError, PhraseSourceError
from phrasedrill.models.quiz_models import Explanation, ImportPair, ImportResult, PracticePair
from phrasedrill.monitoring import error_count

logger = logging.getLogger(__name__)


class PhraseApiClient:
    """Async phrase source talking to a remote PhraseDrill server.

    Transport errors and 5xx responses are retried with exponential backoff.
    A 404 means "not found" and is returned as None.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_key: Optional[str] = None,
        api_settings: ApiSettings = settings.api,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or api_settings.base_url).rstrip("/")
        self.auth_key = auth_key if auth_key is not None else api_settings.preshared_key
        self.retries = max(1, api_settings.retries)
        self.backoff = api_settings.backoff
        headers = {"Authorization": f"Bearer {self.auth_key}"} if self.auth_key else {}
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=api_settings.timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Optional[Any]:
        """Send a request and unwrap the ``data`` field of the envelope."""
        last_error: Optional[Exception] = None
        for attempt in range(self.retries):
            if attempt:
                delay = self.backoff * (2 ** (attempt - 1))
                logger.warning(f"Retrying {method} {path} in {delay:.2f}s (attempt {attempt + 1})")
                await asyncio.sleep(delay)
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                last_error = e
                logger.error(f"Transport error on {method} {path}: {e}")
                continue

            if response.status_code >= 500:
                last_error = PhraseSourceError(f"Server error {response.status_code} on {path}")
                logger.error(f"Server error {response.status_code} on {method} {path}")
                continue
            if response.status_code == 404:
                return None
            if response.status_code in (401, 403):
                raise AuthenticationError(self._error_message(response))
            if response.status_code >= 400:
                raise PhraseSourceError(self._error_message(response))

            try:
                body = response.json()
            except ValueError as e:
                raise PhraseSourceError(f"Invalid JSON from {path}") from e
            return body.get("data") if isinstance(body, dict) and "data" in body else body

        error_count.labels(error_type="api_client").inc()
        raise PhraseSourceError(f"{method} {path} failed after {self.retries} attempts") from last_error

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("error") or body.get("detail") or f"HTTP {response.status_code}")
        return f"HTTP {response.status_code}"

    def _parse_pair(self, data: Any, path: str) -> Optional[PracticePair]:
        if not data:
            return None
        try:
            return PracticePair.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed phrase payload from {path}: {e!r}")
            error_count.labels(error_type="api_payload").inc()
            raise PhraseSourceError(f"Malformed response from {path}") from e

    async def get_random(self, languages: Iterable[str]) -> Optional[PracticePair]:
        path = "/api/vocabulary/random"
        data = await self._request("GET", path, params={"languages": ",".join(languages)})
        return self._parse_pair(data, path)

    async def get_by_id(self, phrase_id: int) -> Optional[PracticePair]:
        path = f"/api/vocabulary/practice/{phrase_id}"
        data = await self._request("GET", path)
        return self._parse_pair(data, path)

    async def explain(self, source_id: int, expected_id: int) -> Explanation:
        try:
            data = await self._request(
                "POST",
                "/api/explain",
                json={"sourcePhraseId": source_id, "expectedAnswerId": expected_id},
            )
        except PhraseSourceError as e:
            raise ExplanationError(str(e)) from e
        if not data:
            raise ExplanationError(f"No explanation for {source_id} -> {expected_id}")
        return Explanation.from_dict(data)

    async def get_stats(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/vocabulary/stats") or {}

    async def import_pairs(
        self, pairs: List[Union[ImportPair, Dict[str, Any]]], overwrite: bool = False
    ) -> ImportResult:
        payload = [p.to_dict() if isinstance(p, ImportPair) else p for p in pairs]
        data = await self._request(
            "POST", "/api/vocabulary/import", json={"data": payload, "overwrite": overwrite}
        ) or {}
        return ImportResult(
            imported=data.get("imported", 0),
            skipped=data.get("skipped", 0),
            errors=data.get("errors", 0),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
