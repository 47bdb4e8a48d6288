"""
Shared async HTTP client for the paper sources and the translation service.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import aiohttp
from aiohttp import ClientTimeout

from papercapsule.errors import SourceRequestError, SourceTimeoutError

logger = logging.getLogger(__name__)

USER_AGENT = "PaperCapsule/0.1"


class APIClient:
    """
    Async HTTP client bound to one base URL.

    Every request carries a total deadline (``timeout`` seconds). When a
    ``relay_url`` is configured the fully-built target URL is percent-encoded
    and appended to it, for sources that are only reachable through a relay.
    """

    def __init__(
        self,
        base_url: str,
        *,
        source: str,
        timeout: float = 15.0,
        api_key: Optional[str] = None,
        api_key_header: str = "x-api-key",
        relay_url: Optional[str] = None,
        request_interval: float = 0.0,
        max_retries: int = 0,
    ):
        self.base_url = base_url.rstrip("/")
        self.source = source
        self.timeout_seconds = float(timeout)
        self.timeout = ClientTimeout(total=self.timeout_seconds)
        self.api_key = api_key
        self.api_key_header = api_key_header
        self.relay_url = relay_url
        self.request_interval = request_interval
        self.max_retries = max(0, int(max_retries))
        self._last_request_time = 0.0
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": USER_AGENT}
            if self.api_key:
                headers[self.api_key_header] = self.api_key
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=headers)
        return self._session

    async def _wait_for_rate_limit(self) -> None:
        if self.request_interval <= 0:
            return
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self.request_interval:
            await asyncio.sleep(self.request_interval - elapsed)
        self._last_request_time = time.monotonic()

    def build_url(self, endpoint: str = "", params: Optional[Dict[str, Any]] = None) -> str:
        url = self.base_url
        if endpoint:
            url = f"{url}/{endpoint.lstrip('/')}"
        if params:
            url = f"{url}?{urlencode(params, safe=':,', quote_via=quote)}"
        if self.relay_url:
            return f"{self.relay_url}{quote(url, safe='')}"
        return url

    @staticmethod
    def _backoff_delay(attempt: int, retry_after: Optional[str]) -> float:
        delay = 2.0 * (2**attempt)
        if retry_after:
            try:
                delay = min(float(retry_after), 30.0)
            except (TypeError, ValueError):
                pass
        jitter = delay * 0.25 * (2 * random.random() - 1)
        return max(1.0, delay + jitter)

    async def get_text(self, endpoint: str = "", params: Optional[Dict[str, Any]] = None) -> str:
        """GET and return the body as text; retries 429/5xx up to ``max_retries``."""
        url = self.build_url(endpoint, params)
        last_status = 0

        for attempt in range(self.max_retries + 1):
            await self._wait_for_rate_limit()
            session = await self._get_session()
            try:
                async with session.get(url) as response:
                    last_status = response.status
                    if response.status == 200:
                        return await response.text()
                    if response.status == 429 or response.status >= 500:
                        retry_after = response.headers.get("Retry-After")
                        await response.read()
                        if attempt >= self.max_retries:
                            break
                        delay = self._backoff_delay(attempt, retry_after)
                        logger.warning(
                            "%s HTTP %s, retry %d/%d in %.1fs",
                            self.source,
                            response.status,
                            attempt + 1,
                            self.max_retries,
                            delay,
                        )
                        await asyncio.sleep(delay)
                        continue
                    body = await response.text()
                    logger.error("%s API error %s: %s", self.source, response.status, body[:200])
                    raise SourceRequestError(
                        self.source, f"HTTP {response.status}", status=response.status
                    )
            except asyncio.TimeoutError:
                if attempt >= self.max_retries:
                    logger.warning("%s request timed out: %s", self.source, url)
                    raise SourceTimeoutError(self.source, self.timeout_seconds) from None
                await asyncio.sleep(2.0 * (2**attempt))
            except aiohttp.ClientError as exc:
                raise SourceRequestError(self.source, str(exc) or exc.__class__.__name__) from exc

        if last_status == 429:
            raise SourceRequestError(self.source, "Too many requests, please wait", status=429)
        raise SourceRequestError(self.source, f"HTTP {last_status}", status=last_status)

    async def get_json(self, endpoint: str = "", params: Optional[Dict[str, Any]] = None) -> Any:
        text = await self.get_text(endpoint, params)
        try:
            return json.loads(text)
        except ValueError as exc:
            raise SourceRequestError(self.source, "Malformed JSON response") from exc

    async def post_json(self, endpoint: str = "", payload: Optional[Dict[str, Any]] = None) -> Any:
        """POST a JSON body and decode the JSON response (no retries)."""
        await self._wait_for_rate_limit()
        url = self.build_url(endpoint)
        session = await self._get_session()
        try:
            async with session.post(url, json=payload or {}) as response:
                if response.status not in (200, 201):
                    body = await response.text()
                    logger.error("%s API error %s: %s", self.source, response.status, body[:200])
                    raise SourceRequestError(
                        self.source, f"HTTP {response.status}", status=response.status
                    )
                text = await response.text()
        except asyncio.TimeoutError:
            raise SourceTimeoutError(self.source, self.timeout_seconds) from None
        except aiohttp.ClientError as exc:
            raise SourceRequestError(self.source, str(exc) or exc.__class__.__name__) from exc

        try:
            return json.loads(text)
        except ValueError as exc:
            raise SourceRequestError(self.source, "Malformed JSON response") from exc

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
