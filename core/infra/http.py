"""
http.py – Async page fetcher built on *aiohttp* with jittered retries,
          transparent 429 / 5xx back-off and per-instance default headers.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from email.utils import parsedate_to_datetime
from typing import Dict, Mapping, Optional

import aiohttp

from core.errors import FetchError, SourceUnreachableError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; KidsEventsBot/1.0)"


class HttpClient:
    """
    Thin wrapper over *aiohttp.ClientSession* adding:

    * default headers (user-agent and ``Accept-Language: pl-PL``)
    * exponential back-off **with jitter** for 429 / 5xx / network errors
    * *Retry-After* support
    * errors mapped onto the platform hierarchy: an unreachable host is a
      :class:`SourceUnreachableError`, any other bad status a :class:`FetchError`
    """

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._external_session = session
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._own_session: Optional[aiohttp.ClientSession] = None
        self._default_headers: Dict[str, str] = {
            "User-Agent": user_agent,
            "Accept-Language": "pl-PL,pl;q=0.9,en;q=0.5",
        }
        self._default_headers.update(default_headers or {})

    # ---------------------------------------------- #
    # Async context-manager
    async def __aenter__(self) -> "HttpClient":  # noqa: D401
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        await self.close()

    # ---------------------------------------------- #
    # Session management
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._external_session:
            return self._external_session
        if self._own_session is None or self._own_session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._own_session = aiohttp.ClientSession(timeout=timeout)
        return self._own_session

    async def close(self) -> None:
        if self._own_session and not self._own_session.closed:
            await self._own_session.close()
            self._own_session = None

    # ---------------------------------------------- #
    # Internal helpers
    @staticmethod
    def _parse_retry_after(header_val: str | None) -> Optional[float]:
        """Return seconds given a Retry-After header value."""
        if not header_val:
            return None
        header_val = header_val.strip()
        if header_val.isdigit():
            return float(header_val)
        try:
            retry_at = parsedate_to_datetime(header_val).timestamp()
        except (TypeError, ValueError):
            return None
        return max(0.0, retry_at - time.time())

    def _backoff(self, attempt: int, retry_after: Optional[float]) -> float:
        if retry_after is not None:
            return min(retry_after, self._max_delay)
        exponential = min(self._base_delay * 2 ** (attempt - 1), self._max_delay)
        return exponential + random.uniform(0, self._base_delay)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        retry_for_status: tuple[int, ...] = (429, 500, 502, 503, 504),
        **kwargs,
    ) -> aiohttp.ClientResponse:
        """Perform a request with retries; returns *aiohttp.ClientResponse*."""
        session = await self._ensure_session()

        headers: Dict[str, str] = {**self._default_headers}
        headers.update(kwargs.pop("headers", None) or {})
        kwargs["headers"] = headers

        for attempt in range(1, self._max_retries + 1):
            last_attempt = attempt == self._max_retries
            try:
                resp = await session.request(method, url, **kwargs)
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
                if last_attempt:
                    logger.error(f"{method} {url} unreachable after {attempt} attempts: {e!r}")
                    raise SourceUnreachableError(url, f"unreachable: {e!r}") from e
                sleep_seconds = self._backoff(attempt, None)
            else:
                if resp.status < 400:
                    return resp
                status = resp.status
                retry_after = self._parse_retry_after(resp.headers.get("Retry-After"))
                resp.release()
                if status not in retry_for_status:
                    raise FetchError(url, f"HTTP {status}", status=status)
                if last_attempt:
                    logger.error(f"{method} {url} failed after {attempt} attempts: HTTP {status}")
                    raise FetchError(url, f"HTTP {status} after {attempt} attempts", status=status)
                sleep_seconds = self._backoff(attempt, retry_after)

            logger.warning(
                f"{method} {url} failed (attempt {attempt}/{self._max_retries}), "
                f"retrying in {sleep_seconds:.1f}s"
            )
            await asyncio.sleep(sleep_seconds)

        raise RuntimeError("Unreachable retry loop")

    # ---------------------------------------------- #
    # Public helpers
    async def get_text(self, url: str, **kwargs) -> str:
        async with await self._request("GET", url, **kwargs) as resp:
            try:
                return await resp.text(errors="replace")
            except aiohttp.ClientPayloadError as e:
                raise FetchError(url, f"incomplete body: {e!r}", status=resp.status) from e
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
                logger.error(f"GET {url} stalled while reading the body: {e!r}")
                raise SourceUnreachableError(url, f"body read failed: {e!r}") from e
