"""
Page Fetching Module
====================

HTTP fetching for static product pages and JSON APIs, per-source
throttling, and a Playwright renderer for script-built pages.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from lure_catalog.core.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_ACCEPT_LANGUAGE = "ja,en-US;q=0.7,en;q=0.3"

# Settle time after a rendered page reports networkidle
PAGE_LOAD_DELAY_MS = 2000

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class TokenBucket:
    """
    Token bucket rate limiter for per-source rate limiting.

    Allows bursting up to burst_limit requests, then enforces
    the steady-state rate of requests_per_second.
    """

    def __init__(self, requests_per_second: float, burst_limit: int) -> None:
        self.requests_per_second = requests_per_second
        self.burst_limit = burst_limit
        self.tokens = float(burst_limit)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Acquire a token, waiting if necessary."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_update
            self.last_update = now

            self.tokens = min(self.burst_limit, self.tokens + elapsed * self.requests_per_second)

            if self.tokens < 1.0:
                wait_time = (1.0 - self.tokens) / self.requests_per_second
                await asyncio.sleep(wait_time)
                self.tokens = 0.0
            else:
                self.tokens -= 1.0


class PolitenessGate:
    """
    Minimum spacing between consecutive requests to one source.

    ``wait()`` returns immediately the first time, then sleeps until
    ``min_delay`` seconds have passed since the previous call returned.
    """

    def __init__(self, min_delay: float) -> None:
        self.min_delay = max(0.0, min_delay)
        self._last: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            if self._last is not None:
                remaining = self.min_delay - (time.monotonic() - self._last)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last = time.monotonic()


class PageFetcher:
    """
    httpx-based fetcher for static pages and JSON endpoints.

    Transport errors and retryable statuses are retried with exponential
    back-off; any other non-2xx response raises FetchError immediately.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        accept_language: str = DEFAULT_ACCEPT_LANGUAGE,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
        rate_limiter: TokenBucket | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.accept_language = accept_language
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff = backoff
        self.transport = transport
        self.rate_limiter = rate_limiter

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
            headers={
                "User-Agent": self.user_agent,
                "Accept-Language": self.accept_language,
            },
        )

    async def _get(self, url: str) -> httpx.Response:
        last_error = "Unknown error"
        status_code: int | None = None

        for attempt in range(self.max_retries):
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()
            try:
                async with self._client() as client:
                    response = await client.get(url)
                    await response.aread()
            except httpx.TimeoutException:
                last_error = f"Timeout after {self.timeout}s"
                logger.warning(f"Timeout fetching {url} (attempt {attempt + 1}/{self.max_retries})")
            except httpx.HTTPError as e:
                last_error = str(e) or e.__class__.__name__
                logger.warning(f"HTTP error fetching {url}: {e} (attempt {attempt + 1}/{self.max_retries})")
            else:
                if response.is_success:
                    return response
                status_code = response.status_code
                last_error = f"HTTP {status_code} for {url}"
                if status_code not in RETRYABLE_STATUS:
                    raise FetchError(url, last_error, status_code)
                logger.warning(f"{last_error} (attempt {attempt + 1}/{self.max_retries})")

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.backoff * 2**attempt)

        raise FetchError(url, last_error, status_code)

    async def fetch_text(self, url: str, encoding: str | None = None) -> str:
        """
        Fetch a page as text.

        Args:
            url: Page URL
            encoding: Explicit encoding (e.g. ``shift_jis``); otherwise the
                response's declared or detected encoding is used
        """
        response = await self._get(url)
        if encoding:
            return response.content.decode(encoding, errors="replace")
        return response.text

    async def fetch_json(self, url: str) -> Any:
        response = await self._get(url)
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(url, f"Invalid JSON from {url}: {e}", response.status_code) from e

    async def fetch_bytes(self, url: str) -> bytes:
        response = await self._get(url)
        return response.content


class BrowserFetcher:
    """
    Playwright (Chromium) renderer for pages built by client-side script.

    A browser is launched per page and closed on every exit path.
    """

    def __init__(
        self,
        headed: bool = False,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_ms: int = 60_000,
        settle_ms: int = PAGE_LOAD_DELAY_MS,
    ) -> None:
        self.headed = headed
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self.settle_ms = settle_ms

    async def render(self, url: str) -> str:
        """Load ``url`` in a fresh browser and return the rendered HTML."""
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(
                headless=not self.headed,
                args=["--disable-blink-features=AutomationControlled"],
            )
            try:
                page = await browser.new_page(user_agent=self.user_agent, locale="ja-JP")
                response = await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
                if response is not None and not response.ok:
                    raise FetchError(url, f"HTTP {response.status} for {url}", response.status)
                if self.settle_ms:
                    await page.wait_for_timeout(self.settle_ms)
                return await page.content()
            except PlaywrightError as e:
                raise FetchError(url, f"Browser failed to load {url}: {e}") from e
            finally:
                await browser.close()
                logger.debug(f"Closed browser for {url}")
