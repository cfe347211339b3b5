"""
Async HTTP transport for frida-mgr.

:class:`HTTPClient` is the one place that talks to GitHub and PyPI. It
provides ``fetch_text``, ``fetch_json`` and ``check_exists``, the calls the
release fetcher and the registry client need, on top of an
``httpx.AsyncClient`` with:

* retries for 429, 5xx, timeouts and other request failures, waiting 0.5 s,
  1 s, 2 s ... (capped) or the server's numeric ``Retry-After``;
* a cap on requests in flight and an optional minimum gap between them.

Any other 4xx fails at once; the error keeps the status so callers can tell
"not found" from "broken".
"""

from __future__ import annotations

import time
import httpx
import asyncio
from typing import Any, Dict, Optional

from fridamgr.utils.logger import get_logger
from fridamgr.__version__ import __version__
from fridamgr.exceptions import NetworkError
from fridamgr.constants import (
    ACCEPT_HEADER,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT,
    INITIAL_BACKOFF,
    MAX_BACKOFF,
    MAX_RETRY_AFTER,
    USER_AGENT_TEMPLATE,
)

logger = get_logger("http")


def _parse_retry_after(value: Any) -> Optional[float]:
    """Seconds from a numeric ``Retry-After`` header; dates are not supported."""
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _should_retry(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class HTTPClient:
    """Retrying, throttled ``httpx.AsyncClient`` wrapper.

    Use it as an async context manager so the connection pool is closed.

    Args:
        timeout: Per-request timeout in seconds.
        max_attempts: Attempts per request, first one included (at least 1).
        rate_limit_delay: Minimum seconds between two requests; 0 disables.
        verify_ssl: Verify TLS certificates.
        user_agent: ``User-Agent`` header; ``frida-mgr/<version>`` by default.
        max_concurrency: Requests allowed in flight at once.
        initial_backoff: First retry delay in seconds.
        max_backoff: Upper bound for the doubling retry delay.

    Example::

        async with HTTPClient(timeout=10) as http:
            index = await http.fetch_json("https://pypi.org/pypi/frida-tools/json")
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rate_limit_delay: float = 0.0,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
        max_concurrency: int = 10,
        initial_backoff: float = INITIAL_BACKOFF,
        max_backoff: float = MAX_BACKOFF,
    ) -> None:
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.rate_limit_delay = rate_limit_delay
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff

        self._client: Optional[httpx.AsyncClient] = None
        self._slots = asyncio.Semaphore(max_concurrency)
        self._throttle_lock = asyncio.Lock()
        self._next_request_at = 0.0

    async def __aenter__(self) -> "HTTPClient":
        self._open()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def _open(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                http2=True,
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent, "Accept": ACCEPT_HEADER},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def _throttle(self) -> None:
        """Wait until ``rate_limit_delay`` has passed since the previous request."""
        if self.rate_limit_delay <= 0:
            return
        async with self._throttle_lock:
            now = time.monotonic()
            wait = self._next_request_at - now
            self._next_request_at = max(now, self._next_request_at) + self.rate_limit_delay
            if wait > 0:
                await asyncio.sleep(wait)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._open()
        await self._throttle()
        async with self._slots:
            return await client.request(method, url, **kwargs)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying transient failures.

        Raises:
            NetworkError: A non-retryable 4xx (with its status), or the last
                failure once ``max_attempts`` is used up.
        """
        url = url.strip().strip("\"'")
        delay = self.initial_backoff
        failure: Optional[NetworkError] = None

        for attempt in range(1, self.max_attempts + 1):
            wait = delay
            try:
                response = await self._send(method, url, **kwargs)
            except httpx.RequestError as exc:
                kind = "Timeout" if isinstance(exc, httpx.TimeoutException) else "Network error"
                failure = NetworkError(f"{kind} for {url}: {exc}", url=url)
                failure.__cause__ = exc
            else:
                status = response.status_code
                if status < 400:
                    return response
                failure = NetworkError(
                    f"HTTP {status} error for {url}",
                    url=url,
                    status_code=status,
                    response_body=response.text,
                )
                if not _should_retry(status):
                    raise failure
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                if retry_after is not None:
                    wait = min(retry_after, MAX_RETRY_AFTER)

            logger.warning("%s (attempt %d/%d)", failure.message, attempt, self.max_attempts)
            if attempt < self.max_attempts:
                logger.debug("Retrying %s in %.2fs", url, wait)
                await asyncio.sleep(wait)
                delay = min(delay * 2, self.max_backoff)

        raise NetworkError(
            f"Request failed after {self.max_attempts} attempts: {url}",
            url=url,
            status_code=failure.status_code if failure else None,
        ) from failure

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def fetch_text(self, url: str) -> str:
        return (await self.get(url)).text

    async def fetch_json(self, url: str) -> Dict[str, Any]:
        """GET ``url`` and decode a JSON object.

        Raises:
            NetworkError: The body is not JSON, or not a JSON object.
        """
        response = await self.get(url)
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON response from {url}", url=url, response_body=response.text
            ) from exc
        if not isinstance(data, dict):
            raise NetworkError(
                f"Expected JSON object from {url}, got {type(data).__name__}",
                url=url,
                response_body=response.text,
            )
        return data

    async def check_exists(self, url: str) -> bool:
        """``True`` when ``url`` answers, ``False`` on 404; other failures raise."""
        try:
            await self.get(url)
        except NetworkError as exc:
            if exc.is_not_found:
                return False
            raise
        return True
