from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional
from unittest.mock import AsyncMock, patch

import pytest

from fridamgr.exceptions import NetworkError
from fridamgr.utils.logger import reset_logging


class FakeTransport:
    """In-memory transport keyed by URL.

    ``texts`` and ``jsons`` hold successful answers; ``errors`` maps a URL to
    the exception raised for it. Unknown URLs answer 404. Every call is
    recorded in ``calls`` as ``(method, url)``.
    """

    def __init__(
        self,
        texts: Optional[Dict[str, str]] = None,
        jsons: Optional[Dict[str, Dict[str, Any]]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ) -> None:
        self.texts = dict(texts or {})
        self.jsons = dict(jsons or {})
        self.errors = dict(errors or {})
        self.calls: List[tuple] = []

    def _missing(self, url: str) -> NetworkError:
        return NetworkError(f"HTTP 404 error for {url}", url=url, status_code=404)

    async def fetch_text(self, url: str) -> str:
        self.calls.append(("text", url))
        if url in self.errors:
            raise self.errors[url]
        if url not in self.texts:
            raise self._missing(url)
        return self.texts[url]

    async def fetch_json(self, url: str) -> Dict[str, Any]:
        self.calls.append(("json", url))
        if url in self.errors:
            raise self.errors[url]
        if url not in self.jsons:
            raise self._missing(url)
        return self.jsons[url]

    async def check_exists(self, url: str) -> bool:
        self.calls.append(("exists", url))
        if url in self.errors:
            raise self.errors[url]
        return url in self.jsons or url in self.texts

    def count(self, method: str, url: str) -> int:
        return sum(1 for call in self.calls if call == (method, url))


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def no_sleep() -> Iterator[AsyncMock]:
    """Make every ``asyncio.sleep`` return immediately."""
    with patch("asyncio.sleep", new=AsyncMock(return_value=None)) as mocked:
        yield mocked


@pytest.fixture(autouse=True)
def reset_fridamgr_logging() -> Iterator[None]:
    """Undo any ``setup_logging`` call so log capture keeps working."""
    yield
    reset_logging()
