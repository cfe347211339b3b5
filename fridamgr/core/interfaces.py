"""
Interfaces for the network capabilities consumed by the core.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol


class ReleaseTransport(Protocol):
    """Fetch documents from the release feeds and the package registry.

    :class:`fridamgr.utils.http.HTTPClient` is the production implementation;
    tests substitute an in-memory fake.
    """

    async def fetch_text(self, url: str) -> str:
        ...

    async def fetch_json(self, url: str) -> Dict[str, Any]:
        ...

    async def check_exists(self, url: str) -> bool:
        ...
