"""PyPI registry metadata client for frida-mgr.

Provides release timelines (``/pypi/{package}/json``) and per-version
metadata (``/pypi/{package}/{version}/json``) for the compatibility
resolver and the installation layer. Per-version documents and existence
probes are cached on the instance, so one client should live for exactly
one resolution run; call :meth:`RegistryMetadataClient.clear_cache` to
reuse it.

Typical usage::

    from fridamgr.utils.http import HTTPClient
    from fridamgr.core.registry import RegistryMetadataClient

    async with HTTPClient() as http:
        registry = RegistryMetadataClient(http)
        tools = await registry.list_releases("frida-tools")
        deps = await registry.requires_dist("frida-tools", tools[-1].version)
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from bisect import bisect_left
from typing import Any, Dict, List, Optional, Tuple

from packaging.version import InvalidVersion
from packaging.specifiers import InvalidSpecifier, SpecifierSet

from fridamgr.exceptions import NetworkError, RegistryError
from fridamgr.utils.logger import get_logger
from fridamgr.utils.time_utils import parse_timestamp
from fridamgr.core.interfaces import ReleaseTransport
from fridamgr.models.release import Release
from fridamgr.constants import (
    PYPI_JSON_API,
    PYPI_VERSION_JSON_API,
    PYTHON_COMPAT_SCAN_LIMIT,
)

logger = get_logger("registry")

# Public API
__all__ = ["RegistryMetadataClient", "is_python_compatible"]


def _normalize(name: str) -> str:
    """PEP 503-ish normalisation: lower-case, underscores → hyphens."""
    return name.lower().replace("_", "-")


def is_python_compatible(requires_python: Optional[str], python_version: str) -> bool:
    """Check an interpreter version against a ``requires_python`` specifier.

    Returns ``True`` when the specifier is absent or malformed, or when the
    interpreter version itself cannot be parsed, matching pip's permissive
    behaviour.

    Example::

        >>> is_python_compatible(">=3.8, <3.11", "3.11.12")
        False
        >>> is_python_compatible("==3.11.*", "3.11.12")
        True
    """
    if not requires_python or not requires_python.strip():
        return True

    try:
        return SpecifierSet(requires_python).contains(python_version.strip())
    except (InvalidSpecifier, InvalidVersion):
        return True


def _earliest_upload(files: List[Dict[str, Any]]) -> Tuple[bool, Optional[datetime]]:
    """Return ``(has_non_yanked_file, earliest_non_yanked_upload_time)``."""
    any_live = False
    earliest: Optional[datetime] = None

    for file_info in files:
        if not isinstance(file_info, dict) or file_info.get("yanked", False):
            continue
        any_live = True
        uploaded = parse_timestamp(
            file_info.get("upload_time_iso_8601") or file_info.get("upload_time")
        )
        if uploaded is not None and (earliest is None or uploaded < earliest):
            earliest = uploaded

    return any_live, earliest


class RegistryMetadataClient:
    """Async PyPI metadata client with per-run caches.

    Each ``(package, version)`` document triggers at most one HTTP request;
    ``requires_python`` and ``requires_dist`` share it. A semaphore limits
    concurrent fetches and a second cache check inside it prevents
    duplicates when several coroutines ask for the same version.

    Args:
        transport: Object implementing
            :class:`~fridamgr.core.interfaces.ReleaseTransport`.
        concurrent_limit: Maximum number of metadata fetches in flight.
    """

    def __init__(
        self,
        transport: ReleaseTransport,
        concurrent_limit: int = 10,
    ) -> None:
        self.transport = transport
        self._semaphore = asyncio.Semaphore(concurrent_limit)

        # "name==version" → ``info`` object, or None when PyPI has no such version
        self._version_info: Dict[str, Optional[Dict[str, Any]]] = {}

        # "name==version" → True / False, or None when the probe itself failed
        self._exists: Dict[str, Optional[bool]] = {}

    # ------------------------------------------------------------------
    # Release timeline
    # ------------------------------------------------------------------

    async def list_releases(
        self,
        package: str,
        include_prerelease: bool = False,
    ) -> List[Release]:
        """Return the installable releases of ``package``, oldest first.

        A version is dropped when all its files are yanked, when it has no
        files, or when its key is not a semantic version. The publish time
        is the earliest upload time among non-yanked files.

        Raises:
            RegistryError: The index could not be fetched or is malformed.
        """
        url = PYPI_JSON_API.format(package=_normalize(package))

        try:
            data = await self.transport.fetch_json(url)
        except NetworkError as exc:
            raise RegistryError(
                f"Failed to fetch release index for '{package}'",
                package_name=package,
                url=url,
                status_code=exc.status_code,
            ) from exc

        raw_releases = data.get("releases")
        if not isinstance(raw_releases, dict):
            raise RegistryError(
                f"Release index for '{package}' has no 'releases' object",
                package_name=package,
                url=url,
            )

        releases: List[Release] = []
        for version_str, files in raw_releases.items():
            any_live, published_at = _earliest_upload(files if isinstance(files, list) else [])
            if not any_live:
                logger.debug("Skipping %s %s: no installable files", package, version_str)
                continue

            release = Release.from_tag(version_str, published_at)
            if release is None:
                logger.debug("Skipping %s %s: unusable version or timestamp", package, version_str)
                continue
            if not include_prerelease and release.is_prerelease:
                continue
            releases.append(release)

        releases.sort(key=lambda r: r.published_at)
        logger.debug("PyPI lists %d release(s) of %s", len(releases), package)
        return releases

    # ------------------------------------------------------------------
    # Per-version metadata
    # ------------------------------------------------------------------

    async def _version_metadata(
        self,
        package: str,
        version: str,
    ) -> Optional[Dict[str, Any]]:
        """Fetch (or return cached) ``info`` for one version.

        Returns ``None`` when PyPI answers 404 for the version.
        """
        normalized = _normalize(package)
        cache_key = f"{normalized}=={version}"

        if cache_key in self._version_info:
            return self._version_info[cache_key]

        async with self._semaphore:
            if cache_key in self._version_info:
                return self._version_info[cache_key]

            url = PYPI_VERSION_JSON_API.format(package=normalized, version=version)
            try:
                data = await self.transport.fetch_json(url)
            except NetworkError as exc:
                if not exc.is_not_found:
                    raise RegistryError(
                        f"Failed to fetch metadata for '{package}' {version}",
                        package_name=package,
                        url=url,
                        status_code=exc.status_code,
                    ) from exc
                logger.debug("No PyPI metadata for %s %s", package, version)
                info: Optional[Dict[str, Any]] = None
            else:
                raw_info = data.get("info")
                info = raw_info if isinstance(raw_info, dict) else {}

            self._version_info[cache_key] = info
            return info

    async def requires_python(self, package: str, version: str) -> Optional[str]:
        """Return the ``requires_python`` declared by ``package==version``."""
        info = await self._version_metadata(package, version)
        if not info:
            return None
        value = info.get("requires_python")
        return value if isinstance(value, str) and value.strip() else None

    async def requires_dist(self, package: str, version: str) -> Optional[List[str]]:
        """Return the ``requires_dist`` lines declared by ``package==version``.

        ``None`` means the registry has no metadata (or no declaration) for
        this version, which callers treat as "no constraint".
        """
        info = await self._version_metadata(package, version)
        if not info:
            return None
        value = info.get("requires_dist")
        if not isinstance(value, list):
            return None
        return [str(line) for line in value]

    # ------------------------------------------------------------------
    # Existence probes
    # ------------------------------------------------------------------

    async def version_exists(self, package: str, version: str) -> bool:
        """Return True if PyPI publishes ``package==version``.

        Raises:
            RegistryError: The probe failed for a reason other than 404.
        """
        normalized = _normalize(package)
        cache_key = f"{normalized}=={version}"

        cached = self._exists.get(cache_key)
        if cached is not None:
            return cached

        url = PYPI_VERSION_JSON_API.format(package=normalized, version=version)
        try:
            exists = await self.transport.check_exists(url)
        except NetworkError as exc:
            raise RegistryError(
                f"Could not check whether '{package}' {version} exists",
                package_name=package,
                url=url,
                status_code=exc.status_code,
            ) from exc

        self._exists[cache_key] = exists
        return exists

    async def probe_version_exists(self, package: str, version: str) -> Optional[bool]:
        """Non-raising form of :meth:`version_exists`.

        A failed probe yields ``None`` ("unknown") and is remembered as such
        for the rest of the run.
        """
        cache_key = f"{_normalize(package)}=={version}"
        if cache_key in self._exists:
            return self._exists[cache_key]

        try:
            return await self.version_exists(package, version)
        except RegistryError as exc:
            logger.debug("Existence probe failed for %s %s: %s", package, version, exc)
            self._exists[cache_key] = None
            return None

    # ------------------------------------------------------------------
    # Interpreter-aware selection
    # ------------------------------------------------------------------

    async def is_version_python_compatible(
        self,
        package: str,
        version: str,
        python_version: str,
    ) -> bool:
        """Return True if ``package==version`` admits ``python_version``.

        Metadata that cannot be fetched counts as compatible.
        """
        try:
            requires = await self.requires_python(package, version)
        except RegistryError as exc:
            logger.debug("requires_python unavailable for %s %s: %s", package, version, exc)
            return True
        return is_python_compatible(requires, python_version)

    async def select_first_compatible_on_or_after(
        self,
        package: str,
        after: datetime,
        python_version: str,
        *,
        limit: int = PYTHON_COMPAT_SCAN_LIMIT,
    ) -> Optional[str]:
        """Pick the first release at or after ``after`` that supports the interpreter.

        Up to ``limit`` releases are checked forward from ``after``, then up
        to ``limit`` backward, nearest first.

        Returns:
            The selected version, or ``None`` if no candidate qualifies.

        Raises:
            RegistryError: The release index could not be fetched.
        """
        releases = await self.list_releases(package, include_prerelease=False)
        if not releases:
            return None

        index = bisect_left([r.published_at for r in releases], after)

        for candidate in releases[index:index + limit]:
            if await self.is_version_python_compatible(package, candidate.version, python_version):
                return candidate.version

        for candidate in releases[max(0, index - limit):index][::-1]:
            if await self.is_version_python_compatible(package, candidate.version, python_version):
                return candidate.version

        return None

    def clear_cache(self) -> None:
        """Drop every cached metadata document and existence probe."""
        self._version_info.clear()
        self._exists.clear()
