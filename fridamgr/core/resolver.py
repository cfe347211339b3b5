"""Compatibility resolution for frida-mgr.

Builds a :class:`~fridamgr.models.VersionMap` pairing every ``frida``
release with an installable ``frida-tools`` and ``objection`` release.

Resolution per anchor release:

1. **frida-tools**: starting at the anchor's publish time, walk forward
   through PyPI tools releases inside a look-ahead window (21 days) and
   accept the first one whose ``requires_dist`` admits the anchor version;
   otherwise walk backward without time limit; otherwise take the release
   nearest in time. When the PyPI index is unavailable, the GitHub
   ``frida/frida-tools`` timeline is used with a date-only rule.
2. **objection**: starting at the anchor's publish time in the GitHub
   timeline, scan up to 30 releases forward and then 30 backward,
   accepting the first one that PyPI does not explicitly deny; otherwise
   take the release nearest in time.

Typical usage::

    async with HTTPClient() as http:
        resolver = CompatibilityResolver(
            ReleaseFeedFetcher(http),
            RegistryMetadataClient(http),
        )
        version_map = await resolver.build_version_map()
"""

from __future__ import annotations

import re
import asyncio
from bisect import bisect_left
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, Union

from packaging.utils import canonicalize_name
from packaging.requirements import InvalidRequirement, Requirement

from fridamgr.exceptions import EmptyResultError, RegistryError
from fridamgr.utils.logger import get_logger
from fridamgr.utils.time_utils import utc_today
from fridamgr.utils.version_utils import SemVer, parse_bound_version, parse_semver
from fridamgr.core.registry import RegistryMetadataClient
from fridamgr.core.release_feed import ReleaseFeedFetcher
from fridamgr.models.release import Release, VersionBounds
from fridamgr.models.version_map import (
    MapMetadata,
    VersionInfo,
    VersionMap,
    build_default_aliases,
)
from fridamgr.constants import (
    FRIDA_PACKAGE,
    FRIDA_REPO,
    GITHUB_RELEASES_ATOM,
    OBJECTION_PACKAGE,
    OBJECTION_REPO,
    OBJECTION_SCAN_LIMIT,
    PYPI_JSON_API,
    SOURCE_FETCH_DELAY,
    TOOLS_LOOKAHEAD_DAYS,
    TOOLS_PACKAGE,
    TOOLS_REPO,
)

logger = get_logger("resolver")

__all__ = [
    "CompatibilityResolver",
    "find_nearest_by_date",
    "parse_frida_bounds_from_requires_dist",
    "select_release_near_future_or_previous",
    "tools_compatible_with_frida",
]

_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)(.*)$", re.DOTALL)
_CLAUSE_RE = re.compile(r"^(>=|<=|==|<|>)\s*(.+)$")


# ---------------------------------------------------------------------------
# Declared constraints
# ---------------------------------------------------------------------------


def _anchor_clauses(line: str, anchor: str) -> Optional[List[Tuple[str, str]]]:
    """Return ``(operator, version)`` clauses if ``line`` names ``anchor``."""
    try:
        requirement = Requirement(line)
    except InvalidRequirement:
        return _anchor_clauses_textual(line, anchor)

    if canonicalize_name(requirement.name) != canonicalize_name(anchor):
        return None
    return [(spec.operator, spec.version) for spec in requirement.specifier]


def _anchor_clauses_textual(line: str, anchor: str) -> Optional[List[Tuple[str, str]]]:
    """Best-effort split of a line ``packaging`` refuses to parse."""
    match = _NAME_RE.match(line.split(";", 1)[0])
    if match is None:
        return None

    name, rest = match.group(1), match.group(2)
    if "[" in rest:
        rest = rest.split("]", 1)[-1]
    if canonicalize_name(name) != canonicalize_name(anchor):
        return None

    clauses: List[Tuple[str, str]] = []
    for part in rest.strip().strip("()").split(","):
        clause = _CLAUSE_RE.match(part.strip())
        if clause:
            clauses.append((clause.group(1), clause.group(2).strip()))
    return clauses


def parse_frida_bounds_from_requires_dist(
    requires_dist: Sequence[str],
    anchor: str = FRIDA_PACKAGE,
) -> VersionBounds:
    """Extract the anchor range declared in ``requires_dist``.

    Only lines naming ``anchor`` are considered; environment markers are
    ignored. ``>=`` raises the lower bound to the highest value seen and
    ``<`` lowers the upper bound to the lowest value seen. Other operators
    are accepted and ignored, as are versions that do not parse.

    Example::

        >>> bounds = parse_frida_bounds_from_requires_dist(
        ...     ["frida>=17.2.2", "other>=1.0.0", "frida<18.0.0"]
        ... )
        >>> str(bounds.min_inclusive), str(bounds.max_exclusive)
        ('17.2.2', '18.0.0')
    """
    bounds = VersionBounds()

    for line in requires_dist:
        clauses = _anchor_clauses(line, anchor)
        if not clauses:
            continue

        for operator, raw_version in clauses:
            if operator not in (">=", "<"):
                continue
            version = parse_bound_version(raw_version)
            if version is None:
                continue

            if operator == ">=":
                if bounds.min_inclusive is None or version > bounds.min_inclusive:
                    bounds.min_inclusive = version
            elif bounds.max_exclusive is None or version < bounds.max_exclusive:
                bounds.max_exclusive = version

    return bounds


def tools_compatible_with_frida(
    requires_dist: Optional[Sequence[str]],
    frida_version: Union[str, SemVer],
    anchor: str = FRIDA_PACKAGE,
) -> bool:
    """Return True if a dependent's ``requires_dist`` admits ``frida_version``.

    Absent metadata (``None``) counts as compatible.
    """
    if requires_dist is None:
        return True
    if isinstance(frida_version, str):
        frida_version = parse_semver(frida_version)
    return parse_frida_bounds_from_requires_dist(requires_dist, anchor).admits(frida_version)


# ---------------------------------------------------------------------------
# Date-based selection helpers
# ---------------------------------------------------------------------------


def _index_on_or_after(releases: Sequence[Release], target: datetime) -> int:
    return bisect_left([r.published_at for r in releases], target)


def find_nearest_by_date(
    releases: Sequence[Release],
    target: datetime,
) -> Optional[Release]:
    """Return the release published closest to ``target``.

    Ties prefer the later release. ``releases`` must be sorted ascending
    by ``published_at``.
    """
    if not releases:
        return None

    index = _index_on_or_after(releases, target)
    before = releases[index - 1] if index > 0 else None
    after = releases[index] if index < len(releases) else None

    if before is None:
        return after
    if after is None:
        return before

    if (target - before.published_at) < (after.published_at - target):
        return before
    return after


def select_release_near_future_or_previous(
    releases: Sequence[Release],
    target: datetime,
    lookahead_days: int = TOOLS_LOOKAHEAD_DAYS,
) -> Optional[Release]:
    """Date-only selection: next release within the window, else the previous one.

    Returns the first release on or after ``target`` if it falls within
    ``lookahead_days``; otherwise the last release before ``target``;
    otherwise the very first release.
    """
    if not releases:
        return None

    index = _index_on_or_after(releases, target)
    deadline = target + timedelta(days=lookahead_days)

    if index < len(releases) and releases[index].published_at <= deadline:
        return releases[index]
    if index > 0:
        return releases[index - 1]
    return releases[0]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class CompatibilityResolver:
    """Build a version map from GitHub release timelines and PyPI metadata.

    Args:
        fetcher: GitHub release fetcher.
        registry: PyPI metadata client; its caches are shared by every
            anchor release of one run.
        lookahead_days: Forward window for tools candidates.
        objection_scan_limit: Candidates checked in each direction for
            objection.
        source_delay: Seconds awaited between fetching two timelines.
    """

    def __init__(
        self,
        fetcher: ReleaseFeedFetcher,
        registry: RegistryMetadataClient,
        *,
        lookahead_days: int = TOOLS_LOOKAHEAD_DAYS,
        objection_scan_limit: int = OBJECTION_SCAN_LIMIT,
        source_delay: float = SOURCE_FETCH_DELAY,
    ) -> None:
        self.fetcher = fetcher
        self.registry = registry
        self.lookahead_days = lookahead_days
        self.objection_scan_limit = objection_scan_limit
        self.source_delay = source_delay

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def build_version_map(self, include_prerelease: bool = False) -> VersionMap:
        """Resolve every anchor release and return a fresh map.

        Raises:
            EmptyResultError: No anchor release could be paired.
            NetworkError: A timeline or required metadata could not be fetched.
        """
        frida = await self.fetcher.fetch_releases(*FRIDA_REPO, include_prerelease)
        logger.info("Found %d frida release(s)", len(frida))

        await asyncio.sleep(self.source_delay)
        tools, tools_from_registry = await self._tools_timeline(include_prerelease)
        logger.info(
            "Found %d frida-tools release(s) on %s",
            len(tools),
            "PyPI" if tools_from_registry else "GitHub",
        )

        await asyncio.sleep(self.source_delay)
        objection = await self.fetcher.fetch_releases(*OBJECTION_REPO, include_prerelease)
        logger.info("Found %d objection release(s)", len(objection))

        mappings: Dict[str, VersionInfo] = {}
        for anchor in frida:
            if tools_from_registry:
                tools_release = await self.select_tools_release(tools, anchor)
            else:
                tools_release = select_release_near_future_or_previous(
                    tools, anchor.published_at, self.lookahead_days
                )

            if tools_release is None:
                logger.debug("No frida-tools candidate for frida %s", anchor.version)
                continue

            objection_version = await self.select_objection_version(
                objection, anchor.published_at
            )
            mappings[anchor.version] = VersionInfo(
                tools_version=tools_release.version,
                released=anchor.released_date,
                objection_version=objection_version,
            )

        if not mappings:
            raise EmptyResultError(
                "Version map refresh produced 0 entries; failed to parse releases data",
                anchor_releases=len(frida),
            )

        logger.info("Resolved %d frida release(s)", len(mappings))
        return VersionMap(
            mappings=mappings,
            aliases=build_default_aliases(mappings),
            metadata=MapMetadata(
                last_updated=utc_today(),
                source=self._describe_sources(tools_from_registry),
            ),
        )

    async def _tools_timeline(self, include_prerelease: bool) -> Tuple[List[Release], bool]:
        """Return the tools releases and whether they came from PyPI."""
        try:
            return await self.registry.list_releases(TOOLS_PACKAGE, include_prerelease), True
        except RegistryError as exc:
            logger.warning(
                "PyPI index for %s unavailable, using GitHub releases instead: %s",
                TOOLS_PACKAGE,
                exc,
            )

        await asyncio.sleep(self.source_delay)
        releases = await self.fetcher.fetch_releases(*TOOLS_REPO, include_prerelease)
        return releases, False

    @staticmethod
    def _describe_sources(tools_from_registry: bool) -> str:
        tools_source = (
            PYPI_JSON_API.format(package=TOOLS_PACKAGE)
            if tools_from_registry
            else GITHUB_RELEASES_ATOM.format(owner=TOOLS_REPO[0], repo=TOOLS_REPO[1])
        )
        return " + ".join(
            [
                GITHUB_RELEASES_ATOM.format(owner=FRIDA_REPO[0], repo=FRIDA_REPO[1]),
                tools_source,
                GITHUB_RELEASES_ATOM.format(owner=OBJECTION_REPO[0], repo=OBJECTION_REPO[1])
                + " (filtered by PyPI availability)",
            ]
        )

    # ------------------------------------------------------------------
    # Per-anchor selection
    # ------------------------------------------------------------------

    async def _tools_admit(self, candidate: Release, anchor: Release) -> bool:
        requires = await self.registry.requires_dist(TOOLS_PACKAGE, candidate.version)
        return tools_compatible_with_frida(requires, anchor.parsed)

    async def select_tools_release(
        self,
        tools: Sequence[Release],
        anchor: Release,
    ) -> Optional[Release]:
        """Pick the frida-tools release paired with ``anchor``.

        ``tools`` must be sorted ascending by publish time.
        """
        if not tools:
            return None

        index = _index_on_or_after(tools, anchor.published_at)
        deadline = anchor.published_at + timedelta(days=self.lookahead_days)

        for candidate in tools[index:]:
            if candidate.published_at > deadline:
                break
            if await self._tools_admit(candidate, anchor):
                return candidate

        for candidate in reversed(tools[:index]):
            if await self._tools_admit(candidate, anchor):
                return candidate

        fallback = find_nearest_by_date(tools, anchor.published_at)
        if fallback is not None:
            logger.warning(
                "No frida-tools release declares support for frida %s; "
                "falling back to %s (nearest by date)",
                anchor.version,
                fallback.version,
            )
        return fallback

    async def select_objection_version(
        self,
        objection: Sequence[Release],
        target: datetime,
    ) -> Optional[str]:
        """Pick the objection release paired with an anchor published at ``target``.

        A candidate is accepted unless PyPI explicitly reports it missing;
        a failed existence probe counts as present.
        """
        if not objection:
            return None

        index = _index_on_or_after(objection, target)
        limit = self.objection_scan_limit
        forward = objection[index:index + limit]
        backward = objection[max(0, index - limit):index][::-1]

        for candidate in list(forward) + list(backward):
            exists = await self.registry.probe_version_exists(
                OBJECTION_PACKAGE, candidate.version
            )
            if exists is False:
                continue
            return candidate.version

        fallback = find_nearest_by_date(objection, target) or objection[-1]
        logger.warning(
            "No objection release near %s is published on PyPI; falling back to %s",
            target.date().isoformat(),
            fallback.version,
        )
        return fallback.version
