"""
Release data models for frida-mgr.

This module defines the small value types exchanged between the release
fetchers, the registry client and the compatibility resolver: a dated
:class:`Release`, the :class:`VersionBounds` extracted from a package's
``requires_dist`` and the :class:`SourceDegradation` record emitted when
one of two release sources fails.
"""

from __future__ import annotations

from datetime import datetime
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from fridamgr.utils.time_utils import ensure_utc
from fridamgr.utils.version_utils import SemVer, try_parse_semver


@dataclass(frozen=True)
class Release:
    """One published release of a package.

    Attributes:
        version: Semantic version text without the leading ``v``
            (e.g. ``"16.6.6"`` or ``"17.0.0-rc.1"``).
        published_at: Timezone-aware UTC publish time.
        parsed: The parsed version, used for ordering and bound checks.
    """

    version: str
    published_at: datetime
    parsed: SemVer = field(compare=False, repr=False)

    @classmethod
    def from_tag(
        cls,
        tag: Optional[str],
        published_at: Optional[datetime],
    ) -> Optional["Release"]:
        """Build a release from a raw tag, or ``None`` if either part is unusable.

        A leading ``v`` is stripped; tags that are not semantic versions
        (``"nightly"``, ``"16.6"``) yield ``None``.
        """
        if tag is None or published_at is None:
            return None

        text = tag.strip()
        if text[:1] in ("v", "V"):
            text = text[1:]

        parsed = try_parse_semver(text)
        if parsed is None:
            return None

        return cls(version=text, published_at=ensure_utc(published_at), parsed=parsed)

    @property
    def is_prerelease(self) -> bool:
        """Return True if the semantic version has a pre-release component."""
        return self.parsed.is_prerelease

    @property
    def released_date(self) -> str:
        """Publish date as ``YYYY-MM-DD`` (UTC)."""
        return self.published_at.date().isoformat()


def dedup_releases(releases: Iterable[Release]) -> List[Release]:
    """Collapse repeated versions and order the result by publish time.

    Releases are sorted by ``(version, published_at)``; for each run of the
    same version only the one with the latest timestamp survives. The
    survivors are returned ascending by ``published_at``.

    Args:
        releases: Releases from one or more sources, in any order.

    Returns:
        Deduplicated releases, oldest first.
    """
    ordered = sorted(releases, key=lambda r: (r.parsed, r.published_at))

    deduped: List[Release] = []
    for release in ordered:
        if deduped and deduped[-1].parsed == release.parsed:
            if release.published_at > deduped[-1].published_at:
                deduped[-1] = release
            continue
        deduped.append(release)

    deduped.sort(key=lambda r: r.published_at)
    return deduped


@dataclass
class VersionBounds:
    """Anchor version range declared by a dependent package.

    Attributes:
        min_inclusive: Lowest admitted anchor version, if declared.
        max_exclusive: First anchor version no longer admitted, if declared.
    """

    min_inclusive: Optional[SemVer] = None
    max_exclusive: Optional[SemVer] = None

    def admits(self, version: SemVer) -> bool:
        """Return True if ``min_inclusive <= version < max_exclusive``."""
        if self.min_inclusive is not None and version < self.min_inclusive:
            return False
        if self.max_exclusive is not None and version >= self.max_exclusive:
            return False
        return True

    @property
    def is_unbounded(self) -> bool:
        """True when no usable bound was found."""
        return self.min_inclusive is None and self.max_exclusive is None


@dataclass(frozen=True)
class SourceDegradation:
    """Record of one release source failing while the other succeeded.

    Attributes:
        source: ``"feed"`` or ``"listing"``.
        owner: Repository owner.
        repo: Repository name.
        error: Text of the error raised by the failed source.
    """

    source: str
    owner: str
    repo: str
    error: str
