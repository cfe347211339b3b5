"""
Semantic version helpers for frida-mgr.

Release tags and registry keys are expected to be strict semantic versions
(``MAJOR.MINOR.PATCH[-prerelease][+build]``, optionally prefixed by ``v``).
They parse into :class:`SemVer`, which orders by semver precedence: a
release outranks its pre-releases, numeric identifiers compare as numbers
and sort below alphanumeric ones, and build metadata is ignored.

Constraint bounds come from PEP 440 ``requires_dist`` lines instead, so
:func:`parse_bound_version` maps a :class:`packaging.version.Version` onto
the same ordering.
"""

from __future__ import annotations

import re
from functools import total_ordering
from typing import Any, Iterable, List, Optional, Tuple

from packaging.version import InvalidVersion, Version

from fridamgr.exceptions import VersionFormatError
from fridamgr.constants import UNKNOWN_PYTHON_TAG

_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


@total_ordering
class SemVer:
    """A parsed semantic version with semver precedence.

    Attributes:
        major: Major component.
        minor: Minor component.
        patch: Patch component.
        prerelease: Dot-separated pre-release identifiers, empty for a release.
        build: Build metadata, kept for display only.
    """

    __slots__ = ("major", "minor", "patch", "prerelease", "build")

    def __init__(
        self,
        major: int,
        minor: int,
        patch: int,
        prerelease: Tuple[str, ...] = (),
        build: str = "",
    ) -> None:
        self.major = major
        self.minor = minor
        self.patch = patch
        self.prerelease = tuple(prerelease)
        self.build = build

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def _key(self) -> Tuple[Any, ...]:
        if not self.prerelease:
            tail: Tuple[Any, ...] = (1,)
        else:
            tail = (
                0,
                tuple(
                    (0, int(part), "") if part.isdigit() else (1, 0, part)
                    for part in self.prerelease
                ),
            )
        return (self.major, self.minor, self.patch, tail)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + self.build
        return text

    def __repr__(self) -> str:
        return f"SemVer('{self}')"


def parse_semver(value: str) -> SemVer:
    """Parse a strict semantic version, stripping a leading ``v``.

    Args:
        value: Version text such as ``"16.6.6"``, ``"v17.0.0"`` or
            ``"17.0.0-rc.1"``.

    Raises:
        VersionFormatError: ``value`` is not a three-component semantic
            version.

    Examples:
        >>> str(parse_semver("v16.6.6"))
        '16.6.6'
        >>> parse_semver("2.0.0-1").is_prerelease
        True
    """
    text = (value or "").strip()
    if text[:1] in ("v", "V"):
        text = text[1:]

    match = _SEMVER_RE.match(text)
    if match is None:
        raise VersionFormatError(f"Not a semantic version: {value!r}", value=value)

    major, minor, patch, prerelease, build = match.groups()
    return SemVer(
        int(major),
        int(minor),
        int(patch),
        tuple(prerelease.split(".")) if prerelease else (),
        build or "",
    )


def try_parse_semver(value: Optional[str]) -> Optional[SemVer]:
    """Return the parsed version, or ``None`` when ``value`` is not semver."""
    if value is None:
        return None
    try:
        return parse_semver(value)
    except VersionFormatError:
        return None


def parse_bound_version(value: str) -> Optional[SemVer]:
    """Parse a version used as a constraint bound.

    Semantic versions are taken as they are. Anything else is read as
    PEP 440: the release is padded or cut to three components
    (``"16.0"`` is ``16.0.0``), and ``rc1`` / ``.dev0`` become the
    pre-release identifiers ``rc.1`` / ``dev.0``.
    """
    text = value.strip()
    semver = try_parse_semver(text)
    if semver is not None:
        return semver

    if text[:1] in ("v", "V"):
        text = text[1:]
    try:
        pep440 = Version(text)
    except InvalidVersion:
        return None

    major, minor, patch = (list(pep440.release) + [0, 0])[:3]
    prerelease: List[str] = []
    if pep440.pre is not None:
        prerelease.extend((pep440.pre[0], str(pep440.pre[1])))
    if pep440.dev is not None:
        prerelease.extend(("dev", str(pep440.dev)))
    return SemVer(major, minor, patch, tuple(prerelease))


def python_major_minor(python_version: str) -> Optional[str]:
    """Reduce an interpreter version to ``"MAJOR.MINOR"``.

    Examples:
        >>> python_major_minor("3.11.4")
        '3.11'
        >>> python_major_minor("3")
        >>> python_major_minor("three.eleven")
    """
    parts = [p for p in (python_version or "").strip().split(".") if p]
    if len(parts) < 2:
        return None
    major, minor = parts[0], parts[1]
    if major.isdigit() and minor.isdigit():
        return f"{major}.{minor}"
    return None


def python_tag(python_version: str) -> str:
    """Return :func:`python_major_minor` or the ``"unknown"`` sentinel."""
    return python_major_minor(python_version) or UNKNOWN_PYTHON_TAG


def sort_versions_desc(keys: Iterable[str]) -> List[str]:
    """Sort version strings strictly descending.

    Keys that parse as semantic versions come first, ordered by version.
    The remaining keys follow in descending lexical order.

    Examples:
        >>> sort_versions_desc(["16.4.0", "16.6.6", "16.5.2"])
        ['16.6.6', '16.5.2', '16.4.0']
        >>> sort_versions_desc(["1.0.0", "dev", "nightly"])
        ['1.0.0', 'nightly', 'dev']
    """
    parsed: List[Tuple[SemVer, str]] = []
    unparsed: List[str] = []

    for key in keys:
        version = try_parse_semver(key)
        if version is None:
            unparsed.append(key)
        else:
            parsed.append((version, key))

    parsed.sort(key=lambda item: (item[0], item[1]), reverse=True)
    unparsed.sort(reverse=True)
    return [key for _, key in parsed] + unparsed
