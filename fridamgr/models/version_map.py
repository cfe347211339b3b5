"""
Version map data model for frida-mgr.

A :class:`VersionMap` pairs every known ``frida`` release with the
``frida-tools`` (and, when known, ``objection``) release that installs
alongside it. Symbolic aliases (``latest``, ``stable``, ``lts``) point at
mapping keys; lookups resolve the alias first and degrade to "not found"
when the alias target is missing.

The map is persisted as a TOML document::

    [mappings."16.6.6"]
    tools = "13.3.0"
    released = "2024-12-10"

    [aliases]
    latest = "16.6.6"

    [metadata]
    last_updated = "2025-01-15"
    source = "https://github.com/frida/frida/releases"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from fridamgr.exceptions import ParseError
from fridamgr.utils.version_utils import SemVer, sort_versions_desc, try_parse_semver


@dataclass
class VersionInfo:
    """Companion versions paired with one anchor release.

    Attributes:
        tools_version: ``frida-tools`` version.
        released: Anchor release date as ``YYYY-MM-DD``.
        objection_version: ``objection`` version, if one was paired.
    """

    tools_version: str
    released: str
    objection_version: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        """Return the persisted table; ``objection`` is omitted when absent."""
        data = {"tools": self.tools_version}
        if self.objection_version is not None:
            data["objection"] = self.objection_version
        data["released"] = self.released
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, key: str = "") -> "VersionInfo":
        """Build from a persisted table.

        Raises:
            ParseError: ``tools`` or ``released`` is missing or not a string.
        """
        tools = data.get("tools")
        released = data.get("released")
        objection = data.get("objection")

        if not isinstance(tools, str) or not isinstance(released, str):
            raise ParseError(
                f"Mapping {key!r} needs string 'tools' and 'released' values",
                source="version-map",
                record=repr(dict(data)),
            )
        if objection is not None and not isinstance(objection, str):
            raise ParseError(
                f"Mapping {key!r} has a non-string 'objection' value",
                source="version-map",
                record=repr(dict(data)),
            )

        return cls(tools_version=tools, released=released, objection_version=objection)


@dataclass
class MapMetadata:
    """Provenance of a version map.

    Attributes:
        last_updated: Date of the last refresh (``YYYY-MM-DD``).
        source: Human-readable list of the feeds and indexes used.
    """

    last_updated: str
    source: str

    def to_dict(self) -> Dict[str, str]:
        return {"last_updated": self.last_updated, "source": self.source}


@dataclass(frozen=True)
class ToolsVersionResolution:
    """A tools lookup answer together with the anchor key it came from."""

    tools_version: str
    mapped_from_frida: str
    alias: Optional[str] = None


@dataclass(frozen=True)
class ObjectionVersionResolution:
    """An objection lookup answer together with the anchor key it came from."""

    objection_version: str
    mapped_from_frida: str
    alias: Optional[str] = None


def build_default_aliases(mappings: Mapping[str, VersionInfo]) -> Dict[str, str]:
    """Compute the ``latest`` / ``stable`` / ``lts`` aliases for ``mappings``.

    ``latest`` and ``stable`` both point at the highest semantic version.
    ``lts`` points at the highest key whose major is one below the latest
    major, and is omitted when no such key exists. Keys that are not
    semantic versions never receive an alias.

    Example:
        >>> build_default_aliases({"16.6.6": info, "15.2.2": info})
        {'latest': '16.6.6', 'stable': '16.6.6', 'lts': '15.2.2'}
    """
    parsed: List[Tuple[SemVer, str]] = []
    for key in mappings:
        version = try_parse_semver(key)
        if version is not None:
            parsed.append((version, key))

    aliases: Dict[str, str] = {}
    if not parsed:
        return aliases

    parsed.sort(reverse=True)
    latest_version, latest_key = parsed[0]
    aliases["latest"] = latest_key
    aliases["stable"] = latest_key

    lts_major = latest_version.major - 1
    for version, key in parsed:
        if version.major == lts_major:
            aliases["lts"] = key
            break

    return aliases


@dataclass
class VersionMap:
    """Anchor → companion version mapping with aliases and metadata.

    Attributes:
        mappings: Anchor version → :class:`VersionInfo`.
        aliases: Alias name → anchor version. Targets may be missing from
            ``mappings``.
        metadata: Provenance of the map.
    """

    mappings: Dict[str, VersionInfo] = field(default_factory=dict)
    aliases: Dict[str, str] = field(default_factory=dict)
    metadata: MapMetadata = field(
        default_factory=lambda: MapMetadata(last_updated="", source="")
    )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def builtin(cls) -> "VersionMap":
        """Return the seed map used before the first refresh."""
        mappings = {
            "16.6.6": VersionInfo("13.3.0", "2024-12-10"),
            "16.5.2": VersionInfo("13.2.2", "2024-11-15"),
            "16.4.0": VersionInfo("13.1.0", "2024-10-01"),
            "16.1.4": VersionInfo("12.2.1", "2024-06-15"),
            "16.0.19": VersionInfo("12.1.3", "2024-05-01"),
            "15.2.2": VersionInfo("12.0.4", "2023-12-20"),
            "15.1.17": VersionInfo("11.0.2", "2023-10-15"),
        }
        aliases = {"latest": "16.6.6", "stable": "16.4.0", "lts": "15.2.2"}
        return cls(
            mappings=mappings,
            aliases=aliases,
            metadata=MapMetadata(
                last_updated="2025-01-15",
                source="https://github.com/frida/frida/releases",
            ),
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve_alias(self, token: str) -> str:
        """Return the alias target for ``token``, or ``token`` unchanged."""
        return self.aliases.get(token, token)

    def get_tools_version(self, frida_version: str) -> Optional[str]:
        """Return the paired ``frida-tools`` version, resolving aliases."""
        info = self.mappings.get(self.resolve_alias(frida_version))
        return info.tools_version if info else None

    def get_objection_version(self, frida_version: str) -> Optional[str]:
        """Return the paired ``objection`` version, resolving aliases."""
        info = self.mappings.get(self.resolve_alias(frida_version))
        return info.objection_version if info else None

    def resolve_tools_version(
        self, frida_version: str
    ) -> Optional[ToolsVersionResolution]:
        """Like :meth:`get_tools_version`, with the anchor key and alias used."""
        resolved = self.resolve_alias(frida_version)
        info = self.mappings.get(resolved)
        if info is None:
            return None
        return ToolsVersionResolution(
            tools_version=info.tools_version,
            mapped_from_frida=resolved,
            alias=frida_version if frida_version in self.aliases else None,
        )

    def resolve_objection_version(
        self, frida_version: str
    ) -> Optional[ObjectionVersionResolution]:
        """Like :meth:`get_objection_version`, with the anchor key and alias used."""
        resolved = self.resolve_alias(frida_version)
        info = self.mappings.get(resolved)
        if info is None or info.objection_version is None:
            return None
        return ObjectionVersionResolution(
            objection_version=info.objection_version,
            mapped_from_frida=resolved,
            alias=frida_version if frida_version in self.aliases else None,
        )

    def list_versions(self) -> List[str]:
        """Return mapping keys, highest semantic version first.

        Keys that are not semantic versions follow in descending lexical
        order.
        """
        return sort_versions_desc(self.mappings.keys())

    def aliases_for(self, frida_version: str) -> List[str]:
        """Return the alias names pointing at ``frida_version``, sorted."""
        return sorted(
            name for name, target in self.aliases.items() if target == frida_version
        )

    def __len__(self) -> int:
        return len(self.mappings)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return the TOML document shape.

        Mappings are emitted highest version first so the file reads
        newest-first.
        """
        return {
            "mappings": {
                key: self.mappings[key].to_dict() for key in self.list_versions()
            },
            "aliases": dict(sorted(self.aliases.items())),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VersionMap":
        """Build a map from a parsed TOML document.

        Raises:
            ParseError: A required table or value is missing or mistyped.
        """
        raw_mappings = data.get("mappings", {})
        raw_aliases = data.get("aliases", {})
        raw_metadata = data.get("metadata")

        if not isinstance(raw_mappings, Mapping) or not isinstance(raw_aliases, Mapping):
            raise ParseError(
                "'mappings' and 'aliases' must be tables", source="version-map"
            )
        if not isinstance(raw_metadata, Mapping):
            raise ParseError("Missing [metadata] table", source="version-map")

        mappings: Dict[str, VersionInfo] = {}
        for key, value in raw_mappings.items():
            if not isinstance(value, Mapping):
                raise ParseError(
                    f"Mapping {key!r} must be a table",
                    source="version-map",
                    record=repr(value),
                )
            mappings[str(key)] = VersionInfo.from_dict(value, key=str(key))

        aliases = {str(k): str(v) for k, v in raw_aliases.items()}

        last_updated = raw_metadata.get("last_updated")
        source = raw_metadata.get("source")
        if not isinstance(last_updated, str) or not isinstance(source, str):
            raise ParseError(
                "[metadata] needs string 'last_updated' and 'source' values",
                source="version-map",
                record=repr(dict(raw_metadata)),
            )

        return cls(
            mappings=mappings,
            aliases=aliases,
            metadata=MapMetadata(last_updated=last_updated, source=source),
        )
