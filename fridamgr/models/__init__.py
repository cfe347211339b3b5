"""
Unified data model exports for frida-mgr.

This module re-exports all core data models to provide a stable and
convenient public API. Users can import models directly from
``fridamgr.models`` instead of individual submodules.

Example:
    >>> from fridamgr.models import VersionMap, VersionOverrides, Release
"""

from __future__ import annotations

from fridamgr.models.release import (
    Release,
    SourceDegradation,
    VersionBounds,
    dedup_releases,
)
from fridamgr.models.version_map import (
    MapMetadata,
    ObjectionVersionResolution,
    ToolsVersionResolution,
    VersionInfo,
    VersionMap,
    build_default_aliases,
)
from fridamgr.models.overrides import (
    ObjectionKey,
    OverrideKey,
    ToolsKey,
    VersionOverrides,
)

__all__ = [
    "Release",
    "SourceDegradation",
    "VersionBounds",
    "dedup_releases",
    "MapMetadata",
    "VersionInfo",
    "VersionMap",
    "ToolsVersionResolution",
    "ObjectionVersionResolution",
    "build_default_aliases",
    "ObjectionKey",
    "OverrideKey",
    "ToolsKey",
    "VersionOverrides",
]
