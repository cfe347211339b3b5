"""
Core functionality exports for frida-mgr.

This module provides convenient access to the core subsystems of frida-mgr.
Importing from here keeps user-facing imports clean and stable:

    from fridamgr.core import CompatibilityResolver, ReleaseFeedFetcher
"""

from __future__ import annotations

from fridamgr.core.interfaces import ReleaseTransport
from fridamgr.core.markup import MarkupEvent, tokenize_html, tokenize_xml
from fridamgr.core.registry import RegistryMetadataClient
from fridamgr.core.release_feed import ReleaseFeedFetcher
from fridamgr.core.resolver import (
    CompatibilityResolver,
    parse_frida_bounds_from_requires_dist,
    tools_compatible_with_frida,
)
from fridamgr.core.store import (
    OverrideStore,
    load_or_init_version_map,
    load_version_map,
    refresh_version_map,
    save_version_map,
)

__all__ = [
    "ReleaseTransport",
    "MarkupEvent",
    "tokenize_html",
    "tokenize_xml",
    "RegistryMetadataClient",
    "ReleaseFeedFetcher",
    "CompatibilityResolver",
    "parse_frida_bounds_from_requires_dist",
    "tools_compatible_with_frida",
    "OverrideStore",
    "load_or_init_version_map",
    "load_version_map",
    "refresh_version_map",
    "save_version_map",
]
