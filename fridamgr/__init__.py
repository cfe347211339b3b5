"""
frida-mgr: keep Frida, frida-tools and objection installable together.

frida-mgr tracks the release trains of the Frida instrumentation toolkit,
its companion CLI package (frida-tools) and the objection add-on, and works
out which combinations can actually be installed side by side.

The heart of the package is the version-compatibility engine:
    • Release discovery from GitHub feeds and paginated release listings
    • PyPI metadata lookups (upload times, requires_dist, existence probes)
    • Date-proximity and constraint-aware pairing of releases
    • A persisted, alias-aware version map ("latest", "stable", "lts")
    • A learned override store for installs that diverged from the map
"""

from __future__ import annotations

from fridamgr.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "frida-mgr Contributors"
__license__ = "MIT"
__description__ = "Version-compatibility engine for Frida, frida-tools and objection."

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "__version__",
]
