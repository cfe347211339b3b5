"""
frida-mgr version information.

Single source of truth for the package version, read by the CLI's
``--version`` option and the HTTP ``User-Agent`` header.
"""

from __future__ import annotations

__version__ = "0.3.0"
