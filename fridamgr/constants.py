"""
Centralized constants for frida-mgr.

This module defines immutable configuration values used across frida-mgr,
including package coordinates, endpoints, network settings, resolution
windows, persisted file names, and logging formats. All values are intended
to be treated as read-only.
"""

from typing import Final, Tuple

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "frida-mgr/{version}"

#: Accept header sent with every request; feeds first, JSON last.
ACCEPT_HEADER: Final[str] = (
    "application/atom+xml, application/xml;q=0.9, "
    "application/vnd.github+json;q=0.8, application/json;q=0.7, */*;q=0.5"
)

# ---------------------------------------------------------------------------
# Package coordinates
# ---------------------------------------------------------------------------

#: PyPI name of the anchor toolkit.
FRIDA_PACKAGE: Final[str] = "frida"

#: PyPI name of the companion CLI package.
TOOLS_PACKAGE: Final[str] = "frida-tools"

#: PyPI name of the dynamic-analysis add-on.
OBJECTION_PACKAGE: Final[str] = "objection"

#: GitHub (owner, repo) of the anchor toolkit.
FRIDA_REPO: Final[Tuple[str, str]] = ("frida", "frida")

#: GitHub (owner, repo) of the companion CLI package.
TOOLS_REPO: Final[Tuple[str, str]] = ("frida", "frida-tools")

#: GitHub (owner, repo) of the add-on package.
OBJECTION_REPO: Final[Tuple[str, str]] = ("sensepost", "objection")

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

#: GitHub web root used to absolutize relative hrefs.
GITHUB_BASE_URL: Final[str] = "https://github.com"

#: Atom feed of a repository's releases (most recent entries only).
GITHUB_RELEASES_ATOM: Final[str] = "https://github.com/{owner}/{repo}/releases.atom"

#: First page of a repository's paginated releases listing.
GITHUB_RELEASES_HTML: Final[str] = "https://github.com/{owner}/{repo}/releases"

#: Base URL for the PyPI JSON API.
PYPI_JSON_API: Final[str] = "https://pypi.org/pypi/{package}/json"

#: Per-version PyPI JSON API.
PYPI_VERSION_JSON_API: Final[str] = "https://pypi.org/pypi/{package}/{version}/json"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of attempts (first try included) for a request.
DEFAULT_MAX_ATTEMPTS: Final[int] = 3

#: First backoff delay in seconds; doubled after every failed attempt.
INITIAL_BACKOFF: Final[float] = 0.5

#: Upper bound for the exponential backoff delay in seconds.
MAX_BACKOFF: Final[float] = 8.0

#: Upper bound for a server-provided ``Retry-After`` in seconds.
MAX_RETRY_AFTER: Final[float] = 30.0

# ---------------------------------------------------------------------------
# Release discovery
# ---------------------------------------------------------------------------

#: Hard ceiling on listing pages followed for one repository.
MAX_LISTING_PAGES: Final[int] = 1000

#: Delay in seconds between two listing page requests.
LISTING_PAGE_DELAY: Final[float] = 0.35

#: Delay in seconds between fetching two different release sources.
SOURCE_FETCH_DELAY: Final[float] = 0.2

# ---------------------------------------------------------------------------
# Compatibility resolution
# ---------------------------------------------------------------------------

#: Forward look-ahead window, in days, for frida-tools candidates.
TOOLS_LOOKAHEAD_DAYS: Final[int] = 21

#: Candidates scanned in each direction when pairing objection releases.
OBJECTION_SCAN_LIMIT: Final[int] = 30

#: Candidates scanned in each direction when matching ``requires_python``.
PYTHON_COMPAT_SCAN_LIMIT: Final[int] = 50

#: Key used in the overrides store when the interpreter version is unparsable.
UNKNOWN_PYTHON_TAG: Final[str] = "unknown"

# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------

#: Environment variable overriding the data directory.
HOME_ENV_VAR: Final[str] = "FRIDA_MGR_HOME"

#: Data directory name under the user's home when no override is set.
DEFAULT_HOME_DIRNAME: Final[str] = ".frida-mgr"

#: File name of the persisted version map.
VERSION_MAP_FILENAME: Final[str] = "version-map.toml"

#: File name of the persisted overrides store.
OVERRIDES_FILENAME: Final[str] = "version-overrides.toml"

#: Maximum allowed size (in bytes) when reading persisted documents.
MAX_STATE_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

#: Number of version-map backups kept after a refresh.
BACKUPS_KEPT: Final[int] = 5

# ---------------------------------------------------------------------------
# Configuration defaults
# ---------------------------------------------------------------------------

#: Whether refreshes consider pre-releases by default.
DEFAULT_INCLUDE_PRERELEASE: Final[bool] = False

#: Name of the standalone configuration file.
CONFIG_FILENAME: Final[str] = "frida-mgr.toml"

#: Table holding frida-mgr settings (``[frida-mgr]`` / ``[tool.frida-mgr]``).
CONFIG_SECTION: Final[str] = "frida-mgr"

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
