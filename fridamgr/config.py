"""Configuration for frida-mgr.

Settings live in a ``[frida-mgr]`` table of ``frida-mgr.toml`` or in
``[tool.frida-mgr]`` of a ``pyproject.toml``. The first match wins:

1. the file given with ``--config`` / ``FRIDA_MGR_CONFIG``;
2. ``./frida-mgr.toml``;
3. ``./pyproject.toml``, if it has a ``[tool.frida-mgr]`` table.

Example ``frida-mgr.toml``::

    [frida-mgr]
    include_prerelease = false
    lookahead_days = 21
    data_dir = "~/.frida-mgr"

Every option has a default, so a missing file or an empty table is fine.
Unknown keys, wrong types and out-of-range numbers are rejected with
:class:`~fridamgr.exceptions.ConfigError`.
"""

from __future__ import annotations

import tomli
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple, Type, Union

from fridamgr.exceptions import ConfigError
from fridamgr.utils.logger import get_logger
from fridamgr.utils.filesystem import default_data_dir
from fridamgr.constants import (
    CONFIG_FILENAME,
    CONFIG_SECTION,
    DEFAULT_INCLUDE_PRERELEASE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT,
    LISTING_PAGE_DELAY,
    MAX_LISTING_PAGES,
    OBJECTION_SCAN_LIMIT,
    OVERRIDES_FILENAME,
    TOOLS_LOOKAHEAD_DAYS,
    VERSION_MAP_FILENAME,
)

logger = get_logger("config")

PYPROJECT_FILENAME = "pyproject.toml"


@dataclass
class FridaMgrConfig:
    """Effective frida-mgr settings.

    Attributes:
        include_prerelease: Let ``sync`` pair pre-releases too.
        lookahead_days: How far after a frida release to look for frida-tools.
        objection_scan_limit: Objection candidates probed in each direction.
        max_listing_pages: Page cap for one GitHub release listing.
        page_delay: Pause, in seconds, between two listing pages.
        timeout: HTTP timeout in seconds.
        max_attempts: HTTP attempts per request.
        data_dir: Where ``version-map.toml`` and ``version-overrides.toml`` live.
        source_path: File the values were read from; not an option.
    """

    include_prerelease: bool = DEFAULT_INCLUDE_PRERELEASE
    lookahead_days: int = TOOLS_LOOKAHEAD_DAYS
    objection_scan_limit: int = OBJECTION_SCAN_LIMIT
    max_listing_pages: int = MAX_LISTING_PAGES
    page_delay: float = LISTING_PAGE_DELAY
    timeout: int = DEFAULT_TIMEOUT
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    data_dir: Path = field(default_factory=default_data_dir)
    source_path: Optional[Path] = field(default=None, repr=False)

    @property
    def version_map_path(self) -> Path:
        return self.data_dir / VERSION_MAP_FILENAME

    @property
    def overrides_path(self) -> Path:
        return self.data_dir / OVERRIDES_FILENAME

    def to_log_dict(self) -> Dict[str, Any]:
        """Option values as plain data, for debug output."""
        values = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "source_path"}
        values["data_dir"] = str(self.data_dir)
        return values


# option -> (accepted TOML types, inclusive minimum)
_OPTIONS: Dict[str, Tuple[Tuple[Type[Any], ...], Optional[Union[int, float]]]] = {
    "include_prerelease": ((bool,), None),
    "lookahead_days": ((int,), 0),
    "objection_scan_limit": ((int,), 1),
    "max_listing_pages": ((int,), 1),
    "page_delay": ((int, float), 0),
    "timeout": ((int,), 1),
    "max_attempts": ((int,), 1),
    "data_dir": ((str,), None),
}

_TYPE_NAMES = {bool: "a boolean", int: "an integer", float: "a number", str: "a string"}


def _load_toml(path: Path) -> Dict[str, Any]:
    try:
        return tomli.loads(path.read_text(encoding="utf-8"))
    except tomli.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path.name}: {exc}", config_path=str(path)) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}", config_path=str(path)) from exc


def _settings_table(document: Mapping[str, Any], path: Path) -> Mapping[str, Any]:
    """Return the frida-mgr table of a parsed file (empty when absent)."""
    if path.name == PYPROJECT_FILENAME:
        tool = document.get("tool", {})
        table = tool.get(CONFIG_SECTION, {}) if isinstance(tool, Mapping) else {}
    else:
        table = document.get(CONFIG_SECTION, {})
    if not isinstance(table, Mapping):
        raise ConfigError(f"[{CONFIG_SECTION}] must be a table", config_path=str(path))
    return table


def _declares_settings(pyproject: Path) -> bool:
    """A pyproject.toml counts only with a readable ``[tool.frida-mgr]`` table."""
    try:
        document = _load_toml(pyproject)
    except ConfigError as exc:
        logger.debug("Ignoring %s: %s", pyproject, exc)
        return False
    tool = document.get("tool")
    return isinstance(tool, Mapping) and CONFIG_SECTION in tool


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Return the configuration file to use, or ``None`` for defaults.

    Raises:
        ConfigError: ``explicit_path`` does not name an existing file.
    """
    if explicit_path is not None:
        if not explicit_path.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        return explicit_path.resolve()

    cwd = Path.cwd()
    candidate = cwd / CONFIG_FILENAME
    if candidate.is_file():
        return candidate

    candidate = cwd / PYPROJECT_FILENAME
    if candidate.is_file() and _declares_settings(candidate):
        return candidate
    return None


def _validated(name: str, value: Any, config_path: str) -> Any:
    accepted, minimum = _OPTIONS[name]

    # TOML booleans are Python ints too; only bool options take them.
    if not isinstance(value, accepted) or (isinstance(value, bool) and bool not in accepted):
        raise ConfigError(
            f"{name} must be {_TYPE_NAMES[accepted[-1]]}, got {type(value).__name__}",
            config_path=config_path,
            option=name,
        )
    if minimum is not None and value < minimum:
        raise ConfigError(
            f"{name} must be >= {minimum}, got {value}",
            config_path=config_path,
            option=name,
        )

    if name == "data_dir":
        return Path(value).expanduser()
    if name == "page_delay":
        return float(value)
    return value


def config_from_table(table: Mapping[str, Any], *, config_path: str = "<memory>") -> FridaMgrConfig:
    """Build a config from a ``[frida-mgr]`` table, validating every entry."""
    unknown = sorted(set(table) - set(_OPTIONS))
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(unknown)}",
            config_path=config_path,
        )
    values = {name: _validated(name, value, config_path) for name, value in table.items()}
    return FridaMgrConfig(**values)


def load_config(config_path: Optional[Path] = None) -> FridaMgrConfig:
    """Discover, read and validate the configuration.

    Args:
        config_path: File to use instead of discovery.

    Raises:
        ConfigError: The file is unreadable, invalid TOML, or holds an
            invalid option.
    """
    path = discover_config_file(config_path)
    if path is None:
        logger.debug("No configuration file, using defaults")
        return FridaMgrConfig()

    logger.info("Loading configuration from %s", path)
    config = config_from_table(_settings_table(_load_toml(path), path), config_path=str(path))
    config.source_path = path
    return config
