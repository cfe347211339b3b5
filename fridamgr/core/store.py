"""Persistence for the version map and the override store.

Both documents are TOML files in the frida-mgr data directory
(``version-map.toml`` and ``version-overrides.toml``). They are read with
``tomli`` and written with ``tomli_w`` through an atomic temp-file +
replace, so a crash never leaves a half-written file behind.

A refresh that produces zero mappings raises
:class:`~fridamgr.exceptions.EmptyResultError` before anything is written,
so the previous map survives.
"""

from __future__ import annotations

import tomli
import tomli_w
from pathlib import Path
from typing import Any, Dict, Optional, Union

from fridamgr.exceptions import ParseError
from fridamgr.utils.logger import get_logger
from fridamgr.core.resolver import CompatibilityResolver
from fridamgr.utils.filesystem import prune_backups, read_state_file, write_state_file
from fridamgr.models.version_map import VersionMap
from fridamgr.models.overrides import OverrideKey, VersionOverrides

logger = get_logger("store")

PathLike = Union[str, Path]

__all__ = [
    "OverrideStore",
    "load_overrides",
    "load_or_init_version_map",
    "load_version_map",
    "refresh_version_map",
    "save_overrides",
    "save_version_map",
]


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML document.

    Raises:
        FileOperationError: The file cannot be read.
        ParseError: The file is not valid TOML.
    """
    content = read_state_file(path)
    try:
        return tomli.loads(content)
    except tomli.TOMLDecodeError as exc:
        raise ParseError(
            f"Invalid TOML in {path.name}: {exc}",
            source=str(path),
        ) from exc


# ---------------------------------------------------------------------------
# Version map
# ---------------------------------------------------------------------------


def load_version_map(path: PathLike) -> VersionMap:
    """Load a persisted version map."""
    path = Path(path)
    version_map = VersionMap.from_dict(_read_toml(path))
    logger.debug("Loaded %d mapping(s) from %s", len(version_map), path)
    return version_map


def save_version_map(
    version_map: VersionMap,
    path: PathLike,
    *,
    keep_backup: bool = False,
) -> Optional[Path]:
    """Atomically rewrite ``path`` with ``version_map``.

    Returns:
        Path of the backup of the previous file, if one was requested.
    """
    path = Path(path)
    backup = write_state_file(
        path, tomli_w.dumps(version_map.to_dict()), keep_backup=keep_backup
    )
    logger.debug("Saved %d mapping(s) to %s", len(version_map), path)
    return backup


def load_or_init_version_map(path: PathLike) -> VersionMap:
    """Load the map at ``path``, seeding it with the built-in map on first use."""
    path = Path(path)
    if path.exists():
        return load_version_map(path)

    logger.info("No version map at %s, writing the built-in defaults", path)
    version_map = VersionMap.builtin()
    save_version_map(version_map, path)
    return version_map


async def refresh_version_map(
    resolver: CompatibilityResolver,
    path: PathLike,
    *,
    include_prerelease: bool = False,
) -> VersionMap:
    """Rebuild the map from the network and replace the file at ``path``.

    Any error (including an empty result) propagates before the file is
    touched. The previous file, if any, is kept as a timestamped backup
    and only the newest few backups are retained.
    """
    version_map = await resolver.build_version_map(include_prerelease=include_prerelease)
    backup = save_version_map(version_map, path, keep_backup=True)
    if backup is not None:
        logger.info("Previous version map kept at %s", backup)
        prune_backups(Path(path))
    return version_map


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


def load_overrides(path: PathLike) -> VersionOverrides:
    """Load persisted overrides; a missing file is an empty store."""
    path = Path(path)
    if not path.exists():
        return VersionOverrides()
    return VersionOverrides.from_dict(_read_toml(path))


def save_overrides(overrides: VersionOverrides, path: PathLike) -> None:
    """Atomically rewrite ``path`` with ``overrides``."""
    write_state_file(path, tomli_w.dumps(overrides.to_dict()))


class OverrideStore:
    """Override store bound to a file.

    Changes are written immediately when ``autosave`` is on; otherwise they
    accumulate until :meth:`save`. Setting a value equal to the stored one
    is a no-op and never dirties the store.

    Args:
        path: Location of ``version-overrides.toml``.
        overrides: Initial contents; loaded from ``path`` when omitted.
        autosave: Persist after every change.

    Example::

        store = OverrideStore(config.overrides_path)
        if store.set_tools("16.6.6", "13.3.1"):
            print("learned a new pairing")
    """

    def __init__(
        self,
        path: PathLike,
        overrides: Optional[VersionOverrides] = None,
        *,
        autosave: bool = True,
    ) -> None:
        self.path = Path(path)
        self.overrides = overrides if overrides is not None else load_overrides(self.path)
        self.autosave = autosave
        self._dirty = False

    @property
    def dirty(self) -> bool:
        """True when there are changes not yet written."""
        return self._dirty

    def get(self, key: OverrideKey) -> Optional[str]:
        return self.overrides.get(key)

    def set(self, key: OverrideKey, value: str) -> bool:
        """Store ``value`` under ``key``; return whether anything changed."""
        changed = self.overrides.set(key, value)
        if changed:
            logger.debug("Override %s = %s", key.storage_key, value)
        return self._after_change(changed)

    def get_tools(self, frida_version: str) -> Optional[str]:
        return self.overrides.get_tools(frida_version)

    def get_objection(self, frida_version: str, python_version: str) -> Optional[str]:
        return self.overrides.get_objection(frida_version, python_version)

    def set_tools(self, frida_version: str, tools_version: str) -> bool:
        changed = self.overrides.set_tools(frida_version, tools_version)
        return self._after_change(changed)

    def set_objection(
        self,
        frida_version: str,
        python_version: str,
        objection_version: str,
    ) -> bool:
        changed = self.overrides.set_objection(
            frida_version, python_version, objection_version
        )
        return self._after_change(changed)

    def _after_change(self, changed: bool) -> bool:
        if changed:
            self._dirty = True
            if self.autosave:
                self.save()
        return changed

    def save(self) -> bool:
        """Write pending changes; return False when there was nothing to write."""
        if not self._dirty:
            return False
        save_overrides(self.overrides, self.path)
        self._dirty = False
        return True
