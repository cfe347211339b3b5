"""
State-file helpers for frida-mgr.

frida-mgr keeps two small documents in its data directory. They are read
whole, and rewritten whole through a temporary file in the same directory
followed by :func:`os.replace`, so readers only ever see the old or the new
content. Every failure surfaces as ``FileOperationError``.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from datetime import datetime, timezone
from typing import List, Optional, Union

from fridamgr.utils.logger import get_logger
from fridamgr.exceptions import FileOperationError
from fridamgr.constants import (
    BACKUPS_KEPT,
    DEFAULT_HOME_DIRNAME,
    HOME_ENV_VAR,
    MAX_STATE_FILE_SIZE,
)

logger = get_logger("filesystem")

PathLike = Union[str, Path]

_BACKUP_SUFFIX = ".backup"


def default_data_dir() -> Path:
    """Return ``$FRIDA_MGR_HOME`` when set, else ``~/.frida-mgr``."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_HOME_DIRNAME


def read_state_file(path: PathLike, *, max_size: Optional[int] = MAX_STATE_FILE_SIZE) -> str:
    """Return the UTF-8 text of ``path``.

    Raises:
        FileOperationError: The file is missing, is not a regular file, is
            larger than ``max_size`` bytes or cannot be decoded.
    """
    path = Path(path)
    try:
        stat = path.stat()
    except FileNotFoundError as exc:
        raise FileOperationError(
            f"File not found: {path}", file_path=str(path), operation="read"
        ) from exc
    except OSError as exc:
        raise FileOperationError(
            f"Cannot access {path}: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc

    if not path.is_file():
        raise FileOperationError(f"Not a file: {path}", file_path=str(path), operation="read")
    if max_size is not None and stat.st_size > max_size:
        raise FileOperationError(
            f"File too large: {stat.st_size} bytes (max {max_size})",
            file_path=str(path),
            operation="read",
        )

    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileOperationError(
            f"Failed to read {path.name}: {exc}",
            file_path=str(path),
            operation="read",
            original_error=exc,
        ) from exc


def backup_path_for(path: Path, when: Optional[datetime] = None) -> Path:
    """Name of the backup of ``path`` taken at ``when`` (UTC now by default).

    ``version-map.toml`` becomes ``version-map.toml.20250601T120000123456.backup``;
    the stamp sorts chronologically.
    """
    stamp = (when or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S%f")
    return path.with_name(f"{path.name}.{stamp}{_BACKUP_SUFFIX}")


def list_backups(path: Path) -> List[Path]:
    """Backups of ``path``, oldest first."""
    return sorted(path.parent.glob(f"{path.name}.*{_BACKUP_SUFFIX}"))


def prune_backups(path: Path, keep: int = BACKUPS_KEPT) -> List[Path]:
    """Delete all but the ``keep`` newest backups of ``path``; return the deleted ones."""
    backups = list_backups(path)
    stale = backups[: max(len(backups) - keep, 0)]
    for backup in stale:
        try:
            backup.unlink()
        except OSError as exc:
            raise FileOperationError(
                f"Failed to remove old backup {backup.name}: {exc}",
                file_path=str(backup),
                operation="delete",
                original_error=exc,
            ) from exc
        logger.debug("Removed old backup %s", backup)
    return stale


def write_state_file(path: PathLike, content: str, *, keep_backup: bool = False) -> Optional[Path]:
    """Atomically replace ``path`` with ``content``.

    Parent directories are created as needed. With ``keep_backup`` the
    current file, if any, is first copied next to it (see
    :func:`backup_path_for`).

    Returns:
        The backup that was written, or ``None``.

    Raises:
        FileOperationError: The backup or the replacement failed. The
            previous content of ``path`` is intact in either case.
    """
    path = Path(path)
    backup: Optional[Path] = None

    if keep_backup and path.is_file():
        backup = backup_path_for(path)
        try:
            shutil.copy2(path, backup)
        except OSError as exc:
            raise FileOperationError(
                f"Failed to back up {path.name}: {exc}",
                file_path=str(path),
                operation="backup",
                original_error=exc,
            ) from exc

    temp_name: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
        temp_name = None
    except OSError as exc:
        raise FileOperationError(
            f"Failed to write {path.name}: {exc}",
            file_path=str(path),
            operation="write",
            original_error=exc,
        ) from exc
    finally:
        if temp_name is not None and os.path.exists(temp_name):
            os.unlink(temp_name)

    logger.debug("Wrote %d bytes to %s", len(content.encode("utf-8")), path)
    return backup
