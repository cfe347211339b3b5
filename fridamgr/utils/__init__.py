"""Shared helpers: console output, logging, state files, HTTP, versions and time."""

from __future__ import annotations

from fridamgr.utils.console import (
    get_console,
    print_error,
    print_info,
    print_success,
    print_table,
    print_warning,
    reset_console,
)
from fridamgr.utils.logger import (
    get_logger,
    level_for_verbosity,
    reset_logging,
    setup_logging,
)
from fridamgr.utils.filesystem import (
    default_data_dir,
    prune_backups,
    read_state_file,
    write_state_file,
)
from fridamgr.utils.http import HTTPClient
from fridamgr.utils.time_utils import parse_timestamp
from fridamgr.utils.version_utils import (
    SemVer,
    parse_semver,
    python_major_minor,
    sort_versions_desc,
    try_parse_semver,
)

__all__ = [
    "HTTPClient",
    "SemVer",
    "default_data_dir",
    "get_console",
    "get_logger",
    "level_for_verbosity",
    "parse_semver",
    "parse_timestamp",
    "print_error",
    "print_info",
    "print_success",
    "print_table",
    "print_warning",
    "prune_backups",
    "python_major_minor",
    "read_state_file",
    "reset_console",
    "reset_logging",
    "setup_logging",
    "sort_versions_desc",
    "try_parse_semver",
    "write_state_file",
]
