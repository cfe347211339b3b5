"""Rich console helpers for user-facing frida-mgr output.

Everything printed here is meant for the person running the CLI; status
lines carry a bracketed prefix (``[OK]``, ``[ERROR]``, ``[WARNING]``) so they
stay readable when colour is off. Diagnostics go through
:mod:`fridamgr.utils.logger` instead.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Dict, List, Mapping, Optional, TextIO

from rich.table import Table
from rich.theme import Theme
from rich.console import Console

FRIDAMGR_STYLES = Theme(
    {
        "status.ok": "bold green",
        "status.error": "bold red",
        "status.warning": "bold yellow",
        "status.info": "cyan",
        "version": "bold cyan",
        "alias": "magenta",
        "muted": "dim",
    }
)

_PREFIXES: Dict[str, str] = {
    "ok": "[OK]",
    "error": "[ERROR]",
    "warning": "[WARNING]",
    "info": "",
}

# Keyword arguments print_table forwards to Table.add_column.
_COLUMN_OPTIONS = ("style", "justify", "no_wrap", "min_width", "overflow")

_console: Optional[Console] = None
_lock = threading.Lock()


def color_enabled(stream: Optional[TextIO] = None) -> bool:
    """Return whether ``stream`` (stdout by default) should get ANSI colour.

    ``NO_COLOR`` and ``CI`` switch colour off; otherwise only terminals get it.
    """
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    target = stream if stream is not None else sys.stdout
    try:
        return bool(target.isatty())
    except (AttributeError, OSError, ValueError):
        return False


def get_console() -> Console:
    """Return the shared console, creating it on first use."""
    global _console

    with _lock:
        if _console is None:
            colored = color_enabled()
            _console = Console(theme=FRIDAMGR_STYLES, no_color=not colored, highlight=False)
        return _console


def reset_console() -> None:
    """Forget the shared console so the next call re-reads the environment."""
    global _console

    with _lock:
        _console = None


def _status(kind: str, message: str, prefix: Optional[str]) -> None:
    label = _PREFIXES[kind] if prefix is None else prefix
    text = f"{label} {message}" if label else message
    # Messages may contain brackets (paths, extras); never treat them as markup.
    get_console().print(text, style=f"status.{kind}", markup=False)


def print_success(message: str, *, prefix: Optional[str] = None) -> None:
    _status("ok", message, prefix)


def print_error(message: str, *, prefix: Optional[str] = None) -> None:
    _status("error", message, prefix)


def print_warning(message: str, *, prefix: Optional[str] = None) -> None:
    _status("warning", message, prefix)


def print_info(message: str) -> None:
    _status("info", message, None)


def print_table(
    rows: List[Mapping[str, Any]],
    *,
    headers: Optional[List[str]] = None,
    title: Optional[str] = None,
    caption: Optional[str] = None,
    column_styles: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> None:
    """Render ``rows`` as a table; nothing is printed for an empty list.

    Args:
        rows: One mapping per row. ``None`` cells render as ``-``.
        headers: Columns to show, in order. Defaults to the first row's keys.
        title: Table title.
        caption: Line printed under the table.
        column_styles: Per-column ``Table.add_column`` options
            (``style``, ``justify``, ``no_wrap``, ``min_width``, ``overflow``).
    """
    if not rows:
        return

    columns = list(headers) if headers is not None else list(rows[0])
    styles = column_styles or {}

    table = Table(title=title, caption=caption, header_style="bold")
    for name in columns:
        options = styles.get(name, {})
        table.add_column(name, **{k: v for k, v in options.items() if k in _COLUMN_OPTIONS})

    for row in rows:
        table.add_row(*("-" if row.get(name) is None else str(row.get(name)) for name in columns))

    get_console().print(table)
