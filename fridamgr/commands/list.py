"""List command implementation for frida-mgr.

Shows every frida version known to the local version map together with
the paired frida-tools and objection versions and the aliases pointing at
it. The map is seeded with the built-in defaults on first use.

Typical usage::

    $ frida-mgr list
"""

from __future__ import annotations

import sys
from typing import Any, Dict, List

import click

from fridamgr.exceptions import FridaMgrError
from fridamgr.models import VersionMap
from fridamgr.core.store import load_or_init_version_map
from fridamgr.context import pass_context, FridaMgrContext
from fridamgr.utils import get_logger, print_error, print_table, print_warning

logger = get_logger("commands.list")


@click.command(name="list")
@pass_context
def list_versions(ctx: FridaMgrContext) -> None:
    """Show the known frida → frida-tools / objection pairings."""
    try:
        version_map = load_or_init_version_map(ctx.config.version_map_path)
    except FridaMgrError as e:
        print_error(f"{e}")
        sys.exit(1)

    if not version_map.mappings:
        print_warning("The version map is empty; run 'frida-mgr sync'")
        return

    _display_table(version_map)


def _display_table(version_map: VersionMap) -> None:
    """Render the map as a Rich table, highest frida version first."""
    data: List[Dict[str, Any]] = []
    for frida_version in version_map.list_versions():
        info = version_map.mappings[frida_version]
        data.append(
            {
                "frida": frida_version,
                "frida-tools": info.tools_version,
                "objection": info.objection_version or "-",
                "released": info.released,
                "aliases": ", ".join(version_map.aliases_for(frida_version)),
            }
        )

    column_styles: Dict[str, Dict[str, Any]] = {
        "frida": {"style": "version", "no_wrap": True},
        "frida-tools": {"justify": "center"},
        "objection": {"justify": "center"},
        "released": {"justify": "center", "style": "muted"},
        "aliases": {"style": "alias"},
    }

    metadata = version_map.metadata
    print_table(
        data,
        title="frida version map",
        caption=f"Updated {metadata.last_updated} from {metadata.source}",
        column_styles=column_styles,
    )
