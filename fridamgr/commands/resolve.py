"""Resolve command implementation for frida-mgr.

Answers "which frida-tools and objection go with this frida?" for a
version or an alias (``latest``, ``stable``, ``lts``). A learned override
takes precedence over the map's prediction and is reported as such.

Typical usage::

    $ frida-mgr resolve latest
    $ frida-mgr resolve 16.5.2 --python 3.11
"""

from __future__ import annotations

import sys
from typing import Any, Dict, List, Optional

import click

from fridamgr.exceptions import FridaMgrError
from fridamgr.models import VersionMap
from fridamgr.core.store import OverrideStore, load_or_init_version_map
from fridamgr.context import pass_context, FridaMgrContext
from fridamgr.utils.version_utils import parse_semver, python_tag
from fridamgr.utils import get_logger, print_error, print_table

logger = get_logger("commands.resolve")


def _default_python() -> str:
    return f"{sys.version_info.major}.{sys.version_info.minor}"


@click.command()
@click.argument("version")
@click.option(
    "--python",
    "python_version",
    default=None,
    help="Interpreter version used for objection overrides (default: current).",
)
@pass_context
def resolve(
    ctx: FridaMgrContext,
    version: str,
    python_version: Optional[str],
) -> None:
    """Resolve VERSION (or an alias) to frida-tools and objection versions.

    Exits with 1 when the version is unknown to the map.
    """
    python_version = python_version or _default_python()

    try:
        version_map = load_or_init_version_map(ctx.config.version_map_path)
        overrides = OverrideStore(ctx.config.overrides_path, autosave=False)
        rows = _resolve_rows(version_map, overrides, version, python_version)
    except FridaMgrError as e:
        print_error(f"{e}")
        sys.exit(1)

    if rows is None:
        print_error(f"Unknown frida version: {version}")
        sys.exit(1)

    print_table(
        rows,
        title=f"frida {version}",
        caption=f"python {python_tag(python_version)}",
        column_styles={"package": {"style": "version", "no_wrap": True}},
    )


def _resolve_rows(
    version_map: VersionMap,
    overrides: OverrideStore,
    token: str,
    python_version: str,
) -> Optional[List[Dict[str, Any]]]:
    """Build the output rows, or ``None`` when ``token`` is not mapped.

    Raises:
        VersionFormatError: ``token`` is neither an alias nor a semantic version.
    """
    if token not in version_map.aliases:
        parse_semver(token)

    tools = version_map.resolve_tools_version(token)
    if tools is None:
        return None

    anchor = tools.mapped_from_frida
    anchor_source = f"alias '{tools.alias}'" if tools.alias else "requested"
    rows: List[Dict[str, Any]] = [
        {"package": "frida", "version": anchor, "source": anchor_source}
    ]

    learned_tools = overrides.get_tools(anchor)
    if learned_tools and learned_tools != tools.tools_version:
        rows.append(
            {
                "package": "frida-tools",
                "version": learned_tools,
                "source": f"learned override (map predicts {tools.tools_version})",
            }
        )
    else:
        rows.append(
            {"package": "frida-tools", "version": tools.tools_version, "source": "version map"}
        )

    objection = version_map.resolve_objection_version(token)
    learned_objection = overrides.get_objection(anchor, python_version)
    if learned_objection and (
        objection is None or learned_objection != objection.objection_version
    ):
        predicted = objection.objection_version if objection else "nothing"
        rows.append(
            {
                "package": "objection",
                "version": learned_objection,
                "source": f"learned override (map predicts {predicted})",
            }
        )
    elif objection is not None:
        rows.append(
            {
                "package": "objection",
                "version": objection.objection_version,
                "source": "version map",
            }
        )
    else:
        rows.append({"package": "objection", "version": "-", "source": "not mapped"})

    logger.debug("Resolved %s to %s", token, rows)
    return rows
