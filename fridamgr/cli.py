"""
The ``frida-mgr`` command line.

The group callback turns global options into a :class:`FridaMgrContext`
(colour, logging, configuration); the subcommands live in
:mod:`fridamgr.commands`. :func:`main` is the console-script entry point and
maps every outcome to an exit code.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from fridamgr.config import load_config
from fridamgr.__version__ import __version__
from fridamgr.context import FridaMgrContext
from fridamgr.exceptions import ConfigError, FridaMgrError
from fridamgr.utils.logger import get_logger, setup_logging
from fridamgr.utils.console import print_error, print_warning, reset_console
from fridamgr.commands.list import list_versions
from fridamgr.commands.resolve import resolve
from fridamgr.commands.sync import sync

logger = get_logger("cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    envvar="FRIDA_MGR_CONFIG",
    help="Configuration file (default: ./frida-mgr.toml or [tool.frida-mgr] in ./pyproject.toml).",
)
@click.option("--verbose", "-v", count=True, help="-v for progress, -vv for debug output.")
@click.option(
    "--color/--no-color",
    default=True,
    envvar="FRIDA_MGR_COLOR",
    help="Allow ANSI colour on terminals.",
)
@click.version_option(__version__, prog_name="frida-mgr", message="%(prog)s %(version)s")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: int, color: bool) -> None:
    """Keep frida, frida-tools and objection versions that work together.

    \b
    Commands:
      list               known frida versions and their companions
      resolve VERSION    companions of one version or alias (latest, stable, lts)
      sync               rebuild the version map from GitHub and PyPI

    \b
    Examples:
      frida-mgr resolve latest --python 3.11
      frida-mgr -v sync
    """
    _apply_color(color)
    root = setup_logging(verbose)
    logger.debug("Logging at %s", logging.getLevelName(root.level))

    try:
        config = load_config(config_path)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(EXIT_FAILURE) from exc

    ctx.obj = FridaMgrContext(
        config,
        config_path=config_path or config.source_path,
        verbose=verbose,
        color=color,
    )
    logger.debug("frida-mgr %s, config %s", __version__, ctx.obj.config_path or "<defaults>")
    logger.debug("Effective configuration: %s", config.to_log_dict())


def _apply_color(color: bool) -> None:
    """Export the colour choice as NO_COLOR and rebuild the console."""
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reset_console()


cli.add_command(list_versions)
cli.add_command(resolve)
cli.add_command(sync)


def main() -> int:
    """Run the CLI and return its exit code.

    0 on success, 1 on any failure, 2 for usage errors and 130 when
    interrupted.
    """
    try:
        cli(standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_FAILURE
    except (KeyboardInterrupt, click.exceptions.Abort):
        print_warning("Interrupted")
        return EXIT_INTERRUPTED
    except FridaMgrError as exc:
        print_error(str(exc))
        logger.debug("Command failed", exc_info=True)
        return EXIT_FAILURE
    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in frida-mgr")
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
