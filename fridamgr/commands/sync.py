"""Sync command implementation for frida-mgr.

Rebuilds the version map from GitHub releases and PyPI metadata and
replaces the persisted ``version-map.toml``.

The command wires together the core components around one shared
:class:`HTTPClient`:

1. **ReleaseFeedFetcher**: frida and objection timelines (Atom feed +
   paginated listing).
2. **RegistryMetadataClient**: frida-tools timeline and per-version
   ``requires_dist`` / existence checks, cached for the run.
3. **CompatibilityResolver**: pairs every frida release.

A refresh that produces no pairing at all leaves the previous file
untouched and exits with 1.

Typical usage::

    $ frida-mgr sync
    $ frida-mgr -v sync --prerelease
"""

from __future__ import annotations

import sys
import asyncio
from typing import List, Optional, Tuple

import click

from fridamgr.config import FridaMgrConfig
from fridamgr.exceptions import EmptyResultError, FridaMgrError
from fridamgr.context import pass_context, FridaMgrContext
from fridamgr.models import SourceDegradation, VersionMap
from fridamgr.core import (
    CompatibilityResolver,
    RegistryMetadataClient,
    ReleaseFeedFetcher,
    refresh_version_map,
)
from fridamgr.utils import (
    HTTPClient,
    get_logger,
    print_error,
    print_info,
    print_success,
    print_warning,
)

logger = get_logger("commands.sync")


@click.command()
@click.option(
    "--prerelease/--no-prerelease",
    default=None,
    help="Include pre-releases (default: include_prerelease from config).",
)
@pass_context
def sync(ctx: FridaMgrContext, prerelease: Optional[bool]) -> None:
    """Rebuild the version map from GitHub and PyPI."""
    config = ctx.config
    include_prerelease = config.include_prerelease if prerelease is None else prerelease
    print_info("Refreshing version map from GitHub and PyPI...")

    try:
        version_map, degradations = asyncio.run(_sync_async(config, include_prerelease))
    except EmptyResultError as e:
        print_error(f"{e}")
        print_warning(f"Existing version map left untouched: {config.version_map_path}")
        sys.exit(1)
    except FridaMgrError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in sync command")
        sys.exit(1)

    for degradation in degradations:
        print_warning(
            f"{degradation.owner}/{degradation.repo}: release {degradation.source} "
            f"unavailable ({degradation.error})"
        )

    latest = version_map.aliases.get("latest", "-")
    print_success(
        f"Version map updated: {len(version_map)} frida release(s), latest {latest}"
    )


async def _sync_async(
    config: FridaMgrConfig,
    include_prerelease: bool,
) -> Tuple[VersionMap, List[SourceDegradation]]:
    """Run one refresh and return the new map and any source degradations."""
    logger.info("Refreshing version map at %s", config.version_map_path)

    async with HTTPClient(timeout=config.timeout, max_attempts=config.max_attempts) as http:
        fetcher = ReleaseFeedFetcher(
            http,
            max_pages=config.max_listing_pages,
            page_delay=config.page_delay,
        )
        resolver = CompatibilityResolver(
            fetcher,
            RegistryMetadataClient(http),
            lookahead_days=config.lookahead_days,
            objection_scan_limit=config.objection_scan_limit,
        )
        version_map = await refresh_version_map(
            resolver,
            config.version_map_path,
            include_prerelease=include_prerelease,
        )

    return version_map, list(fetcher.degradations)
