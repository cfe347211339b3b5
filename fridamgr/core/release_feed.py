"""GitHub release discovery for frida-mgr.

Releases of a repository are read from two GitHub sources:

1. **Atom feed** (``/releases.atom``): a single request, but only the most
   recent entries.
2. **Paginated listing** (``/releases``): the full history, one HTML page
   per request, followed via ``rel="next"`` links with a politeness delay.

:class:`ReleaseFeedFetcher` merges both into one deduplicated list ordered
by publish time. When one source fails but the other succeeds the result
is still returned and a :class:`~fridamgr.models.SourceDegradation` is
recorded on the fetcher.

Typical usage::

    async with HTTPClient() as http:
        fetcher = ReleaseFeedFetcher(http)
        releases = await fetcher.fetch_releases("frida", "frida")
        print(releases[-1].version)          # newest, e.g. "16.6.6"
"""

from __future__ import annotations

import re
import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from fridamgr.exceptions import FridaMgrError, ParseError
from fridamgr.utils.logger import get_logger
from fridamgr.utils.time_utils import parse_timestamp
from fridamgr.utils.version_utils import try_parse_semver
from fridamgr.core.interfaces import ReleaseTransport
from fridamgr.models.release import Release, SourceDegradation, dedup_releases
from fridamgr.core.markup import (
    END,
    START,
    TEXT,
    MarkupEvent,
    looks_like_html,
    tokenize_html,
    tokenize_xml,
)
from fridamgr.constants import (
    GITHUB_BASE_URL,
    GITHUB_RELEASES_ATOM,
    GITHUB_RELEASES_HTML,
    LISTING_PAGE_DELAY,
    MAX_LISTING_PAGES,
)

logger = get_logger("release_feed")

__all__ = [
    "ListingPage",
    "ReleaseFeedFetcher",
    "extract_tag_from_title",
    "normalize_github_href",
    "parse_feed_events",
    "parse_listing_events",
]

_TITLE_PREFIXES = ("Release ", "release ", "Pre-release ", "pre-release ")
_FEED_FIELDS = ("title", "published", "updated")


# ---------------------------------------------------------------------------
# Atom feed
# ---------------------------------------------------------------------------


def extract_tag_from_title(title: str) -> Optional[str]:
    """Find the release tag in a feed entry title.

    A leading ``Release `` / ``Pre-release `` prefix is stripped and the
    remainder returned. Otherwise the first whitespace-separated token that
    is a semantic version (after trimming trailing punctuation and a
    leading ``v``) is returned.

    Examples:
        >>> extract_tag_from_title("Release 16.6.6")
        '16.6.6'
        >>> extract_tag_from_title("14.5.0: Require Frida >= 17.5.0")
        '14.5.0'
        >>> extract_tag_from_title("Bug fixes")
    """
    title = title.strip()

    for prefix in _TITLE_PREFIXES:
        if title.startswith(prefix):
            return title[len(prefix):].strip()

    for token in title.split():
        token = token.strip()
        while token and not (token[-1].isalnum() or token[-1] in ".-+"):
            token = token[:-1]
        if token.startswith("v"):
            token = token[1:]
        if try_parse_semver(token) is not None:
            return token

    return None


def _is_prerelease_title(title: str) -> bool:
    lowered = title.lower()
    return "pre-release" in lowered or "prerelease" in lowered


def parse_feed_events(
    events: Iterable[MarkupEvent],
    include_prerelease: bool = False,
) -> List[Release]:
    """Extract releases from an Atom feed token stream.

    Per ``<entry>``, the tag comes from a ``<link>`` whose ``href`` contains
    ``/tag/`` and otherwise from the title; the timestamp is ``<published>``
    falling back to ``<updated>``. Entries with an unusable tag or
    timestamp are skipped.

    Args:
        events: Output of :func:`~fridamgr.core.markup.tokenize_xml`.
        include_prerelease: Keep pre-release entries.

    Returns:
        Deduplicated releases ordered by publish time.
    """
    releases: List[Release] = []

    in_entry = False
    current_field: Optional[str] = None
    buffer: List[str] = []
    values: Dict[str, str] = {}
    tag_from_link: Optional[str] = None

    for event in events:
        if event.is_start("entry"):
            in_entry = True
            current_field = None
            values = {}
            tag_from_link = None
            continue

        if not in_entry:
            continue

        if event.kind == START:
            if event.tag in _FEED_FIELDS:
                current_field = event.tag
                buffer = []
            elif event.tag == "link" and tag_from_link is None:
                href = event.get("href", "") or ""
                if "/tag/" in href:
                    tag_from_link = href.rsplit("/tag/", 1)[1]

        elif event.kind == TEXT:
            if current_field is not None and event.tag == current_field:
                buffer.append(event.text)

        elif event.kind == END:
            if event.tag == current_field:
                values[current_field] = "".join(buffer).strip()
                current_field = None
            elif event.tag == "entry":
                in_entry = False
                release = _entry_release(values, tag_from_link, include_prerelease)
                if release is not None:
                    releases.append(release)

    return dedup_releases(releases)


def _entry_release(
    values: Dict[str, str],
    tag_from_link: Optional[str],
    include_prerelease: bool,
) -> Optional[Release]:
    title = values.get("title", "")

    if not include_prerelease and _is_prerelease_title(title):
        logger.debug("Skipping pre-release entry %r", title)
        return None

    published_at = parse_timestamp(values.get("published") or values.get("updated"))
    if published_at is None:
        logger.debug("Skipping entry %r without a usable timestamp", title)
        return None

    tag = tag_from_link or extract_tag_from_title(title)
    release = Release.from_tag(tag, published_at)
    if release is None:
        logger.debug("Skipping entry %r: tag %r is not a semantic version", title, tag)
        return None

    if not include_prerelease and release.is_prerelease:
        return None

    return release


# ---------------------------------------------------------------------------
# Paginated listing
# ---------------------------------------------------------------------------


@dataclass
class ListingPage:
    """Releases found on one listing page.

    Attributes:
        releases: Releases that passed the pre-release filter.
        sections: Number of release sections seen before filtering.
        next_href: Raw ``href`` of the next-page link, if any.
    """

    releases: List[Release] = field(default_factory=list)
    sections: int = 0
    next_href: Optional[str] = None


def _has_rel_next(event: MarkupEvent) -> bool:
    return "next" in (event.get("rel", "") or "").lower().split()


def parse_listing_events(
    owner: str,
    repo: str,
    events: Iterable[MarkupEvent],
    include_prerelease: bool = False,
) -> ListingPage:
    """Extract releases and the next-page link from a listing token stream.

    Each top-level ``<section>`` yields at most one release: the timestamp
    comes from its first ``<relative-time datetime>``, the tag from an
    ``/{owner}/{repo}/tree/<tag>`` link, falling back to
    ``/{owner}/{repo}/releases/tag/<tag>``.

    The next page is ``<a rel="next" href>``, or ``<link rel="next" href>``
    when no such anchor exists.
    """
    prefix = f"/{re.escape(owner)}/{re.escape(repo)}"
    tree_re = re.compile(prefix + r"/tree/([^\"?#<>\s]+)")
    tag_re = re.compile(prefix + r"/releases/tag/([^\"?#<>\s]+)")

    page = ListingPage()
    next_from_anchor: Optional[str] = None
    next_from_link: Optional[str] = None

    depth = 0
    datetime_attr: Optional[str] = None
    tree_tag: Optional[str] = None
    release_tag: Optional[str] = None

    for event in events:
        if event.kind == START:
            if event.tag == "section":
                if depth == 0:
                    datetime_attr = tree_tag = release_tag = None
                depth += 1
                continue

            href = event.get("href")
            if href and _has_rel_next(event):
                if event.tag == "a" and next_from_anchor is None:
                    next_from_anchor = href
                elif event.tag == "link" and next_from_link is None:
                    next_from_link = href

            if depth == 0:
                continue

            if event.tag == "relative-time" and datetime_attr is None:
                datetime_attr = event.get("datetime")

            if href:
                if tree_tag is None:
                    match = tree_re.search(href)
                    if match:
                        tree_tag = match.group(1)
                if release_tag is None:
                    match = tag_re.search(href)
                    if match:
                        release_tag = match.group(1)

        elif event.kind == END and event.tag == "section" and depth > 0:
            depth -= 1
            if depth:
                continue

            page.sections += 1
            release = Release.from_tag(tree_tag or release_tag, parse_timestamp(datetime_attr))
            if release is None:
                logger.debug(
                    "Skipping listing section (tag=%r, datetime=%r)",
                    tree_tag or release_tag,
                    datetime_attr,
                )
                continue
            if not include_prerelease and release.is_prerelease:
                continue
            page.releases.append(release)

    page.next_href = next_from_anchor or next_from_link
    return page


def normalize_github_href(href: str) -> str:
    """Absolutize a GitHub ``href``.

    Raises:
        ParseError: ``href`` is neither a GitHub URL nor a root-relative path.

    Example:
        >>> normalize_github_href("/frida/frida/releases?page=2")
        'https://github.com/frida/frida/releases?page=2'
    """
    href = href.strip()
    if href.startswith(GITHUB_BASE_URL + "/"):
        return href
    if href.startswith("/"):
        return GITHUB_BASE_URL + href
    raise ParseError(f"Unexpected next-page href format: {href}", record=href)


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class ReleaseFeedFetcher:
    """Fetch and merge GitHub releases from the Atom feed and the listing.

    Args:
        transport: Object implementing
            :class:`~fridamgr.core.interfaces.ReleaseTransport`.
        max_pages: Hard cap on listing pages followed per repository.
        page_delay: Seconds awaited between two listing pages.

    Attributes:
        degradations: One record per source failure that was absorbed
            because the other source succeeded.
    """

    def __init__(
        self,
        transport: ReleaseTransport,
        *,
        max_pages: int = MAX_LISTING_PAGES,
        page_delay: float = LISTING_PAGE_DELAY,
    ) -> None:
        self.transport = transport
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.degradations: List[SourceDegradation] = []

    async def fetch_feed_releases(
        self,
        owner: str,
        repo: str,
        include_prerelease: bool = False,
    ) -> List[Release]:
        """Read the Atom feed of ``owner/repo``.

        Raises:
            NetworkError: The feed could not be fetched.
            ParseError: GitHub answered with HTML, or the XML is malformed.
        """
        url = GITHUB_RELEASES_ATOM.format(owner=owner, repo=repo)
        document = await self.transport.fetch_text(url)

        if looks_like_html(document):
            raise ParseError(f"Expected Atom XML from {url}, got HTML", source=url)

        releases = parse_feed_events(tokenize_xml(document, source=url), include_prerelease)
        logger.debug("Feed %s yielded %d release(s)", url, len(releases))
        return releases

    async def fetch_listing_releases(
        self,
        owner: str,
        repo: str,
        include_prerelease: bool = False,
    ) -> List[Release]:
        """Walk the paginated releases listing of ``owner/repo``.

        Stops on a page without release sections, a missing next link, a
        next link equal to the current page, or after ``max_pages`` pages.

        Raises:
            NetworkError: A page could not be fetched.
            ParseError: A page is not HTML, or the next link is unusable.
        """
        url = GITHUB_RELEASES_HTML.format(owner=owner, repo=repo)
        collected: List[Release] = []

        for page_number in range(1, self.max_pages + 1):
            document = await self.transport.fetch_text(url)
            if not looks_like_html(document):
                raise ParseError(
                    f"Expected HTML from {url}, got non-HTML response", source=url
                )

            page = parse_listing_events(
                owner, repo, tokenize_html(document), include_prerelease
            )
            logger.debug(
                "Listing page %d of %s/%s: %d release(s)",
                page_number,
                owner,
                repo,
                len(page.releases),
            )
            if page.sections == 0:
                break
            collected.extend(page.releases)

            if page.next_href is None:
                break
            next_url = normalize_github_href(page.next_href)
            if next_url == url:
                break
            url = next_url

            await asyncio.sleep(self.page_delay)
        else:
            logger.warning(
                "Stopped after %d listing pages for %s/%s", self.max_pages, owner, repo
            )

        return dedup_releases(collected)

    async def fetch_releases(
        self,
        owner: str,
        repo: str,
        include_prerelease: bool = False,
    ) -> List[Release]:
        """Return every known release of ``owner/repo``, oldest first.

        The feed is tried first, then the listing. If the listing fails the
        feed result is returned when non-empty; if the feed fails the
        listing result is returned. Either way the failure is recorded in
        :attr:`degradations`. When the listing fails and the feed produced
        nothing, the listing error propagates.
        """
        feed_releases: List[Release] = []
        feed_error: Optional[FridaMgrError] = None

        try:
            feed_releases = await self.fetch_feed_releases(owner, repo, include_prerelease)
        except FridaMgrError as exc:
            feed_error = exc
            logger.debug("Feed unavailable for %s/%s: %s", owner, repo, exc)

        try:
            listing_releases = await self.fetch_listing_releases(
                owner, repo, include_prerelease
            )
        except FridaMgrError as exc:
            if not feed_releases:
                raise
            self._degrade("listing", owner, repo, exc)
            return feed_releases

        if feed_error is not None:
            self._degrade("feed", owner, repo, feed_error)

        return dedup_releases(feed_releases + listing_releases)

    def _degrade(self, source: str, owner: str, repo: str, error: Exception) -> None:
        record = SourceDegradation(source=source, owner=owner, repo=repo, error=str(error))
        self.degradations.append(record)
        logger.warning(
            "Release %s for %s/%s failed, continuing with the other source: %s",
            source,
            owner,
            repo,
            error,
        )
