"""Markup token streams for release documents.

GitHub publishes releases both as an Atom feed (XML) and as a paginated
HTML listing. Both are reduced here to the same flat stream of
:class:`MarkupEvent` objects (``start`` / ``text`` / ``end`` with the tag
name and its attributes) so that the release parsers in
:mod:`fridamgr.core.release_feed` never deal with the underlying parser.

- XML goes through :class:`xml.etree.ElementTree.XMLPullParser`; namespace
  prefixes are dropped from tag and attribute names.
- HTML goes through the tolerant :class:`html.parser.HTMLParser`; tag names
  are lower-cased and character references decoded.

Typical usage::

    events = tokenize_xml(feed_text, source=url)
    for event in events:
        if event.is_start("entry"):
            ...
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from html.parser import HTMLParser
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from fridamgr.exceptions import ParseError

__all__ = [
    "MarkupEvent",
    "START",
    "END",
    "TEXT",
    "tokenize_xml",
    "tokenize_html",
    "looks_like_html",
]

START = "start"
END = "end"
TEXT = "text"


@dataclass(frozen=True)
class MarkupEvent:
    """One event of a markup token stream.

    Attributes:
        kind: ``"start"``, ``"end"`` or ``"text"``.
        tag: Element name without namespace. For text events,
            the element the text belongs to.
        attributes: Attribute map (start events only).
        text: Character data (text events only).
    """

    kind: str
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    text: str = ""

    def is_start(self, tag: str) -> bool:
        return self.kind == START and self.tag == tag

    def is_end(self, tag: str) -> bool:
        return self.kind == END and self.tag == tag

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return an attribute value."""
        return self.attributes.get(name, default)


def _local_name(name: str) -> str:
    """Strip an ``{namespace}`` prefix from an ElementTree name."""
    if name.startswith("{"):
        return name.rsplit("}", 1)[-1]
    return name


def looks_like_html(document: str) -> bool:
    """Return True if ``document`` appears to be an HTML page.

    Used to detect GitHub answering a feed request with an HTML page, and
    to reject non-HTML answers to listing requests.
    """
    head = document.lstrip()
    return (
        head.startswith("<!DOCTYPE html")
        or head.startswith("<html")
        or "<html" in document
        or "</html>" in document
    )


# ---------------------------------------------------------------------------
# XML
# ---------------------------------------------------------------------------


def tokenize_xml(document: str, *, source: Optional[str] = None) -> List[MarkupEvent]:
    """Tokenize an XML document.

    The full character data of an element (including nested text) is
    emitted as a single ``text`` event immediately before its ``end``
    event. Empty text is not emitted.

    Args:
        document: XML text.
        source: URL or label used in error messages.

    Returns:
        Events in document order.

    Raises:
        ParseError: The document is not well-formed XML.
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    events: List[MarkupEvent] = []

    try:
        parser.feed(document.strip())
        _drain_xml(parser, events)
        parser.close()
        _drain_xml(parser, events)
    except ET.ParseError as exc:
        raise ParseError(
            f"Malformed XML document: {exc}",
            source=source,
            record=document[:200],
        ) from exc

    return events


def _drain_xml(parser: ET.XMLPullParser, events: List[MarkupEvent]) -> None:
    for kind, element in parser.read_events():
        tag = _local_name(element.tag)
        if kind == "start":
            attributes = {_local_name(k): v for k, v in element.attrib.items()}
            events.append(MarkupEvent(START, tag, attributes))
            continue

        text = "".join(element.itertext())
        if text:
            events.append(MarkupEvent(TEXT, tag, text=text))
        events.append(MarkupEvent(END, tag))


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------


class _EventCollector(HTMLParser):
    """Collect :class:`MarkupEvent` objects from ``HTMLParser`` callbacks."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.events: List[MarkupEvent] = []
        self._open: List[str] = []

    def handle_starttag(
        self, tag: str, attrs: List[Tuple[str, Optional[str]]]
    ) -> None:
        attributes = {name: value or "" for name, value in attrs}
        self.events.append(MarkupEvent(START, tag, attributes))
        self._open.append(tag)

    def handle_startendtag(
        self, tag: str, attrs: List[Tuple[str, Optional[str]]]
    ) -> None:
        attributes = {name: value or "" for name, value in attrs}
        self.events.append(MarkupEvent(START, tag, attributes))
        self.events.append(MarkupEvent(END, tag))

    def handle_endtag(self, tag: str) -> None:
        self.events.append(MarkupEvent(END, tag))
        if tag in self._open:
            # Drop everything opened after the matching tag (unclosed voids).
            index = len(self._open) - 1 - self._open[::-1].index(tag)
            del self._open[index:]

    def handle_data(self, data: str) -> None:
        if data:
            current = self._open[-1] if self._open else ""
            self.events.append(MarkupEvent(TEXT, current, text=data))


def tokenize_html(document: str) -> List[MarkupEvent]:
    """Tokenize an HTML document.

    Unbalanced markup never raises. Void elements (``<link>``, ``<img>``)
    produce a ``start`` without a matching ``end``.
    """
    collector = _EventCollector()
    collector.feed(document)
    collector.close()
    return collector.events
