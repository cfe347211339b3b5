from __future__ import annotations

import pytest

from fridamgr.exceptions import ParseError
from fridamgr.core.markup import (
    END,
    START,
    TEXT,
    MarkupEvent,
    looks_like_html,
    tokenize_html,
    tokenize_xml,
)

ATOM = """
<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xml:lang="en-US">
  <entry>
    <title>Release 16.6.6</title>
    <link rel="alternate" type="text/html" href="https://github.com/frida/frida/releases/tag/16.6.6"/>
  </entry>
</feed>
"""


@pytest.mark.unit
class TestTokenizeXml:
    """Tests for tokenize_xml."""

    def test_namespaces_stripped(self) -> None:
        events = tokenize_xml(ATOM)
        tags = {event.tag for event in events}

        assert "entry" in tags
        assert not any(tag.startswith("{") for tag in tags)

    def test_text_precedes_end(self) -> None:
        events = tokenize_xml(ATOM)
        index = next(i for i, e in enumerate(events) if e.is_end("title"))

        assert events[index - 1] == MarkupEvent(TEXT, "title", text="Release 16.6.6")

    def test_attributes_on_start(self) -> None:
        link = next(e for e in tokenize_xml(ATOM) if e.is_start("link"))

        assert link.get("href") == "https://github.com/frida/frida/releases/tag/16.6.6"
        assert link.get("missing", "default") == "default"

    def test_namespaced_attribute_names(self) -> None:
        feed = next(e for e in tokenize_xml(ATOM) if e.is_start("feed"))
        assert feed.get("lang") == "en-US"

    def test_entities_decoded(self) -> None:
        events = tokenize_xml("<title>14.5.0: Require Frida &gt;= 17.5.0</title>")
        text = [e.text for e in events if e.kind == TEXT]

        assert text == ["14.5.0: Require Frida >= 17.5.0"]

    def test_malformed_raises(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            tokenize_xml("<feed><entry></feed>", source="https://example.org/x.atom")

        assert exc_info.value.source == "https://example.org/x.atom"


@pytest.mark.unit
class TestTokenizeHtml:
    """Tests for tokenize_html."""

    def test_events_in_order(self) -> None:
        events = tokenize_html('<section><a href="/x">16.6.6</a></section>')

        assert [(e.kind, e.tag) for e in events] == [
            (START, "section"),
            (START, "a"),
            (TEXT, "a"),
            (END, "a"),
            (END, "section"),
        ]

    def test_self_closing_emits_end(self) -> None:
        events = tokenize_html('<relative-time datetime="2025-12-15T21:16:36Z"/>')

        assert events[0].get("datetime") == "2025-12-15T21:16:36Z"
        assert events[1] == MarkupEvent(END, "relative-time")

    def test_unbalanced_markup_tolerated(self) -> None:
        events = tokenize_html("<div><p>unterminated <b>bold</div>")
        assert events[-1] == MarkupEvent(END, "div")

    def test_text_attributed_to_innermost_open_tag(self) -> None:
        events = tokenize_html('<p><link rel="next" href="/p2">after</p>')
        text = next(e for e in events if e.kind == TEXT)

        assert text.tag == "link"
        assert text.text == "after"

    def test_charrefs_converted(self) -> None:
        events = tokenize_html("<p>a &amp; b</p>")
        assert [e.text for e in events if e.kind == TEXT] == ["a & b"]


@pytest.mark.unit
class TestLooksLikeHtml:
    @pytest.mark.parametrize(
        "document,expected",
        [
            ("<!DOCTYPE html><html></html>", True),
            ("  <html lang='en'>", True),
            ("<body></body></html>", True),
            ('<?xml version="1.0"?><feed/>', False),
            ("{}", False),
        ],
    )
    def test_detection(self, document: str, expected: bool) -> None:
        assert looks_like_html(document) is expected
