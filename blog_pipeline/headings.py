from __future__ import annotations

import html as html_lib
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from .post import HeadingEntry

FALLBACK_SLUG = "section"

# Attribute grammar: a name, then optionally = and a quoted or bare value.
# Quoted values may contain ">".
_ATTR_NAME = r"""[^\s"'>/=]+"""
_ATTR_VALUE = r"""(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'>]+))?"""
_ATTR_RE = re.compile(rf"\s+(?P<name>{_ATTR_NAME}){_ATTR_VALUE}")

# h1-h4 only. The closing tag is searched separately, per level.
_OPEN_RE = re.compile(
    rf"<h(?P<level>[1-4])(?P<attrs>(?:\s+{_ATTR_NAME}{_ATTR_VALUE})*\s*)>",
    re.IGNORECASE,
)
_CLOSE_RES = {level: re.compile(rf"</h{level}\s*>", re.IGNORECASE) for level in "1234"}
_TAG_RE = re.compile(r"""<(?:"[^"]*"|'[^']*'|[^"'<>])*>""")
_NON_WORD_RE = re.compile(r"\W+", re.ASCII)
_WS_RE = re.compile(r"\s+")


def heading_text(inner_html: str) -> str:
    """Visible heading text: nested tags removed, entities decoded, whitespace collapsed."""
    text = _TAG_RE.sub("", inner_html or "")
    text = html_lib.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def slugify_heading(text: str) -> str:
    slug = _NON_WORD_RE.sub("-", (text or "").lower()).strip("-")
    return slug or FALLBACK_SLUG


@dataclass(frozen=True)
class AnchorState:
    """
    Per-document anchor bookkeeping, threaded through the heading scan.

    counts maps candidate slug -> occurrences seen; used holds every id
    already handed out in the document.
    """

    counts: Mapping[str, int] = field(default_factory=dict)
    used: frozenset[str] = frozenset()

    def assign(self, slug: str) -> tuple[str, "AnchorState"]:
        n = self.counts.get(slug, 0) + 1
        anchor = slug if n == 1 else f"{slug}-{n}"
        while anchor in self.used:
            n += 1
            anchor = f"{slug}-{n}"

        counts = dict(self.counts)
        counts[slug] = n
        return anchor, AnchorState(counts=counts, used=self.used | {anchor})


@dataclass(frozen=True)
class _HeadingMatch:
    start: int
    end: int
    level: int
    attrs: str
    inner: str
    closing: str
    entry: HeadingEntry


def _heading_spans(html: str) -> Iterator[tuple[re.Match[str], re.Match[str]]]:
    """Opening and closing tag matches of each h1-h4 element, left to right."""
    pos = 0
    # Levels with no closing tag left past pos; later openers of them are skipped.
    unclosed: set[str] = set()
    while True:
        opening = _OPEN_RE.search(html, pos)
        if opening is None:
            return
        level = opening.group("level")
        closing = None if level in unclosed else _CLOSE_RES[level].search(html, opening.end())
        if closing is None:
            unclosed.add(level)
            pos = opening.end()
            continue
        yield opening, closing
        pos = closing.end()


def _scan(html: str) -> Iterator[_HeadingMatch]:
    state = AnchorState()
    for opening, closing in _heading_spans(html):
        inner = html[opening.end() : closing.start()]
        text = heading_text(inner)
        anchor, state = state.assign(slugify_heading(text))
        level = int(opening.group("level"))
        yield _HeadingMatch(
            start=opening.start(),
            end=closing.end(),
            level=level,
            attrs=opening.group("attrs"),
            inner=inner,
            closing=closing.group(0),
            entry=HeadingEntry(level=level, text=text, id=anchor),
        )


@dataclass(frozen=True)
class IndexedHtml:
    html: str
    headings: list[HeadingEntry]


def _opening_tag(match: _HeadingMatch) -> str:
    attrs = "".join(
        a.group(0) for a in _ATTR_RE.finditer(match.attrs) if a.group("name").lower() != "id"
    )
    return f'<h{match.level}{attrs} id="{match.entry.id}">'


def index_headings(html: Any) -> IndexedHtml:
    """
    Give every h1-h4 a unique id attribute in a single left-to-right pass.

    Expects sanitized HTML. Other attributes and the inner markup are kept
    as-is; a pre-existing id is replaced.
    """
    if not isinstance(html, str) or not html:
        return IndexedHtml(html="", headings=[])

    parts: list[str] = []
    headings: list[HeadingEntry] = []
    pos = 0

    for match in _scan(html):
        parts.append(html[pos : match.start])
        parts.append(_opening_tag(match))
        parts.append(match.inner)
        parts.append(match.closing)
        headings.append(match.entry)
        pos = match.end

    parts.append(html[pos:])
    return IndexedHtml(html="".join(parts), headings=headings)


def extract_toc(html: Any) -> list[HeadingEntry]:
    """Table of contents in document order; ids match index_headings for the same input."""
    if not isinstance(html, str) or not html:
        return []
    return [match.entry for match in _scan(html)]
