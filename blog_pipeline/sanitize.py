from __future__ import annotations

import re
import threading
from typing import Any, Iterator

import bleach
from bleach import html5lib_shim
from bleach._vendor.html5lib import getTreeBuilder

ALLOWED_TAGS = frozenset(
    {
        "p", "br", "hr",
        "h1", "h2", "h3", "h4", "h5", "h6",
        "ul", "ol", "li",
        "a", "img",
        "blockquote", "pre", "code",
        "strong", "em", "b", "i", "u", "s", "mark", "span", "div",
        "figure", "figcaption",
        "table", "thead", "tbody", "tr", "th", "td",
    }
)

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "data"})

# Elements whose content must go too, not just the tag.
DROP_WITH_CONTENT = frozenset(
    {
        "script", "style", "iframe", "object", "embed", "noscript", "template",
        "xmp", "noembed", "noframes",
    }
)

_LINK_ATTRS = frozenset({"href", "title", "rel", "target"})
_IMAGE_ATTRS = frozenset({"src", "alt", "title", "width", "height"})
_ANCHORED_HEADINGS = frozenset({"h1", "h2", "h3", "h4"})


def _is_data_uri(value: str) -> bool:
    return value.strip().lower().startswith("data:")


def _allow_link_attr(tag: str, name: str, value: str) -> bool:
    if name == "class":
        return True
    if name not in _LINK_ATTRS:
        return False
    if name == "href" and _is_data_uri(value):
        return False
    return True


def _allow_image_attr(tag: str, name: str, value: str) -> bool:
    if name == "class":
        return True
    if name not in _IMAGE_ATTRS:
        return False
    if name == "src" and _is_data_uri(value):
        return value.strip().lower().startswith("data:image/")
    return True


def _allow_heading_attr(tag: str, name: str, value: str) -> bool:
    if name == "class":
        return True
    return name == "id" and tag in _ANCHORED_HEADINGS


# A per-tag callable replaces the "*" entry for that tag, so each one admits class itself.
ALLOWED_ATTRIBUTES: dict[str, Any] = {
    "*": ["class"],
    "a": _allow_link_attr,
    "img": _allow_image_attr,
    "h1": _allow_heading_attr,
    "h2": _allow_heading_attr,
    "h3": _allow_heading_attr,
    "h4": _allow_heading_attr,
    "th": ["colspan", "rowspan"],
    "td": ["colspan", "rowspan"],
}

SANITIZE_POLICY: dict[str, Any] = {
    "tags": ALLOWED_TAGS,
    "attributes": ALLOWED_ATTRIBUTES,
    "protocols": ALLOWED_PROTOCOLS,
    "strip": True,
    "strip_comments": True,
}

_TAG_TOKENS = frozenset({"StartTag", "EmptyTag", "EndTag"})
_DROP_OPENER_RE = re.compile(
    r"<(?:" + "|".join(sorted(DROP_WITH_CONTENT)) + r")(?![\w-])", re.IGNORECASE
)


class DropContentFilter(html5lib_shim.Filter):
    """Removes DROP_WITH_CONTENT elements and everything nested inside them."""

    def __iter__(self) -> Iterator[dict[str, Any]]:
        depth = 0
        for token in html5lib_shim.Filter.__iter__(self):
            if token["type"] in _TAG_TOKENS and token.get("name") in DROP_WITH_CONTENT:
                if token["type"] == "StartTag":
                    depth += 1
                elif token["type"] == "EndTag" and depth:
                    depth -= 1
                continue
            if depth == 0:
                yield token


class _ContentDropper:
    """
    First pass: parse with every tag kept, so script and style bodies are raw
    text, and serialize the tree without the dropped elements.

    Uses the DOM tree builder: the etree one grows raw text by string
    concatenation, which is quadratic in the number of text chunks.
    """

    def __init__(self) -> None:
        self.parser = html5lib_shim.BleachHTMLParser(
            tags=None,
            strip=False,
            consume_entities=False,
            tree=getTreeBuilder("dom"),
            namespaceHTMLElements=False,
        )
        self.walker = html5lib_shim.getTreeWalker("dom")
        self.serializer = html5lib_shim.BleachHTMLSerializer(
            quote_attr_values="always",
            omit_optional_tags=False,
            escape_lt_in_attrs=True,
            resolve_entities=False,
            sanitize=False,
            alphabetical_attributes=False,
        )

    def drop(self, html: str) -> str:
        dom = self.parser.parseFragment(html)
        return self.serializer.render(DropContentFilter(source=self.walker(dom)))


# bleach parsers hold state and are not thread-safe.
_local = threading.local()


def _cleaner() -> bleach.sanitizer.Cleaner:
    cleaner = getattr(_local, "cleaner", None)
    if cleaner is None:
        cleaner = bleach.sanitizer.Cleaner(**SANITIZE_POLICY)
        _local.cleaner = cleaner
    return cleaner


def _dropper() -> _ContentDropper:
    dropper = getattr(_local, "dropper", None)
    if dropper is None:
        dropper = _ContentDropper()
        _local.dropper = dropper
    return dropper


def sanitize_html(html: Any) -> str:
    """
    Clean author-supplied rich text so it is safe to inject into a page.

    Uses one allow-list policy for every caller. Heading ids survive, so the
    output of the anchor pass can be sanitized again without losing them, and
    a second pass over sanitized output returns it unchanged.
    """
    if not isinstance(html, str) or not html:
        return ""

    if _DROP_OPENER_RE.search(html):
        html = _dropper().drop(html)
    return _cleaner().clean(html)
