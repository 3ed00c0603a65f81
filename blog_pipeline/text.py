from __future__ import annotations

import html as html_lib
import math
import re
from typing import Any

DEFAULT_WORDS_PER_MINUTE = 200
DEFAULT_PREVIEW_WORDS = 50
ELLIPSIS = "…"

# Tag body; quoted attribute values may contain ">".
_TAG_BODY = r"""(?:"[^"]*"|'[^']*'|[^"'<>])*"""
_TAG_RE = re.compile(rf"<{_TAG_BODY}>")
_WS_RE = re.compile(r"\s+")

_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_CLOSE_RE = re.compile(r"</(?:p|div|h[1-6]|li|blockquote)\s*>", re.IGNORECASE)
_LI_OPEN_RE = re.compile(rf"<li\b{_TAG_BODY}>", re.IGNORECASE)
# Dropped without whitespace; anchors keep only their visible text.
_INLINE_TAG_RE = re.compile(
    rf"</?(?:a|span|strong|em|b|i|u|s|mark|code|sub|sup|small|abbr|del|ins)\b{_TAG_BODY}>",
    re.IGNORECASE,
)
_ANGLE_RE = re.compile(r"[<>]")


def count_words(content: Any) -> int:
    if not isinstance(content, str):
        return 0
    return len(_TAG_RE.sub(" ", content).split())


def reading_time_minutes(content: Any, *, words_per_minute: int = DEFAULT_WORDS_PER_MINUTE) -> int:
    """
    Estimated minutes to read, rounded half up and never below 1.

    Tags count as word breaks; 450 words at 200 wpm is 2 minutes.
    """
    wpm = max(1, int(words_per_minute))
    minutes = math.floor(count_words(content) / wpm + 0.5)
    return max(1, minutes)


def plain_text(html: Any) -> str:
    """Flatten rich HTML into one line of readable text."""
    if not isinstance(html, str) or not html:
        return ""

    text = _BR_RE.sub(" ", html)
    text = _BLOCK_CLOSE_RE.sub("\n", text)
    text = _LI_OPEN_RE.sub("- ", text)
    text = _INLINE_TAG_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = html_lib.unescape(text)
    # Decoded &lt;/&gt; and unterminated tags must not leak markup into previews.
    text = _ANGLE_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def preview_text(
    html: Any,
    max_words: int = DEFAULT_PREVIEW_WORDS,
    *,
    ellipsis: str = ELLIPSIS,
) -> str:
    if max_words <= 0:
        return ""

    text = plain_text(html)
    words = text.split(" ") if text else []
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + ellipsis
