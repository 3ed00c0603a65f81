from __future__ import annotations

import json
from typing import Any, Callable, Mapping, Sequence

from .post import Post
from .run_log import RunLogger


class _NoMatch:
    def __repr__(self) -> str:
        return "NO_MATCH"


NO_MATCH = _NoMatch()

_WRAPPER_KEYS = ("data", "blogs", "items")
_DEFAULT_CATEGORY = "Uncategorized"


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _coerce_id(value: Any) -> str | None:
    if isinstance(value, str):
        v = value.strip()
        return v if v else None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def _coerce_url_list(value: Any) -> tuple[str, ...]:
    out: list[str] = []
    for item in value:
        url = _coerce_str(item)
        if url:
            out.append(url)
    return tuple(out)


# -----------------------------------------------------------------------------
# Media field decoders. Each returns a tuple of URLs or NO_MATCH.
# -----------------------------------------------------------------------------

MediaDecoder = Callable[[Mapping[str, Any]], "tuple[str, ...] | _NoMatch"]


def _media(item: Mapping[str, Any]) -> Mapping[str, Any]:
    media = item.get("media")
    return media if isinstance(media, Mapping) else {}


def _list_field(getter: Callable[[Mapping[str, Any]], Any]) -> MediaDecoder:
    def decode(item: Mapping[str, Any]) -> tuple[str, ...] | _NoMatch:
        value = getter(item)
        if isinstance(value, list):
            return _coerce_url_list(value)
        return NO_MATCH

    return decode


def _str_field(getter: Callable[[Mapping[str, Any]], Any]) -> MediaDecoder:
    def decode(item: Mapping[str, Any]) -> tuple[str, ...] | _NoMatch:
        value = getter(item)
        if isinstance(value, str):
            url = value.strip()
            return (url,) if url else ()
        return NO_MATCH

    return decode


def _str_or_list_field(getter: Callable[[Mapping[str, Any]], Any]) -> MediaDecoder:
    as_str = _str_field(getter)
    as_list = _list_field(getter)

    def decode(item: Mapping[str, Any]) -> tuple[str, ...] | _NoMatch:
        result = as_str(item)
        if result is NO_MATCH:
            result = as_list(item)
        return result

    return decode


IMAGE_DECODERS: tuple[MediaDecoder, ...] = (
    _list_field(lambda p: _media(p).get("images")),
    _str_or_list_field(lambda p: _media(p).get("image")),
    _list_field(lambda p: p.get("images")),
    _str_field(lambda p: p.get("image")),
    _str_field(lambda p: p.get("img")),
    _str_field(lambda p: p.get("thumbnail")),
    _str_field(lambda p: p.get("featuredImage")),
)

VIDEO_DECODERS: tuple[MediaDecoder, ...] = (
    _list_field(lambda p: _media(p).get("videos")),
    _list_field(lambda p: p.get("videos")),
    _str_field(lambda p: p.get("video")),
)


def _first_match(item: Mapping[str, Any], decoders: Sequence[MediaDecoder]) -> tuple[str, ...]:
    for decode in decoders:
        result = decode(item)
        if not isinstance(result, _NoMatch):
            return result
    return ()


def resolve_images(item: Mapping[str, Any]) -> tuple[str, ...]:
    return _first_match(item, IMAGE_DECODERS)


def resolve_videos(item: Mapping[str, Any]) -> tuple[str, ...]:
    return _first_match(item, VIDEO_DECODERS)


def resolve_content(item: Mapping[str, Any]) -> str:
    """Return the rich-text body as a string; structured values are serialized."""
    content = item.get("content") or item.get("contentPreview") or ""
    if isinstance(content, str):
        return content
    try:
        return json.dumps(content, ensure_ascii=False)
    except (TypeError, ValueError):
        return ""


def _text_field(item: Mapping[str, Any], key: str, default: str = "") -> str:
    value = item.get(key)
    if isinstance(value, str):
        return value
    if value is None:
        return default
    return _coerce_id(value) or default


def normalize_post(item: Any) -> Post:
    """
    Best-effort conversion of one backend record into a canonical Post.

    Never raises: unknown shapes produce an empty post with a synthesized id.
    """
    if not isinstance(item, Mapping):
        item = {}

    title = _text_field(item, "title")
    date = _text_field(item, "date")

    raw_id = _coerce_id(item.get("_id")) or _coerce_id(item.get("id"))
    post_id = raw_id or f"{title or 'untitled'}-{date}"
    slug = _coerce_id(item.get("slug")) or raw_id or ""

    category = item.get("category")
    if not category or not isinstance(category, str):
        category = _DEFAULT_CATEGORY

    return Post(
        id=post_id,
        slug=slug,
        title=title,
        author=_text_field(item, "author"),
        category=category,
        date=date,
        content=resolve_content(item),
        images=resolve_images(item),
        videos=resolve_videos(item),
    )


# -----------------------------------------------------------------------------
# List payload shape detection. Each decoder returns a list or NO_MATCH.
# -----------------------------------------------------------------------------

PayloadDecoder = Callable[[Any], "list[Any] | _NoMatch"]


def _decode_bare_list(payload: Any) -> list[Any] | _NoMatch:
    return list(payload) if isinstance(payload, list) else NO_MATCH


def _decode_wrapped_list(payload: Any) -> list[Any] | _NoMatch:
    if not isinstance(payload, Mapping):
        return NO_MATCH
    for key in _WRAPPER_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return list(value)
    return NO_MATCH


def _decode_single_post(payload: Any) -> list[Any] | _NoMatch:
    if not isinstance(payload, Mapping):
        return NO_MATCH
    if _coerce_id(payload.get("_id")) or _coerce_id(payload.get("id")):
        return [payload]
    return NO_MATCH


def _decode_any_list_value(payload: Any) -> list[Any] | _NoMatch:
    if not isinstance(payload, Mapping):
        return NO_MATCH
    for value in payload.values():
        if isinstance(value, list):
            return list(value)
    return NO_MATCH


PAYLOAD_DECODERS: tuple[PayloadDecoder, ...] = (
    _decode_bare_list,
    _decode_wrapped_list,
    _decode_single_post,
    _decode_any_list_value,
)


def _describe_shape(payload: Any) -> str:
    if isinstance(payload, Mapping):
        keys = sorted(str(k) for k in payload.keys())
        return "mapping(" + ",".join(keys[:10]) + ")"
    return type(payload).__name__


def extract_post_items(
    payload: Any, *, logger: RunLogger | None = None
) -> list[Mapping[str, Any]]:
    """
    Locate the list of post records inside a list-endpoint payload.

    Shapes are tried in PAYLOAD_DECODERS order; an unrecognized payload
    degrades to an empty list and is logged.
    """
    items: list[Any] | None = None
    for decode in PAYLOAD_DECODERS:
        result = decode(payload)
        if not isinstance(result, _NoMatch):
            items = result
            break

    if items is None:
        if logger is not None:
            logger.warning("payload_shape_unrecognized", shape=_describe_shape(payload))
        return []

    out: list[Mapping[str, Any]] = []
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            out.append(item)
        elif logger is not None:
            logger.warning("payload_item_skipped", index=index, item_type=type(item).__name__)
    return out


def normalize_payload(payload: Any, *, logger: RunLogger | None = None) -> list[Post]:
    return [normalize_post(item) for item in extract_post_items(payload, logger=logger)]


def normalize_single(payload: Any, *, logger: RunLogger | None = None) -> Post | None:
    """Normalize a by-identifier response: one object or a one-element list."""
    if isinstance(payload, list):
        payload = payload[0] if payload else None

    if isinstance(payload, Mapping):
        for key in _WRAPPER_KEYS:
            inner = payload.get(key)
            if isinstance(inner, Mapping):
                payload = inner
                break

    if not isinstance(payload, Mapping) or not payload:
        if logger is not None:
            logger.warning("payload_shape_unrecognized", shape=_describe_shape(payload))
        return None

    return normalize_post(payload)
