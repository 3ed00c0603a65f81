from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable

from .api_client import BlogApiClient
from .errors import ApiError
from .headings import index_headings
from .normalize import normalize_payload, normalize_single
from .post import HeadingEntry, Post
from .run_log import RunLogger
from .sanitize import sanitize_html
from .text import DEFAULT_PREVIEW_WORDS, DEFAULT_WORDS_PER_MINUTE, preview_text, reading_time_minutes


@dataclass(frozen=True)
class RenderedArticle:
    post: Post
    html: str
    toc: list[HeadingEntry]
    reading_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "post": _post_dict(self.post),
            "html": self.html,
            "toc": [dict(asdict(h), indent=h.indent) for h in self.toc],
            "reading_minutes": self.reading_minutes,
        }


@dataclass(frozen=True)
class BlogCard:
    post: Post
    preview: str
    reading_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "post": _post_dict(self.post),
            "preview": self.preview,
            "reading_minutes": self.reading_minutes,
        }


def _post_dict(post: Post) -> dict[str, Any]:
    data = asdict(post)
    data["images"] = list(post.images)
    data["videos"] = list(post.videos)
    data["cover_image"] = post.cover_image
    # Full body is carried by RenderedArticle.html; cards only need the preview.
    data.pop("content", None)
    return data


def render_article(
    post: Post, *, words_per_minute: int = DEFAULT_WORDS_PER_MINUTE
) -> RenderedArticle:
    """Sanitize, then anchor headings; TOC and reading time come from the sanitized body."""
    safe_html = sanitize_html(post.content)
    indexed = index_headings(safe_html)
    return RenderedArticle(
        post=post,
        html=indexed.html,
        toc=indexed.headings,
        reading_minutes=reading_time_minutes(safe_html, words_per_minute=words_per_minute),
    )


def render_card(
    post: Post,
    *,
    preview_words: int = DEFAULT_PREVIEW_WORDS,
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
) -> BlogCard:
    safe_html = sanitize_html(post.content)
    return BlogCard(
        post=post,
        preview=preview_text(safe_html, preview_words),
        reading_minutes=reading_time_minutes(safe_html, words_per_minute=words_per_minute),
    )


def render_cards(
    posts: Iterable[Post],
    *,
    preview_words: int = DEFAULT_PREVIEW_WORDS,
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
) -> list[BlogCard]:
    return [
        render_card(p, preview_words=preview_words, words_per_minute=words_per_minute)
        for p in posts
    ]


def load_blog_index(
    client: BlogApiClient,
    *,
    preview_words: int = DEFAULT_PREVIEW_WORDS,
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
    logger: RunLogger | None = None,
) -> list[BlogCard]:
    """Blog list page data. Backend failures degrade to an empty list."""
    try:
        payload = client.fetch_posts_payload()
    except ApiError as e:
        if logger is not None:
            logger.exception("posts_fetch_failed", exc=e, base_url=client.base_url)
        return []

    posts = normalize_payload(payload, logger=logger)
    if logger is not None:
        logger.info("posts_normalized", count=len(posts))
    return render_cards(posts, preview_words=preview_words, words_per_minute=words_per_minute)


def load_article(
    client: BlogApiClient,
    identifier: str,
    *,
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
    logger: RunLogger | None = None,
) -> RenderedArticle | None:
    """Article page data. Returns None ("not found") on backend failure or a missing post."""
    post_log = logger.for_post(identifier) if logger is not None else None
    try:
        payload = client.fetch_post_payload(identifier)
    except ApiError as e:
        if post_log is not None:
            post_log.exception("post_fetch_failed", exc=e)
        return None

    post = normalize_single(payload, logger=logger) if payload is not None else None
    if post is None:
        if post_log is not None:
            post_log.warning("post_not_found")
        return None

    article = render_article(post, words_per_minute=words_per_minute)
    if post_log is not None:
        post_log.info(
            "article_rendered",
            headings=len(article.toc),
            reading_minutes=article.reading_minutes,
        )
    return article
