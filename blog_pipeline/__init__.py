from __future__ import annotations

from .compress import CompressionSettings, compress_image
from .config import load_config
from .config_schema import AppConfig
from .errors import ApiError, ConfigError, ImageDecodeError, UploadRejectedError
from .headings import extract_toc, index_headings
from .normalize import normalize_payload, normalize_post
from .post import HeadingEntry, ImageFile, Post
from .render import render_article, render_cards
from .sanitize import sanitize_html
from .text import preview_text, reading_time_minutes

__all__ = [
    "ApiError",
    "AppConfig",
    "CompressionSettings",
    "ConfigError",
    "HeadingEntry",
    "ImageDecodeError",
    "ImageFile",
    "Post",
    "UploadRejectedError",
    "compress_image",
    "extract_toc",
    "index_headings",
    "load_config",
    "normalize_payload",
    "normalize_post",
    "preview_text",
    "reading_time_minutes",
    "render_article",
    "render_cards",
    "sanitize_html",
]
