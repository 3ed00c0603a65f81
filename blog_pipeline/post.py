from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class Post:
    """A canonical blog entry, built fresh from one backend payload item."""

    id: str
    slug: str = ""
    title: str = ""
    author: str = ""
    category: str = "Uncategorized"
    date: str = ""
    content: str = ""

    images: Sequence[str] = ()
    videos: Sequence[str] = ()

    @property
    def cover_image(self) -> str | None:
        return self.images[0] if self.images else None


@dataclass(frozen=True)
class HeadingEntry:
    level: int
    text: str
    id: str

    @property
    def indent(self) -> int:
        # h1 has no indent marker, h3 has two.
        return self.level - 1


@dataclass(frozen=True)
class ImageFile:
    """An in-memory file selected for upload."""

    name: str
    data: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)
