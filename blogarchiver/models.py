"""Value types shared by the crawler, extractor and download pool."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .jsontree import JsonTree


class FeedKind(enum.Enum):
    POSTS = "posts"
    LIKES = "likes"

    @property
    def path(self) -> str:
        """API path segment under /blog/<handle>/."""
        return self.value

    @property
    def posts_key(self) -> tuple[str, ...]:
        """Where the post list lives in the API response."""
        if self is FeedKind.LIKES:
            return ("response", "liked_posts")
        return ("response", "posts")

    def snapshot_name(self, offset: int) -> str:
        if self is FeedKind.LIKES:
            return f"likes-{offset}.json"
        return f"{offset}.json"


@dataclass(frozen=True)
class Collection:
    """One blog being archived, with its on-disk locations."""
    handle: str
    root: Path
    media_dir: Path


@dataclass(frozen=True)
class MediaJob:
    collection: Collection
    url: str


@dataclass
class Page:
    offset: int
    raw: bytes
    posts: list[JsonTree] = field(default_factory=list)

    @property
    def has_more(self) -> bool:
        # Pagination ends on the first empty page, never on a short one.
        return len(self.posts) != 0


class DownloadOutcome(enum.Enum):
    DOWNLOADED = "downloaded"
    EXISTS = "exists"
    FAILED = "failed"
    INVALID = "invalid"
