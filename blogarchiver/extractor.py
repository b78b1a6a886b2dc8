"""Turn the posts of one page into media download jobs."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from .config import ArchiverConfig
from .jsontree import JsonTree
from .models import Collection, MediaJob
from .storage import ensure_dir

logger = logging.getLogger("archiver.extractor")

NATIVE_VIDEO_TYPE = "tumblr"


class MediaExtractor:
    def __init__(self, cfg: ArchiverConfig) -> None:
        self.cfg = cfg

    def extract(self, collection: Collection, posts: Iterable[JsonTree]) -> Iterator[MediaJob]:
        """Prepare the collection's media directory and return its jobs.

        Directory setup happens eagerly so a StorageSetupError surfaces before
        any job is handed out.
        """
        if not self.cfg.media_enabled:
            return iter(())
        if not self.cfg.global_media:
            ensure_dir(collection.media_dir)
        return self.iter_jobs(collection, posts)

    def iter_jobs(self, collection: Collection, posts: Iterable[JsonTree]) -> Iterator[MediaJob]:
        """Yield jobs in post order.  Performs no I/O."""
        for post in posts:
            if self.cfg.skip_reblogs and post.exists("reblogged_from_id"):
                continue
            for url in self.media_urls(post):
                if not url:
                    continue
                yield MediaJob(collection, url)

    def media_urls(self, post: JsonTree) -> list[str]:
        """Candidate URLs of one post.  May contain empty strings."""
        kind = post.string_at("type")
        if kind == "photo":
            return [photo.string_at("original_size", "url") for photo in post.array_at("photos")]
        if kind == "video":
            if post.string_at("video_type") != NATIVE_VIDEO_TYPE:
                return []
            url = post.string_at("video_url")
            if not url:
                logger.debug("Native video post %s has no video_url", post.string_at("id_string"))
            return [url]
        if kind == "audio":
            return [post.string_at("audio_url") or post.string_at("audio_source_url")]
        return []
