"""Core archiving logic – orchestrates API → Extractor → Download pool."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

import httpx
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .api import FeedClient
from .config import ArchiverConfig
from .downloader import MediaDownloader
from .exceptions import ArchiverError, FetchError
from .extractor import MediaExtractor
from .jsontree import JsonTree
from .models import Collection, DownloadOutcome, MediaJob, Page
from .storage import ensure_dir, snapshot_path, write_snapshot
from .workers import DownloadPool

logger = logging.getLogger("archiver.core")


class Archiver:
    """Crawls blogs page by page and feeds their media to the download pool."""

    def __init__(
        self,
        cfg: ArchiverConfig | None = None,
        *,
        client: FeedClient | None = None,
        downloader: MediaDownloader | None = None,
    ) -> None:
        self.cfg = cfg or ArchiverConfig()
        self.client = client or FeedClient(self.cfg.api)
        self.downloader = downloader or MediaDownloader(self.cfg.api)
        self.extractor = MediaExtractor(self.cfg)
        self.pool: DownloadPool | None = None
        self._stats_lock = threading.Lock()
        self.stats = {
            "collections": 0,
            "aborted": 0,
            "pages": 0,
            "jobs": 0,
            **{outcome.value: 0 for outcome in DownloadOutcome},
        }

    # ── page fetching ────────────────────────────────────────────

    def fetch_page(self, collection: Collection, offset: int) -> Page:
        """Fetch, persist and parse one page of the collection's feed.

        Raises FetchError once backoff gives up and PageParseError for
        malformed bodies.  A body that fails halfway through surfaces as
        FetchError as well, without another attempt.
        """
        kind = self.cfg.feed_kind
        path = snapshot_path(collection.root, kind, offset)
        with self.client.open_page(kind, collection.handle, offset) as resp:
            try:
                raw = write_snapshot(path, resp.iter_bytes())
            except httpx.HTTPError as exc:
                raise FetchError(collection.handle, offset, exc) from exc
        tree = JsonTree.parse(raw)
        posts = tree.array_at(*kind.posts_key)
        logger.debug("Page %d of %s: %d posts", offset, collection.handle, len(posts))
        return Page(offset=offset, raw=raw, posts=posts)

    # ── crawling ─────────────────────────────────────────────────

    def _enqueue(self, collection: Collection, page: Page) -> int:
        count = 0
        for job in self.extractor.extract(collection, page.posts):
            self._submit(job)
            count += 1
        return count

    def _submit(self, job: MediaJob) -> None:
        if self.pool is None:
            raise RuntimeError("download pool is not running")
        self.pool.submit(job)

    def crawl(self, handle: str, *, on_page: Callable[[Page], None] | None = None) -> bool:
        """Archive one blog.

        Returns True when the feed was exhausted and False when the crawl was
        aborted by a fetch, parse or filesystem error.
        """
        collection = self.cfg.collection(handle)
        self.stats["collections"] += 1
        offset = 0
        try:
            ensure_dir(collection.root)
            while True:
                page = self.fetch_page(collection, offset)
                self.stats["pages"] += 1
                self.stats["jobs"] += self._enqueue(collection, page)
                if on_page is not None:
                    on_page(page)
                if not page.has_more:
                    break
                offset += self.cfg.api.page_size
        except ArchiverError as exc:
            logger.error("Aborting at page %d of %r: %s", offset, handle, exc)
            self.stats["aborted"] += 1
            return False
        logger.info("Finished %r after %d pages", handle, offset // self.cfg.api.page_size + 1)
        return True

    # ── orchestration ────────────────────────────────────────────

    def _record(self, job: MediaJob, outcome: DownloadOutcome) -> None:
        with self._stats_lock:
            self.stats[outcome.value] += 1

    def archive(self, handles: Iterable[str], *, progress: bool = True) -> dict[str, bool]:
        """Archive each blog in turn, downloading media in the background.

        The pool is closed and drained even if crawling is interrupted.
        """
        if self.cfg.media_enabled and self.cfg.global_media:
            ensure_dir(self.cfg.global_media_dir)

        workers = self.cfg.workers if self.cfg.media_enabled else 0
        self.pool = DownloadPool(
            workers,
            self.downloader.download,
            queue_size=self.cfg.queue_size,
            on_outcome=self._record,
        )
        results: dict[str, bool] = {}
        self.pool.start()
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                TextColumn("{task.completed} pages"),
                TimeElapsedColumn(),
                disable=not progress,
            ) as bar:
                for handle in handles:
                    logger.info("Starting archiver on %r", handle)
                    task = bar.add_task(handle, total=None)
                    results[handle] = self.crawl(
                        handle, on_page=lambda _page, task=task: bar.advance(task)
                    )
        finally:
            logger.info("Waiting for media downloads to finish")
            self.pool.close()
        return results

    # ── lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        self.client.close()
        self.downloader.close()

    def __enter__(self) -> Archiver:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
