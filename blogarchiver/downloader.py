"""Download a single media file to disk."""

from __future__ import annotations

import logging

import httpx

from .config import TumblrConfig
from .models import DownloadOutcome, MediaJob
from .storage import discard, media_path, open_exclusive

logger = logging.getLogger("archiver.downloader")


class MediaDownloader:
    """Fetch media files exactly once per destination filename.

    Downloads are never retried.  Every failure is logged and reported as an
    outcome; nothing is raised to the caller.
    """

    def __init__(
        self,
        cfg: TumblrConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.cfg = cfg or TumblrConfig.from_env()
        self._client = httpx.Client(
            timeout=self.cfg.media_timeout,
            follow_redirects=True,
            transport=transport,
        )

    def download(self, job: MediaJob) -> DownloadOutcome:
        dest = media_path(job)
        if dest is None:
            logger.warning("No file name in media URL %r", job.url)
            return DownloadOutcome.INVALID
        try:
            url = httpx.URL(job.url)
        except (httpx.InvalidURL, ValueError) as exc:  # IDNAError is a ValueError
            logger.warning("Malformed media URL %r: %s", job.url, exc)
            return DownloadOutcome.INVALID

        try:
            f = open_exclusive(dest)
        except FileExistsError:
            logger.debug("Already have %s", dest)
            return DownloadOutcome.EXISTS
        except OSError as exc:
            logger.error("Cannot create %s for %s: %s", dest, job.url, exc)
            return DownloadOutcome.FAILED

        ok = False
        try:
            with f, self._client.stream("GET", url) as resp:
                if not resp.is_success:
                    logger.error("Failed to get media %s: HTTP %d", job.url, resp.status_code)
                    return DownloadOutcome.FAILED
                for chunk in resp.iter_bytes():
                    f.write(chunk)
            ok = True
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            logger.error("Failed to download media %s: %s", job.url, exc)
            return DownloadOutcome.FAILED
        finally:
            # a leftover file would count as downloaded on the next run
            if not ok:
                discard(dest)

        logger.info("Got media: %s", job.url)
        return DownloadOutcome.DOWNLOADED

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> MediaDownloader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
