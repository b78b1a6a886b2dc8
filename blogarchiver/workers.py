"""Fixed-size pool of download threads fed from one FIFO queue."""

from __future__ import annotations

import logging
import queue
import threading
from collections import Counter
from typing import Callable

from .models import DownloadOutcome, MediaJob

logger = logging.getLogger("archiver.workers")

_STOP = object()


class DownloadPool:
    """Run ``download`` for every submitted job on ``workers`` threads.

    ``close()`` is the end-of-input signal: it enqueues one stop marker per
    worker behind the pending jobs and waits for the threads to exit, so
    everything submitted before it is attempted exactly once.
    ``queue_size`` > 0 bounds the queue and makes ``submit`` block while it
    is full.
    """

    def __init__(
        self,
        workers: int,
        download: Callable[[MediaJob], DownloadOutcome],
        *,
        queue_size: int = 0,
        on_outcome: Callable[[MediaJob, DownloadOutcome], None] | None = None,
    ) -> None:
        if workers < 0:
            raise ValueError("workers must be >= 0")
        self.workers = workers
        self._download = download
        self._on_outcome = on_outcome
        self._queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False
        self.outcomes: Counter[DownloadOutcome] = Counter()

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._closed:
            raise RuntimeError("pool already closed")
        if self._threads:
            return
        for i in range(self.workers):
            t = threading.Thread(target=self._run, name=f"download-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        logger.debug("Started %d download workers", self.workers)

    def submit(self, job: MediaJob) -> None:
        if self._closed:
            raise RuntimeError("pool already closed")
        if not self._threads:
            raise RuntimeError("pool has no running workers")
        self._queue.put(job)

    def close(self) -> None:
        """Stop accepting jobs and wait until the queue is drained."""
        if self._closed:
            return
        self._closed = True
        for _ in self._threads:
            self._queue.put(_STOP)
        for t in self._threads:
            t.join()
        logger.debug("Download workers finished: %s", dict(self.outcomes))

    def _record(self, job: MediaJob, outcome: DownloadOutcome) -> None:
        with self._lock:
            self.outcomes[outcome] += 1
        if self._on_outcome is not None:
            self._on_outcome(job, outcome)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            job: MediaJob = item  # type: ignore[assignment]
            try:
                outcome = self._download(job)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Unexpected error downloading %s", job.url)
                outcome = DownloadOutcome.FAILED
            self._record(job, outcome)

    def __enter__(self) -> DownloadPool:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
