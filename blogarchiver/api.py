"""Tumblr API client – signed requests fetched under exponential backoff."""

from __future__ import annotations

import logging
import random
import time
from contextlib import contextmanager
from typing import Callable, Iterator

import httpx

from .config import BackoffConfig, TumblrConfig
from .exceptions import FetchError
from .models import FeedKind

logger = logging.getLogger("archiver.api")


class ExponentialBackoff:
    """Randomized exponential backoff bounded by total elapsed time."""

    def __init__(
        self,
        cfg: BackoffConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.cfg = cfg or BackoffConfig()
        self._clock = clock
        self._rand = rand
        self.reset()

    def reset(self) -> None:
        self._interval = self.cfg.initial_interval
        self._started = self._clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    def next_delay(self) -> float | None:
        """Seconds to wait before the next attempt, or None to give up."""
        delta = self.cfg.randomization_factor * self._interval
        low = self._interval - delta
        delay = low + self._rand() * (2 * delta)
        self._interval = min(self._interval * self.cfg.multiplier, self.cfg.max_interval)
        if self.elapsed + delay > self.cfg.max_elapsed_time:
            return None
        return delay


class RequestSigner:
    """Builds ready-to-send API requests, auth and client headers included."""

    def __init__(self, cfg: TumblrConfig) -> None:
        self.cfg = cfg

    def headers(self) -> dict[str, str]:
        return {
            "accept": "*/*",
            "x-s-id-enabled": "true",
            "x-yuser-agent": self.cfg.yuser_agent,
            "x-version": self.cfg.client_version,
            "di": self.cfg.device_info,
            "user-agent": self.cfg.user_agent,
        }

    def sign(self, kind: FeedKind, handle: str, offset: int, limit: int) -> httpx.Request:
        url = f"{self.cfg.api_base}/blog/{handle}.tumblr.com/{kind.path}"
        params = {
            "api_key": self.cfg.api_key,
            "limit": str(limit),
            "offset": str(offset),
            "reblog_info": "true",
        }
        return httpx.Request("GET", url, params=params, headers=self.headers())


class FeedClient:
    """Fetches raw feed pages.  Retries until the backoff policy gives up."""

    def __init__(
        self,
        cfg: TumblrConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cfg = cfg or TumblrConfig.from_env()
        self.signer = RequestSigner(self.cfg)
        self._sleep = sleep
        self._clock = clock
        self._client = httpx.Client(
            timeout=self.cfg.timeout,
            follow_redirects=True,
            transport=transport,
        )

    def _send_with_backoff(self, build: Callable[[], httpx.Request]) -> httpx.Response:
        backoff = ExponentialBackoff(self.cfg.backoff, clock=self._clock)
        attempt = 0
        while True:
            attempt += 1
            request = build()
            try:
                resp = self._client.send(request, stream=True)
            except httpx.TransportError as exc:
                logger.warning("Attempt %d failed for %s: %s", attempt, request.url, exc)
                err: httpx.HTTPError = exc
            else:
                if resp.is_success:
                    return resp
                resp.close()
                logger.warning(
                    "Attempt %d failed for %s: HTTP %d", attempt, request.url, resp.status_code
                )
                err = httpx.HTTPStatusError(
                    f"HTTP {resp.status_code}", request=request, response=resp
                )
            delay = backoff.next_delay()
            if delay is None:
                logger.warning("Giving up on %s after %d attempts", request.url, attempt)
                raise err
            self._sleep(delay)

    @contextmanager
    def open_page(self, kind: FeedKind, handle: str, offset: int) -> Iterator[httpx.Response]:
        """Yield a streaming 2xx response for one page of the feed."""
        try:
            resp = self._send_with_backoff(
                lambda: self.signer.sign(kind, handle, offset, self.cfg.page_size)
            )
        except httpx.HTTPError as exc:
            raise FetchError(handle, offset, exc) from exc
        logger.debug("Requested %s", resp.request.url)
        try:
            yield resp
        finally:
            resp.close()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> FeedClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
