from __future__ import annotations

import json
import threading

import httpx
import pytest

from blogarchiver.api import FeedClient
from blogarchiver.archiver import Archiver
from blogarchiver.config import ArchiverConfig, BackoffConfig, TumblrConfig
from blogarchiver.downloader import MediaDownloader

API_BASE = "https://api.test/v2"
MEDIA_HOST = "media.test"


def media_url(name: str) -> str:
    return f"https://{MEDIA_HOST}/{name}"


def photo_post(*urls: str, **extra) -> dict:
    return {
        "type": "photo",
        "photos": [{"original_size": {"url": u}} for u in urls],
        **extra,
    }


def page_body(posts: list[dict], key: str = "posts") -> bytes:
    return json.dumps({"meta": {"status": 200, "msg": "OK"}, "response": {key: posts}}).encode()


class FakeClock:
    """Monotonic clock whose sleep() just moves time forward."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTumblr:
    """MockTransport handler serving blog pages and media files."""

    def __init__(self) -> None:
        self.blogs: dict[str, list[dict]] = {}
        self.media: dict[str, bytes] = {}
        self.failing: set[str] = set()
        self.malformed: set[str] = set()
        self.bodies: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if request.url.host != MEDIA_HOST:
            return self._api(request)
        body = self.media.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    def _api(self, request: httpx.Request) -> httpx.Response:
        # /v2/blog/<handle>.tumblr.com/<posts|likes>
        parts = request.url.path.split("/")
        handle = parts[3].removesuffix(".tumblr.com")
        kind = parts[4]
        if handle in self.failing:
            return httpx.Response(503)
        if handle in self.bodies:
            return httpx.Response(200, content=self.bodies[handle])
        if handle in self.malformed:
            return httpx.Response(200, content=b'{"response": {"posts": [')
        posts = self.blogs.get(handle)
        if posts is None:
            return httpx.Response(404)
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        key = "liked_posts" if kind == "likes" else "posts"
        return httpx.Response(200, content=page_body(posts[offset:offset + limit], key))

    def api_requests(self, handle: str | None = None) -> list[httpx.Request]:
        reqs = [r for r in self.requests if r.url.host != MEDIA_HOST]
        if handle is not None:
            reqs = [r for r in reqs if r.url.path.startswith(f"/v2/blog/{handle}.tumblr.com/")]
        return reqs

    def media_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == MEDIA_HOST]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake() -> FakeTumblr:
    return FakeTumblr()


@pytest.fixture
def transport(fake: FakeTumblr) -> httpx.MockTransport:
    return httpx.MockTransport(fake)


@pytest.fixture
def api_cfg() -> TumblrConfig:
    return TumblrConfig(
        api_base=API_BASE,
        api_key="test-key",
        backoff=BackoffConfig(max_elapsed_time=5.0),
    )


@pytest.fixture
def make_archiver(tmp_path, api_cfg, transport, clock):
    created: list[Archiver] = []

    def make(**overrides) -> Archiver:
        opts = {"workers": 2, "output_root": tmp_path, **overrides}
        cfg = ArchiverConfig(api=api_cfg, **opts)
        a = Archiver(
            cfg,
            client=FeedClient(api_cfg, transport=transport, sleep=clock.sleep, clock=clock),
            downloader=MediaDownloader(api_cfg, transport=transport),
        )
        created.append(a)
        return a

    yield make
    for a in created:
        a.close()
