"""Configuration and environment settings for the archiver."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .models import Collection, FeedKind


@dataclass(frozen=True)
class BackoffConfig:
    """Exponential backoff for metadata requests."""
    initial_interval: float = 0.5
    multiplier: float = 1.5
    randomization_factor: float = 0.5
    max_interval: float = 60.0
    max_elapsed_time: float = 15 * 60.0


@dataclass(frozen=True)
class TumblrConfig:
    """Tumblr v2 API configuration.  Mimics the iOS client's headers."""
    api_base: str = "https://api-http2.tumblr.com/v2"
    api_key: str = ""
    page_size: int = 20
    timeout: float = 30.0
    media_timeout: float = 120.0
    user_agent: str = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"
    yuser_agent: str = "YMobile/1.0 (com.tumblr.tumblr/11.7.1; iOS/11.3.1;; iPhone8,1; Apple;;; 1334x750;)"
    client_version: str = "iPhone/11.7.1/117100/11.3.1/tumblr"
    device_info: str = "DI/1.0 (262; 02; [WIFI])"
    backoff: BackoffConfig = field(default_factory=BackoffConfig)

    @classmethod
    def from_env(cls) -> TumblrConfig:
        return cls(
            api_base=os.getenv("TUMBLR_API_BASE", "https://api-http2.tumblr.com/v2"),
            api_key=os.getenv("TUMBLR_API_KEY", ""),
        )


@dataclass(frozen=True)
class ArchiverConfig:
    api: TumblrConfig = field(default_factory=TumblrConfig.from_env)
    workers: int = 4
    save_media: bool = True
    global_media: bool = False
    skip_reblogs: bool = False
    likes: bool = False
    output_root: Path = Path(".")
    queue_size: int = 0  # 0 = unbounded

    @property
    def feed_kind(self) -> FeedKind:
        return FeedKind.LIKES if self.likes else FeedKind.POSTS

    @property
    def media_enabled(self) -> bool:
        return self.save_media and self.workers > 0

    @property
    def global_media_dir(self) -> Path:
        return self.output_root / "media"

    def collection(self, handle: str) -> Collection:
        root = self.output_root / handle
        media_dir = self.global_media_dir if self.global_media else root / "media"
        return Collection(handle=handle, root=root, media_dir=media_dir)
