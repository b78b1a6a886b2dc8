"""Local disk layout – metadata snapshots and media files."""

from __future__ import annotations

import logging
import os
import posixpath
from pathlib import Path
from typing import BinaryIO, Iterable
from urllib.parse import urlsplit

from .exceptions import StorageSetupError
from .models import FeedKind, MediaJob

logger = logging.getLogger("archiver.storage")


def ensure_dir(path: Path) -> None:
    """Create path and its parents; an existing directory is fine."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageSetupError(f"cannot create directory {path}: {exc}") from exc


def snapshot_path(root: Path, kind: FeedKind, offset: int) -> Path:
    return root / kind.snapshot_name(offset)


def write_snapshot(path: Path, chunks: Iterable[bytes]) -> bytes:
    """Write chunks to path (create or truncate) and return everything written.

    The body is copied to disk and into memory in one pass, so the bytes that
    get parsed are exactly the bytes that were persisted.
    """
    buf = bytearray()
    try:
        with path.open("wb") as f:
            for chunk in chunks:
                f.write(chunk)
                buf += chunk
    except OSError as exc:
        raise StorageSetupError(f"cannot write {path}: {exc}") from exc
    return bytes(buf)


def media_filename(url: str) -> str:
    """Final path segment of the URL, ignoring query and fragment."""
    name = posixpath.basename(urlsplit(url).path)
    if name in ("", ".", ".."):
        return ""
    return name


def media_path(job: MediaJob) -> Path | None:
    name = media_filename(job.url)
    if not name:
        return None
    return job.collection.media_dir / name


def open_exclusive(path: Path) -> BinaryIO:
    """Open path for writing only if nobody created it before.

    Raises FileExistsError when it already exists; that is how a finished
    download is recognised on re-runs.
    """
    fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY | getattr(os, "O_BINARY", 0), 0o666)
    return os.fdopen(fd, "wb")


def discard(path: Path) -> None:
    """Best-effort removal of a partially written file."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove partial file %s: %s", path, exc)
