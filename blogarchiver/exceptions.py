"""Errors raised while crawling a collection."""

from __future__ import annotations


class ArchiverError(Exception):
    pass


class FetchError(ArchiverError):
    """A metadata page could not be fetched once backoff gave up."""

    def __init__(self, handle: str, offset: int, cause: BaseException | None = None) -> None:
        self.handle = handle
        self.offset = offset
        self.cause = cause
        msg = f"failed to fetch offset {offset} of {handle!r}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class PageParseError(ArchiverError):
    """Metadata bytes are not valid JSON.  Never retried."""


class StorageSetupError(ArchiverError):
    """A directory or metadata file of the archive could not be written."""
