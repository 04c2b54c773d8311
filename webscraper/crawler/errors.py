"""Crawler exception hierarchy and fault classification."""

from __future__ import annotations

from enum import Enum


class FaultKind(str, Enum):
    """Whether a failed attempt is worth retrying."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class CrawlerError(Exception):
    """Base class for all crawler errors."""


class InvalidUrl(CrawlerError, ValueError):
    """URL is malformed or lacks a scheme/host."""


class FetchError(CrawlerError):
    """One fetch attempt failed."""

    kind: FaultKind = FaultKind.PERMANENT

    def __init__(self, url: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Timeouts, connection resets, throttling: retry with backoff."""

    kind = FaultKind.TRANSIENT


class PermanentFetchError(FetchError):
    """Not found, bad request, wrong content: never retried."""

    kind = FaultKind.PERMANENT


class InvalidDataUri(CrawlerError, ValueError):
    """A `data:` URI has no payload separator or a corrupt payload."""


class ImageDecodeError(CrawlerError):
    """Image bytes could not be decoded by Pillow."""


def classify_fault(exc: BaseException) -> FaultKind:
    """Map an exception to a retry classification."""

    if isinstance(exc, FetchError):
        return exc.kind
    return FaultKind.PERMANENT


__all__ = [
    "CrawlerError",
    "FaultKind",
    "FetchError",
    "ImageDecodeError",
    "InvalidDataUri",
    "InvalidUrl",
    "PermanentFetchError",
    "TransientFetchError",
    "classify_fault",
]
