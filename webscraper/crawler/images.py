"""Image fetch strategies and the fetch -> filter -> compress -> persist pipeline."""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Protocol, Sequence
from urllib.parse import unquote, unquote_to_bytes

import requests

from .compression import JpegCompressor
from .constants import (
    DEFAULT_IMAGE_TIMEOUT_SECONDS,
    DEFAULT_MIN_IMAGE_BYTES,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_TEMPLATE_VALUE,
    TEMPLATE_PLACEHOLDER_RE,
    USER_AGENTS,
)
from .errors import InvalidDataUri
from .http import ThreadLocalSessions, random_user_agent
from .storage import ImageStore
from .types import ImageRecord


LOGGER = logging.getLogger(__name__)


class ImageFetchStrategy(Protocol):
    def supports(self, url: str) -> bool: ...

    def fetch(self, url: str) -> bytes | None: ...


class DataUriStrategy:
    """Decode inline `data:` URIs (base64 or percent-encoded)."""

    def supports(self, url: str) -> bool:
        return url[:5].lower() == "data:"

    def fetch(self, url: str) -> bytes | None:
        header, sep, payload = url.partition(",")
        if not sep:
            raise InvalidDataUri(f"data URI has no payload separator: {url[:64]!r}")

        if header.lower().endswith(";base64"):
            try:
                return base64.b64decode("".join(payload.split()), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise InvalidDataUri(f"Corrupt base64 payload: {exc}") from exc
        return unquote_to_bytes(payload)


def prepare_image_url(url: str) -> str:
    """Percent-decode the URL and drop its query string."""

    decoded = unquote(url)
    return decoded.split("?", maxsplit=1)[0]


class HttpImageStrategy:
    """Plain HTTP(S) download; never raises on network failure."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_IMAGE_TIMEOUT_SECONDS,
        user_agents: Sequence[str] = USER_AGENTS,
        sessions: ThreadLocalSessions | None = None,
    ) -> None:
        self.timeout = timeout
        self.user_agents = tuple(user_agents)
        self._sessions = sessions or ThreadLocalSessions()

    def supports(self, url: str) -> bool:
        return True

    def fetch(self, url: str) -> bytes | None:
        return self.download(prepare_image_url(url))

    def download(self, url: str) -> bytes | None:
        try:
            response = self._sessions.get().get(
                url,
                headers={"User-Agent": random_user_agent(self.user_agents)},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            LOGGER.warning("Image download failed for %s: %s", url, exc)
            return None

        if response.status_code != 200:
            LOGGER.warning("Image download for %s returned HTTP %d", url, response.status_code)
            return None
        return response.content

    def close(self) -> None:
        self._sessions.close()


class TemplateUrlStrategy:
    """URLs carrying `{placeholder}` segments get a fixed default substituted."""

    def __init__(
        self,
        http: HttpImageStrategy,
        *,
        default_value: str = DEFAULT_TEMPLATE_VALUE,
    ) -> None:
        self.http = http
        self.default_value = default_value

    def supports(self, url: str) -> bool:
        return "{" in url and "}" in url

    def fetch(self, url: str) -> bytes | None:
        resolved, count = TEMPLATE_PLACEHOLDER_RE.subn(self.default_value, url)
        if count == 0:
            LOGGER.warning("No template variables resolved in %s", url)
            return None
        return self.http.download(resolved)


class ImageOutcome(str, Enum):
    COMPRESSED = "images_compressed"
    SKIPPED_CACHED = "images_skipped_cached"
    SKIPPED_SMALL = "images_skipped_small"
    SKIPPED_STORED = "images_skipped_stored"
    FETCH_FAILED = "images_fetch_failed"


def default_strategies(
    *,
    timeout: float = DEFAULT_IMAGE_TIMEOUT_SECONDS,
    user_agents: Sequence[str] = USER_AGENTS,
    template_default_value: str = DEFAULT_TEMPLATE_VALUE,
) -> list[ImageFetchStrategy]:
    """Ordered strategies; the first one that supports a URL handles it."""

    http = HttpImageStrategy(timeout=timeout, user_agents=user_agents)
    return [
        DataUriStrategy(),
        TemplateUrlStrategy(http, default_value=template_default_value),
        http,
    ]


class ImagePipeline:
    """Fetch one image, skip small or known ones, compress, and record it."""

    def __init__(
        self,
        store: ImageStore,
        *,
        output_dir: str | Path = DEFAULT_OUTPUT_DIR,
        compressor: JpegCompressor | None = None,
        strategies: Sequence[ImageFetchStrategy] | None = None,
        min_image_bytes: int = DEFAULT_MIN_IMAGE_BYTES,
    ) -> None:
        self.store = store
        self.output_dir = Path(output_dir)
        self.compressor = compressor or JpegCompressor()
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.min_image_bytes = min_image_bytes

        self._processed_lock = threading.Lock()
        self._processed: set[str] = set()

    def fetch_bytes(self, url: str) -> bytes | None:
        for strategy in self.strategies:
            if strategy.supports(url):
                return strategy.fetch(url)
        return None

    def is_processed(self, url: str) -> bool:
        with self._processed_lock:
            return url in self._processed

    def process(self, url: str, domain: str) -> ImageOutcome:
        """Run one image through the pipeline.

        Raises `InvalidDataUri` / `ImageDecodeError` for malformed payloads;
        the caller contains those to this image.
        """

        if self.is_processed(url):
            return ImageOutcome.SKIPPED_CACHED

        data = self.fetch_bytes(url)
        if data is None:
            LOGGER.warning("No image data for %s", url)
            return ImageOutcome.FETCH_FAILED

        if len(data) < self.min_image_bytes:
            LOGGER.debug("Skipping small image %s (%d bytes)", url, len(data))
            return ImageOutcome.SKIPPED_SMALL

        if self.store.exists_by_original_url(url):
            return ImageOutcome.SKIPPED_STORED

        result = self.compressor.compress_and_save(data, self.output_dir / domain)
        saved = self.store.save_image(
            ImageRecord(
                original_url=url,
                path=result.path,
                original_size=len(data),
                compressed_size=result.compressed_size,
            )
        )

        with self._processed_lock:
            self._processed.add(url)

        if not saved:
            # Another task recorded this URL first.
            Path(result.path).unlink(missing_ok=True)
            return ImageOutcome.SKIPPED_STORED

        LOGGER.info(
            "Saved image %s: %d -> %d bytes (quality %.2f)",
            url,
            len(data),
            result.compressed_size,
            result.quality,
        )
        return ImageOutcome.COMPRESSED

    def close(self) -> None:
        """Close strategies holding HTTP sessions; shared ones are closed once."""

        closed: set[int] = set()
        for strategy in self.strategies:
            for target in (strategy, getattr(strategy, "http", None)):
                close = getattr(target, "close", None)
                if close is None or id(target) in closed:
                    continue
                closed.add(id(target))
                close()


__all__ = [
    "DataUriStrategy",
    "HttpImageStrategy",
    "ImageFetchStrategy",
    "ImageOutcome",
    "ImagePipeline",
    "TemplateUrlStrategy",
    "default_strategies",
    "prepare_image_url",
]
