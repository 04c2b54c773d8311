"""Content handlers run against every fetched document."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import TYPE_CHECKING, Callable, Protocol

from .errors import CrawlerError
from .extractors import extract_images, extract_links
from .images import ImagePipeline
from .queues import EnqueueResult
from .types import ParsedDocument, QueueItem

if TYPE_CHECKING:
    from .session import CrawlSession


LOGGER = logging.getLogger(__name__)


class ContentHandler(Protocol):
    name: str

    def handle(self, item: QueueItem[ParsedDocument]) -> None: ...


class LinkHandler:
    """Push every outbound link back onto the frontier one level deeper.

    Scope, depth, robots and dedup are all decided by the fetch side.
    """

    name = "links"

    def __init__(self, enqueue: Callable[[QueueItem[str]], EnqueueResult]) -> None:
        self._enqueue = enqueue

    def handle(self, item: QueueItem[ParsedDocument]) -> None:
        session = item.session
        links = extract_links(item.payload)
        queued = 0
        for link in links:
            if session.canceled:
                return
            result = self._enqueue(QueueItem(payload=link, session=session, depth=item.depth + 1))
            if result.accepted:
                queued += 1
        session.stats.increment("links_discovered", len(links))
        LOGGER.debug("%s: queued %d/%d links", item.payload.url, queued, len(links))


class ImageHandler:
    """Submit each unseen image on the page to the image pool as its own task."""

    name = "images"

    def __init__(self, pipeline: ImagePipeline, executor: Executor) -> None:
        self.pipeline = pipeline
        self.executor = executor

    def handle(self, item: QueueItem[ParsedDocument]) -> None:
        session = item.session
        for url in extract_images(item.payload):
            if session.canceled:
                return
            if not session.mark_image_visited(url):
                continue

            session.task_started()
            try:
                self.executor.submit(self._process_one, url, session)
            except RuntimeError:
                session.task_finished()
                LOGGER.warning("Image pool is shut down, dropping %s", url)
                return

    def _process_one(self, url: str, session: "CrawlSession") -> None:
        try:
            if session.canceled:
                return
            outcome = self.pipeline.process(url, session.domain)
            session.stats.increment(outcome.value)
        except CrawlerError as exc:
            session.stats.increment("images_failed")
            LOGGER.warning("Image %s dropped: %s", url[:200], exc)
        except Exception:
            session.stats.increment("images_failed")
            LOGGER.exception("Unexpected failure processing image %s", url[:200])
        finally:
            session.task_finished()


__all__ = [
    "ContentHandler",
    "ImageHandler",
    "LinkHandler",
]
