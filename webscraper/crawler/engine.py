"""Crawl engine: bounded queues plus fetch, process, handler and image pools."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Sequence
from urllib.parse import urlsplit

from .compression import JpegCompressor
from .config import CrawlConfig
from .constants import QUEUE_POLL_SECONDS
from .errors import InvalidUrl
from .fetcher import DocumentFetcher
from .handlers import ContentHandler, ImageHandler, LinkHandler
from .images import ImagePipeline, default_strategies
from .queues import EnqueueResult, WorkQueue
from .robots import is_allowed
from .session import CrawlSession
from .storage import ImageStore
from .types import ParsedDocument, QueueItem, SessionState
from .url import normalize_url, same_domain


LOGGER = logging.getLogger(__name__)


class AdmitStatus(str, Enum):
    """Why a frontier item was or was not fetched."""

    ADMITTED = "admitted"
    SKIPPED_CANCELED = "skipped_canceled"
    SKIPPED_INVALID_URL = "skipped_invalid_url"
    SKIPPED_DEPTH = "skipped_depth"
    SKIPPED_OUT_OF_SCOPE = "skipped_out_of_scope"
    SKIPPED_ROBOTS = "skipped_robots"
    SKIPPED_SEEN = "skipped_seen"


def admit(item: QueueItem[str]) -> tuple[AdmitStatus, str | None]:
    """Run the admission gates in order; the visited-set insert is always last.

    Returns the status and, when admitted, the normalized URL to fetch.
    """

    session = item.session
    if session.canceled:
        return AdmitStatus.SKIPPED_CANCELED, None

    try:
        url = normalize_url(item.payload)
    except InvalidUrl as exc:
        LOGGER.debug("Rejecting invalid URL: %s", exc)
        return AdmitStatus.SKIPPED_INVALID_URL, None
    if url is None:
        return AdmitStatus.SKIPPED_INVALID_URL, None

    if item.depth > session.max_depth:
        return AdmitStatus.SKIPPED_DEPTH, url
    if urlsplit(url).scheme not in {"http", "https"} or not same_domain(url, session.domain):
        return AdmitStatus.SKIPPED_OUT_OF_SCOPE, url
    if not is_allowed(url, session.robots_rules):
        return AdmitStatus.SKIPPED_ROBOTS, url
    if not session.mark_link_visited(url):
        return AdmitStatus.SKIPPED_SEEN, url
    return AdmitStatus.ADMITTED, url


class CrawlEngine:
    """Owns the frontier and document queues and the worker pools draining them.

    Concurrency model:
    - Fetch workers take URLs off the frontier, gate them, wait for a rate-limit
      permit, fetch, and push parsed documents onto the document queue.
    - Process workers take documents and fan them out to every content handler
      on the handler pool, waiting for all of them and logging each failure.
    - Image tasks run on their own pool so slow downloads never block page work.
    Sessions share the pools; each session guards its own state.
    """

    def __init__(
        self,
        config: CrawlConfig | None = None,
        *,
        image_store: ImageStore | None = None,
        fetcher: DocumentFetcher | None = None,
        image_pipeline: ImagePipeline | None = None,
        handlers: Sequence[ContentHandler] | None = None,
    ) -> None:
        self.config = config or CrawlConfig()

        self.frontier: WorkQueue[str] = WorkQueue(
            "frontier",
            capacity=self.config.queue_capacity,
            overflow=self.config.queue_overflow,
            put_timeout=self.config.queue_put_timeout_seconds,
        )
        self.documents: WorkQueue[ParsedDocument] = WorkQueue(
            "documents",
            capacity=self.config.queue_capacity,
            overflow=self.config.queue_overflow,
            put_timeout=self.config.queue_put_timeout_seconds,
        )

        self.fetcher = fetcher or DocumentFetcher(
            retry_policy=self.config.retry_policy,
            timeout=self.config.document_timeout_seconds,
            user_agents=self.config.user_agents,
        )
        self._owns_fetcher = fetcher is None

        self.image_executor = ThreadPoolExecutor(
            max_workers=self.config.image_workers,
            thread_name_prefix="image-worker",
        )
        self.handler_executor = ThreadPoolExecutor(
            max_workers=self.config.process_workers * self.config.handler_workers,
            thread_name_prefix="handler-worker",
        )

        self._owns_image_pipeline = handlers is None and image_pipeline is None
        if handlers is None:
            if image_pipeline is None:
                if image_store is None:
                    raise ValueError("CrawlEngine needs an image_store or image_pipeline")
                image_pipeline = ImagePipeline(
                    image_store,
                    output_dir=self.config.output_dir,
                    compressor=JpegCompressor(
                        initial_quality=self.config.initial_quality,
                        min_quality=self.config.min_quality,
                        tolerance=self.config.quality_tolerance,
                        max_iterations=self.config.max_quality_iterations,
                    ),
                    strategies=default_strategies(
                        timeout=self.config.image_timeout_seconds,
                        user_agents=self.config.user_agents,
                        template_default_value=self.config.template_default_value,
                    ),
                    min_image_bytes=self.config.min_image_bytes,
                )
            handlers = [
                LinkHandler(self.enqueue),
                ImageHandler(image_pipeline, self.image_executor),
            ]
        self.image_pipeline = image_pipeline
        self.handlers: list[ContentHandler] = list(handlers)

        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        """Start worker threads once; later calls are no-ops."""

        with self._lock:
            if self._threads:
                return
            if self._stopping.is_set():
                raise RuntimeError("CrawlEngine has been shut down")

            for idx in range(self.config.fetch_workers):
                self._threads.append(
                    threading.Thread(
                        target=self._fetch_worker,
                        name=f"fetch-worker-{idx}",
                        daemon=True,
                    )
                )
            for idx in range(self.config.process_workers):
                self._threads.append(
                    threading.Thread(
                        target=self._process_worker,
                        name=f"process-worker-{idx}",
                        daemon=True,
                    )
                )
            for thread in self._threads:
                thread.start()

        LOGGER.info(
            "Crawl engine started: %d fetch workers, %d process workers, %d image workers",
            self.config.fetch_workers,
            self.config.process_workers,
            self.config.image_workers,
        )

    def submit(self, session: CrawlSession) -> Future[SessionState]:
        """Queue the session's seed at depth 0 and return its completion future."""

        self.start()

        # Hold one unit so the session resolves even if the seed is refused.
        session.task_started()
        try:
            result = self.enqueue(QueueItem(payload=session.seed_url, session=session, depth=0))
            if not result.accepted:
                LOGGER.warning("Seed %s for session %s not queued: %s", session.seed_url, session.id, result.status.value)
        finally:
            session.task_finished()
        return session.completion

    def enqueue(self, item: QueueItem[str]) -> EnqueueResult:
        return self.frontier.put(item)

    def shutdown(self, *, wait: bool = True, timeout: float = 5.0) -> None:
        """Stop accepting work, drain the workers, and release pools."""

        self._stopping.set()
        self.frontier.close()
        self.documents.close()

        with self._lock:
            threads, self._threads = list(self._threads), []
        if wait:
            for thread in threads:
                thread.join(timeout=timeout)

        self.handler_executor.shutdown(wait=wait)
        self.image_executor.shutdown(wait=wait, cancel_futures=not wait)
        if self._owns_fetcher:
            self.fetcher.close()
        if self._owns_image_pipeline and self.image_pipeline is not None:
            self.image_pipeline.close()
        LOGGER.info("Crawl engine stopped")

    def __enter__(self) -> "CrawlEngine":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _fetch_worker(self) -> None:
        while True:
            item = self.frontier.take(timeout=QUEUE_POLL_SECONDS)
            if item is None:
                if self._stopping.is_set():
                    return
                continue

            try:
                self._handle_frontier_item(item)
            except Exception:
                LOGGER.exception("Fetch worker failed on %r", item.payload)
            finally:
                self.frontier.done(item)

    def _handle_frontier_item(self, item: QueueItem[str]) -> None:
        session = item.session
        status, url = admit(item)
        session.stats.increment(status.value)
        if status != AdmitStatus.ADMITTED or url is None:
            return

        session.rate_limiter.acquire(session.cancel_event)
        if session.canceled:
            return

        document = self.fetcher.fetch(url, session)
        if document is None:
            session.stats.increment("fetch_failed")
            return
        session.stats.increment("fetch_ok")

        if session.canceled:
            return
        self.documents.put(QueueItem(payload=document, session=session, depth=item.depth))

    def _process_worker(self) -> None:
        while True:
            item = self.documents.take(timeout=QUEUE_POLL_SECONDS)
            if item is None:
                if self._stopping.is_set():
                    return
                continue

            try:
                self._handle_document_item(item)
            except Exception:
                LOGGER.exception("Process worker failed on document")
            finally:
                self.documents.done(item)

    def _handle_document_item(self, item: QueueItem[ParsedDocument]) -> None:
        session = item.session
        if item.payload is None or session is None or session.canceled:
            return

        futures = [
            (handler, self.handler_executor.submit(handler.handle, item))
            for handler in self.handlers
        ]
        for handler, future in futures:
            try:
                future.result()
            except Exception:
                session.stats.increment("handler_failed")
                LOGGER.exception("Handler %s failed for %s", getattr(handler, "name", handler), item.payload.url)
        session.stats.increment("documents_processed")


__all__ = [
    "AdmitStatus",
    "CrawlEngine",
    "admit",
]
