"""Per-crawl session state shared by every worker touching that crawl."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future
from typing import Iterable

from .proxy import ProxyPool
from .ratelimit import NoopRateLimiter, RateLimiter, rate_limiter_for_delay
from .stats import StatsCollector
from .types import ProxyInfo, RobotsRules, SessionRecord, SessionState, utc_now_iso


LOGGER = logging.getLogger(__name__)


class CrawlSession:
    """State for one crawl: scope, politeness, dedup sets, and lifecycle.

    - `mark_link_visited` / `mark_image_visited` are atomic test-and-insert.
    - `canceled` only ever goes from False to True.
    - Every queued item or image task holds one unit of `pending`; when the
      count drains to zero the session resolves `completion` with its final state.
    """

    def __init__(
        self,
        *,
        seed_url: str,
        domain: str,
        max_depth: int = 0,
        session_id: str | None = None,
        robots_rules: RobotsRules | None = None,
        user_delay_ms: int = 0,
        proxies: Iterable[ProxyInfo] | None = None,
        visited_urls: Iterable[str] | None = None,
        rate_limiter: RateLimiter | NoopRateLimiter | None = None,
        created_at: str | None = None,
    ) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if user_delay_ms < 0:
            raise ValueError("user_delay_ms must be >= 0")

        self.id = session_id or str(uuid.uuid4())
        self.seed_url = seed_url
        self.domain = domain
        self.max_depth = max_depth
        self.robots_rules = robots_rules
        self.user_delay_ms = user_delay_ms
        self.proxy_pool = ProxyPool(proxies)
        self.created_at = created_at or utc_now_iso()

        self.rate_limiter = rate_limiter or rate_limiter_for_delay(self.effective_delay_ms)
        self.stats = StatsCollector()
        self.completion: Future[SessionState] = Future()

        self._lock = threading.Lock()
        self._visited_links: set[str] = set(visited_urls or ())
        self._visited_images: set[str] = set()
        self._canceled = threading.Event()
        self._terminated = threading.Event()
        self._state = SessionState.ACTIVE
        self._pending = 0
        self._finished = False

    @property
    def effective_delay_ms(self) -> int:
        """robots.txt crawl-delay when positive, else the caller's delay, else 0."""

        if self.robots_rules is not None and (self.robots_rules.crawl_delay_ms or 0) > 0:
            return int(self.robots_rules.crawl_delay_ms or 0)
        if self.user_delay_ms > 0:
            return self.user_delay_ms
        return 0

    def next_proxy(self) -> ProxyInfo | None:
        return self.proxy_pool.select()

    def mark_link_visited(self, url: str) -> bool:
        """Insert URL into the visited-links set; False if it was already there."""

        with self._lock:
            if url in self._visited_links:
                return False
            self._visited_links.add(url)
            return True

    def mark_image_visited(self, url: str) -> bool:
        with self._lock:
            if url in self._visited_images:
                return False
            self._visited_images.add(url)
            return True

    def visited_links(self) -> set[str]:
        with self._lock:
            return set(self._visited_links)

    def visited_images(self) -> set[str]:
        with self._lock:
            return set(self._visited_images)

    def cancel(self) -> None:
        if not self._canceled.is_set():
            LOGGER.info("Session %s canceled", self.id)
        self._canceled.set()

    @property
    def canceled(self) -> bool:
        return self._canceled.is_set()

    @property
    def cancel_event(self) -> threading.Event:
        return self._canceled

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def terminate(self) -> None:
        with self._lock:
            self._state = SessionState.TERMINATED
        self._terminated.set()

    def wait_terminated(self, timeout: float | None = None) -> bool:
        return self._terminated.wait(timeout)

    @property
    def pending(self) -> int:
        with self._lock:
            return self._pending

    def task_started(self) -> None:
        with self._lock:
            self._pending += 1

    def task_finished(self) -> None:
        with self._lock:
            self._pending -= 1
            if self._pending > 0 or self._finished:
                return
            self._finished = True
            self._state = SessionState.CANCELED if self.canceled else SessionState.COMPLETED
            final_state = self._state

        self.stats.finish()
        LOGGER.info(
            "Session %s %s: %d links visited, %d images seen",
            self.id,
            final_state.value,
            len(self.visited_links()),
            len(self.visited_images()),
        )
        self.completion.set_result(final_state)

    @property
    def done(self) -> bool:
        return self.completion.done()

    def to_record(self, status: SessionState | None = None) -> SessionRecord:
        """Snapshot for persistence; status defaults to the current state."""

        current = status or self.state
        if current == SessionState.TERMINATED:
            current = SessionState.CANCELED if self.canceled else SessionState.COMPLETED
        return SessionRecord(
            session_id=self.id,
            start_url=self.seed_url,
            domain=self.domain,
            status=current,
            visited_urls=tuple(sorted(self.visited_links())),
            created_at=self.created_at,
            updated_at=utc_now_iso(),
        )

    def __repr__(self) -> str:
        return (
            f"CrawlSession(id={self.id!r}, domain={self.domain!r}, "
            f"max_depth={self.max_depth}, state={self.state.value})"
        )


__all__ = ["CrawlSession"]
