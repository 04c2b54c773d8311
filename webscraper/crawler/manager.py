"""Session registry: start, stop, and inspect crawls running on one engine."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .config import CrawlConfig
from .engine import CrawlEngine
from .errors import InvalidUrl
from .proxy import filter_working_proxies
from .robots import RobotsGate
from .session import CrawlSession
from .storage import Storage
from .types import ImageRecord, ProxyInfo, SessionState, parse_proxy
from .url import host_from_url, normalize_domain, normalize_url


LOGGER = logging.getLogger(__name__)

ProxyFilter = Callable[..., list[ProxyInfo]]


def _coerce_proxies(proxies: Iterable[ProxyInfo | str] | None) -> list[ProxyInfo]:
    out: list[ProxyInfo] = []
    for proxy in proxies or ():
        out.append(proxy if isinstance(proxy, ProxyInfo) else parse_proxy(str(proxy)))
    return out


class SessionManager:
    """Map session ids to live crawl sessions.

    Starting a crawl resolves the domain, restores an unfinished session for it
    when storage has one, loads robots.txt, health-checks proxies, and hands the
    seed to the engine. A session leaves the registry once it completes or is
    canceled, after its final record is saved.
    """

    def __init__(
        self,
        config: CrawlConfig | None = None,
        *,
        storage: Storage | None = None,
        engine: CrawlEngine | None = None,
        robots_gate: RobotsGate | None = None,
        proxy_filter: ProxyFilter = filter_working_proxies,
    ) -> None:
        self.config = config or CrawlConfig()
        self.storage = storage or Storage(self.config.state_dir)
        self.engine = engine or CrawlEngine(self.config, image_store=self.storage)
        self.robots_gate = robots_gate or RobotsGate(
            timeout=self.config.robots_timeout_seconds,
            user_agent=self.config.robots_user_agent,
        )
        self._proxy_filter = proxy_filter

        self._lock = threading.Lock()
        self._sessions: dict[str, CrawlSession] = {}
        self._final_states: dict[str, SessionState] = {}

    def start_crawl(
        self,
        url: str,
        max_depth: int = 0,
        request_delay_ms: int = 0,
        proxies: Sequence[ProxyInfo | str] | None = None,
    ) -> str:
        """Start crawling from `url` and return the session id."""

        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if request_delay_ms < 0:
            raise ValueError("request_delay_ms must be >= 0")

        seed = normalize_url(url)
        if seed is None:
            raise InvalidUrl("Seed URL is empty")
        domain = host_from_url(seed)
        if not domain:
            raise InvalidUrl(f"Seed URL has no host: {url!r}")

        proxy_list = _coerce_proxies(proxies)

        session_id: str | None = None
        created_at: str | None = None
        visited: list[str] = []
        restored = self.storage.find_active_session(domain)
        if restored is not None:
            with self._lock:
                running = restored.session_id in self._sessions
            if running:
                LOGGER.info("Session %s for %s is still running; starting a new one", restored.session_id, domain)
            else:
                session_id = restored.session_id
                created_at = restored.created_at
                # The seed must be fetchable again so the crawl can re-expand.
                visited = [item for item in restored.visited_urls if item != seed]
                LOGGER.info(
                    "Restoring session %s for %s with %d visited URLs",
                    session_id,
                    domain,
                    len(visited),
                )

        robots_rules = self.robots_gate.fetch_rules(domain)

        working: list[ProxyInfo] = []
        if proxy_list:
            working = self._proxy_filter(
                proxy_list,
                check_url=self.config.proxy_check_url,
                timeout=self.config.proxy_check_timeout_seconds,
            )
            if not working:
                LOGGER.warning("No working proxies for %s; requests go direct", domain)

        session = CrawlSession(
            seed_url=seed,
            domain=domain,
            max_depth=max_depth,
            session_id=session_id,
            robots_rules=robots_rules,
            user_delay_ms=request_delay_ms,
            proxies=working,
            visited_urls=visited,
            created_at=created_at,
        )

        with self._lock:
            self._sessions[session.id] = session
            self._final_states.pop(session.id, None)
        self.storage.save_session(session.to_record(SessionState.ACTIVE))

        LOGGER.info(
            "Starting session %s: seed=%s max_depth=%d delay=%dms proxies=%d",
            session.id,
            seed,
            max_depth,
            session.effective_delay_ms,
            len(working),
        )
        completion = self.engine.submit(session)
        completion.add_done_callback(lambda _future, s=session: self._on_session_done(s))
        return session.id

    def _on_session_done(self, session: CrawlSession) -> None:
        try:
            self.storage.save_session(session.to_record())
        except Exception:
            LOGGER.exception("Failed to save final record for session %s", session.id)
        finally:
            final_state = session.state
            with self._lock:
                self._final_states[session.id] = final_state
                self._sessions.pop(session.id, None)
            session.terminate()

    def stop_crawl(self, session_id: str) -> bool:
        """Cancel a running session; False if no such session is running."""

        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return False
        session.cancel()
        return True

    def get_session(self, session_id: str) -> CrawlSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def active_sessions(self) -> list[CrawlSession]:
        with self._lock:
            return list(self._sessions.values())

    def wait(self, session_id: str, timeout: float | None = None) -> SessionState | None:
        """Block until the session finishes; returns its final state or None on timeout/unknown."""

        with self._lock:
            session = self._sessions.get(session_id)
            final_state = self._final_states.get(session_id)
        if session is None:
            return final_state

        try:
            state = session.completion.result(timeout=timeout)
        except FutureTimeoutError:
            return None
        session.wait_terminated(timeout)
        return state

    def list_images(self, domain: str) -> list[ImageRecord]:
        """Stored images whose source host, or storage folder, matches `domain`."""

        query = normalize_domain(domain)
        if not query:
            return []
        return [
            record
            for record in self.storage.all_images()
            if host_from_url(record.original_url) == query or Path(record.path).parent.name == query
        ]

    def shutdown(self, *, wait: bool = True) -> None:
        for session in self.active_sessions():
            session.cancel()
        self.engine.shutdown(wait=wait)

    def __enter__(self) -> "SessionManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


__all__ = ["SessionManager"]
