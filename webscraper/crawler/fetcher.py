"""HTML document fetching with proxy rotation, retry, and fault classification."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

import requests
import urllib3
from bs4 import BeautifulSoup

from .constants import (
    DEFAULT_DOCUMENT_TIMEOUT_SECONDS,
    DOCUMENT_ACCEPT_HEADER,
    DOCUMENT_ACCEPT_LANGUAGE,
    HTML_CONTENT_TYPES,
    USER_AGENTS,
)
from .errors import PermanentFetchError, TransientFetchError
from .http import ThreadLocalSessions, random_user_agent
from .retry import RetryPolicy, call_with_retry
from .types import ParsedDocument
from .url import resolve_url

if TYPE_CHECKING:
    from .session import CrawlSession


LOGGER = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 502})


def _is_html(content_type: str | None) -> bool:
    if not content_type:
        # Servers that omit the header are given the benefit of the doubt.
        return True
    normalized = content_type.split(";", maxsplit=1)[0].strip().lower()
    return normalized in HTML_CONTENT_TYPES


def parse_document(url: str, body: bytes | str) -> ParsedDocument:
    """Parse HTML into a ParsedDocument, honoring `<base href>`."""

    soup = BeautifulSoup(body, "lxml")
    base_url = url
    base_tag = soup.find("base", href=True)
    if base_tag is not None:
        resolved = resolve_url(url, base_tag.get("href"))
        if resolved:
            base_url = resolved
    return ParsedDocument(url=url, soup=soup, base_url=base_url)


class DocumentFetcher:
    """Fetch one HTML page for a session.

    One attempt raises `TransientFetchError` or `PermanentFetchError`; the
    retry loop decides whether to try again and returns `None` on failure.
    """

    def __init__(
        self,
        *,
        retry_policy: RetryPolicy | None = None,
        timeout: float = DEFAULT_DOCUMENT_TIMEOUT_SECONDS,
        user_agents: tuple[str, ...] | list[str] = USER_AGENTS,
        sessions: ThreadLocalSessions | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.user_agents = tuple(user_agents)
        self._sessions = sessions or ThreadLocalSessions()
        self._sleep = sleep

    def fetch(self, url: str, session: "CrawlSession") -> ParsedDocument | None:
        return call_with_retry(
            lambda: self.fetch_once(url, session),
            policy=self.retry_policy,
            description=f"GET {url}",
            sleep=self._sleep,
            cancelled=lambda: session.canceled,
        )

    def fetch_once(self, url: str, session: "CrawlSession") -> ParsedDocument:
        proxy = session.next_proxy()
        headers = {
            "User-Agent": random_user_agent(self.user_agents),
            "Accept": DOCUMENT_ACCEPT_HEADER,
            "Accept-Language": DOCUMENT_ACCEPT_LANGUAGE,
        }
        request_kwargs: dict = {
            "headers": headers,
            "timeout": self.timeout,
            "allow_redirects": True,
        }
        if proxy is not None:
            request_kwargs["proxies"] = proxy.as_requests_proxies()
            request_kwargs["verify"] = False
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        http = self._sessions.get()
        try:
            response = http.get(url, **request_kwargs)
        except (
            requests.Timeout,
            requests.ConnectionError,
            requests.exceptions.ChunkedEncodingError,
        ) as exc:
            raise TransientFetchError(url, f"{exc.__class__.__name__}: {exc}") from exc
        except requests.RequestException as exc:
            raise PermanentFetchError(url, f"{exc.__class__.__name__}: {exc}") from exc

        status = response.status_code
        if status in TRANSIENT_STATUS_CODES:
            raise TransientFetchError(url, f"HTTP {status}", status_code=status)
        if not 200 <= status < 300:
            raise PermanentFetchError(url, f"HTTP {status}", status_code=status)

        content_type = response.headers.get("Content-Type")
        if not _is_html(content_type):
            raise PermanentFetchError(url, f"Unsupported content type {content_type!r}", status_code=status)

        try:
            final_url = response.url if isinstance(response.url, str) and response.url else url
            document = parse_document(final_url, response.content)
        except Exception as exc:
            raise PermanentFetchError(url, f"Failed to parse document: {exc}", status_code=status) from exc

        LOGGER.debug("Fetched %s (%d bytes) via %s", url, len(response.content), proxy or "direct")
        return document

    def close(self) -> None:
        self._sessions.close()

    def __enter__(self) -> "DocumentFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "DocumentFetcher",
    "TRANSIENT_STATUS_CODES",
    "parse_document",
]
