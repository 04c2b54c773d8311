"""Core type definitions for the crawler pipeline.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, Mapping, TypeVar

if TYPE_CHECKING:
    from bs4 import BeautifulSoup

    from .session import CrawlSession


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]

T = TypeVar("T")


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for manifests/JSONL."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SessionState(str, Enum):
    """Lifecycle of a crawl session."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"
    TERMINATED = "terminated"


@dataclass(frozen=True, slots=True)
class ProxyInfo:
    host: str
    port: int

    def as_requests_proxies(self) -> dict[str, str]:
        address = f"http://{self.host}:{self.port}"
        return {"http": address, "https": address}

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def parse_proxy(value: str) -> ProxyInfo:
    """Parse `host:port` into a ProxyInfo."""

    raw = (value or "").strip()
    host, sep, port_text = raw.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Proxy must be host:port, got {value!r}")
    try:
        port = int(port_text)
    except ValueError as exc:
        raise ValueError(f"Invalid proxy port in {value!r}") from exc
    if not 0 < port < 65536:
        raise ValueError(f"Proxy port out of range in {value!r}")
    return ProxyInfo(host=host, port=port)


@dataclass(frozen=True, slots=True)
class RobotsRules:
    """Disallowed path prefixes and crawl-delay parsed from robots.txt."""

    disallowed_paths: frozenset[str] = frozenset()
    crawl_delay_ms: int | None = None


@dataclass(frozen=True, slots=True)
class ParsedDocument:
    """A fetched HTML page with its parse tree."""

    url: str
    soup: "BeautifulSoup"
    base_url: str = ""

    @property
    def base_uri(self) -> str:
        return self.base_url or self.url


@dataclass(frozen=True, slots=True)
class QueueItem(Generic[T]):
    """Unit of work flowing through the frontier and document queues."""

    payload: T
    session: "CrawlSession"
    depth: int


@dataclass(frozen=True, slots=True)
class CompressionResult:
    compressed_size: int
    path: str
    quality: float


@dataclass(frozen=True, slots=True)
class ImageRecord:
    """Persisted metadata for one compressed image."""

    original_url: str
    path: str
    original_size: int
    compressed_size: int
    created_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "original_url": self.original_url,
            "path": self.path,
            "original_size": self.original_size,
            "compressed_size": self.compressed_size,
            "created_at": self.created_at,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ImageRecord":
        return cls(
            original_url=str(payload["original_url"]),
            path=str(payload["path"]),
            original_size=int(payload["original_size"]),
            compressed_size=int(payload["compressed_size"]),
            created_at=str(payload.get("created_at") or utc_now_iso()),
        )


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """Persisted snapshot of a crawl session, used to resume by domain."""

    session_id: str
    start_url: str
    domain: str
    status: SessionState = SessionState.ACTIVE
    visited_urls: tuple[str, ...] = ()
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "session_id": self.session_id,
            "start_url": self.start_url,
            "domain": self.domain,
            "status": self.status.value,
            "visited_urls": list(self.visited_urls),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "SessionRecord":
        return cls(
            session_id=str(payload["session_id"]),
            start_url=str(payload["start_url"]),
            domain=str(payload["domain"]),
            status=SessionState(str(payload.get("status", SessionState.ACTIVE.value))),
            visited_urls=tuple(str(url) for url in payload.get("visited_urls") or ()),
            created_at=str(payload.get("created_at") or utc_now_iso()),
            updated_at=str(payload.get("updated_at") or utc_now_iso()),
        )


__all__ = [
    "CompressionResult",
    "ImageRecord",
    "JSONDict",
    "JSONValue",
    "ParsedDocument",
    "ProxyInfo",
    "QueueItem",
    "RobotsRules",
    "SessionRecord",
    "SessionState",
    "parse_proxy",
    "utc_now_iso",
]
