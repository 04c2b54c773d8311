"""Crawler package: config, shared types, sessions, and the crawl engine."""

from .compression import JpegCompressor
from .config import CrawlConfig, load_config, save_config
from .engine import AdmitStatus, CrawlEngine, admit
from .errors import (
    CrawlerError,
    FaultKind,
    FetchError,
    ImageDecodeError,
    InvalidDataUri,
    InvalidUrl,
    PermanentFetchError,
    TransientFetchError,
)
from .fetcher import DocumentFetcher
from .handlers import ContentHandler, ImageHandler, LinkHandler
from .images import (
    DataUriStrategy,
    HttpImageStrategy,
    ImageOutcome,
    ImagePipeline,
    TemplateUrlStrategy,
)
from .manager import SessionManager
from .proxy import ProxyPool, filter_working_proxies
from .queues import EnqueueResult, EnqueueStatus, WorkQueue
from .ratelimit import NoopRateLimiter, RateLimiter, rate_limiter_for_delay
from .retry import RetryPolicy, call_with_retry
from .robots import RobotsGate, is_allowed
from .session import CrawlSession
from .stats import StatsCollector
from .storage import ImageStore, SessionStore, Storage
from .types import (
    CompressionResult,
    ImageRecord,
    ParsedDocument,
    ProxyInfo,
    QueueItem,
    RobotsRules,
    SessionRecord,
    SessionState,
    parse_proxy,
    utc_now_iso,
)
from .url import host_from_url, normalize_domain, normalize_url, resolve_url, same_domain

__all__ = [
    "AdmitStatus",
    "CompressionResult",
    "ContentHandler",
    "CrawlConfig",
    "CrawlEngine",
    "CrawlSession",
    "CrawlerError",
    "DataUriStrategy",
    "DocumentFetcher",
    "EnqueueResult",
    "EnqueueStatus",
    "FaultKind",
    "FetchError",
    "HttpImageStrategy",
    "ImageDecodeError",
    "ImageHandler",
    "ImageOutcome",
    "ImagePipeline",
    "ImageRecord",
    "ImageStore",
    "InvalidDataUri",
    "InvalidUrl",
    "JpegCompressor",
    "LinkHandler",
    "NoopRateLimiter",
    "ParsedDocument",
    "PermanentFetchError",
    "ProxyInfo",
    "ProxyPool",
    "QueueItem",
    "RateLimiter",
    "RetryPolicy",
    "RobotsGate",
    "RobotsRules",
    "SessionManager",
    "SessionRecord",
    "SessionState",
    "SessionStore",
    "StatsCollector",
    "Storage",
    "TemplateUrlStrategy",
    "TransientFetchError",
    "WorkQueue",
    "admit",
    "call_with_retry",
    "filter_working_proxies",
    "host_from_url",
    "is_allowed",
    "load_config",
    "normalize_domain",
    "normalize_url",
    "parse_proxy",
    "rate_limiter_for_delay",
    "resolve_url",
    "same_domain",
    "save_config",
    "utc_now_iso",
]
