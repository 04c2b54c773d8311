"""Default values shared by crawler config, fetchers, and the image pipeline."""

from __future__ import annotations

import re


DEFAULT_FETCH_WORKERS = 10
DEFAULT_PROCESS_WORKERS = 5
DEFAULT_HANDLER_WORKERS = 2
DEFAULT_IMAGE_WORKERS = 4

DEFAULT_QUEUE_CAPACITY = 10_000
DEFAULT_QUEUE_OVERFLOW = "block"
DEFAULT_QUEUE_PUT_TIMEOUT_SECONDS = 30.0
QUEUE_OVERFLOW_POLICIES = ("block", "reject")
QUEUE_POLL_SECONDS = 0.5

DEFAULT_DOCUMENT_TIMEOUT_SECONDS = 30.0
DEFAULT_ROBOTS_TIMEOUT_SECONDS = 10.0
DEFAULT_PROXY_CHECK_TIMEOUT_SECONDS = 5.0
DEFAULT_IMAGE_TIMEOUT_SECONDS = 30.0

DEFAULT_RETRY_ATTEMPTS = 2
DEFAULT_RETRY_INITIAL_DELAY_SECONDS = 2.0
DEFAULT_RETRY_MULTIPLIER = 2.0

DEFAULT_PROXY_CHECK_URL = "https://www.google.com"

DEFAULT_OUTPUT_DIR = "compressed-images"
DEFAULT_STATE_DIR = "crawl-state"

DEFAULT_MIN_IMAGE_BYTES = 200 * 1024
DEFAULT_INITIAL_QUALITY = 0.8
DEFAULT_MIN_QUALITY = 0.1
DEFAULT_QUALITY_TOLERANCE = 0.05
DEFAULT_MAX_QUALITY_ITERATIONS = 10
DEFAULT_TEMPLATE_VALUE = "defaultValue"

ROBOTS_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/112.0.0.0 Safari/537.36"
)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/112.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/15.1 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/110.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/90.0.4430.212 Safari/537.36 Edg/90.0.818.66",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/64.0.3282.140 Safari/537.36 OPR/51.0.2830.55",
    "Mozilla/5.0 (Linux; Android 10; SM-G973F) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/90.0.4430.91 Mobile Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:89.0) Gecko/20100101 Firefox/89.0",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:88.0) Gecko/20100101 Firefox/88.0",
    "Mozilla/5.0 (X11; CrOS x86_64 14588.83.0) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/93.0.4577.85 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.114 Safari/537.36 OPR/77.0.4054.172",
)

DOCUMENT_ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
DOCUMENT_ACCEPT_LANGUAGE = "en-US,en;q=0.5"
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

# Anchors pointing at these extensions are images, not pages.
IMAGE_LINK_RE = re.compile(r"(?i).*\.(png|jpg|jpeg|gif|bmp)(\?.*)?$")
CSS_URL_RE = re.compile(r"""url\(\s*['"]?(.*?)['"]?\s*\)""")
TEMPLATE_PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")


__all__ = [name for name in dir() if name.isupper()]
