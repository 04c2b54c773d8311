"""URL normalization, domain matching, and link resolution helpers."""

from __future__ import annotations

import posixpath
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

from .constants import IMAGE_LINK_RE
from .errors import InvalidUrl


SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")
DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_domain(domain_or_url: str) -> str:
    """Normalize a domain (or URL containing one) for matching.

    This strips `www.` and leading/trailing dots and lowercases the host.
    """

    raw = (domain_or_url or "").strip().lower()
    if not raw:
        return ""

    try:
        parsed = urlsplit(raw if "://" in raw else f"//{raw}")
        host = (parsed.hostname or "").strip().lower()
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host.strip(".")


def host_from_url(url: str) -> str:
    """Extract normalized host from URL, or an empty string if it has none."""

    try:
        host = (urlsplit((url or "").strip()).hostname or "").strip().lower()
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host.strip(".")


def _normalize_netloc(parsed_url) -> str:
    host = (parsed_url.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"

    userinfo = ""
    if parsed_url.username:
        userinfo = quote(parsed_url.username, safe="%")
        if parsed_url.password:
            userinfo += ":" + quote(parsed_url.password, safe="%")
        userinfo += "@"

    port = parsed_url.port
    scheme = parsed_url.scheme.lower()
    if port is None or DEFAULT_PORTS.get(scheme) == port:
        return f"{userinfo}{host}"
    return f"{userinfo}{host}:{port}"


def _normalize_path(path: str, query: str) -> str:
    normalized = posixpath.normpath(path or "/")
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    if normalized == "/.":
        normalized = "/"

    if normalized == "/":
        # Root with no query collapses to the bare origin.
        return "/" if query else ""

    if path.endswith("/") and not normalized.endswith("/"):
        normalized += "/"
    return normalized


def normalize_url(url: str | None) -> str | None:
    """Canonicalize an absolute URL for dedup.

    Lower-cases scheme and host, drops the fragment and default ports, and
    resolves dot segments. The query string is kept as-is. Returns `None` for
    blank input and raises `InvalidUrl` when the URL cannot be parsed or has no
    scheme/host.
    """

    if url is None:
        return None
    raw = url.strip()
    if not raw:
        return None

    try:
        parsed = urlsplit(raw)
        if not parsed.scheme or not parsed.hostname:
            raise InvalidUrl(f"URL needs a scheme and host: {raw!r}")
        netloc = _normalize_netloc(parsed)
    except ValueError as exc:
        if isinstance(exc, InvalidUrl):
            raise
        raise InvalidUrl(f"Malformed URL {raw!r}: {exc}") from exc

    path = _normalize_path(parsed.path, parsed.query)
    return urlunsplit((parsed.scheme.lower(), netloc, path, parsed.query, ""))


def same_domain(url: str, domain: str) -> bool:
    """Return True if URL's host is `domain`, `www.domain`, or a subdomain of it."""

    target = (domain or "").strip().lower().strip(".")
    if not target:
        return False

    try:
        host = (urlsplit((url or "").strip()).hostname or "").lower().strip(".")
    except ValueError:
        return False
    if not host:
        return False

    return host == target or host == "www." + target or host.endswith("." + target)


def resolve_url(base_url: str, href: str | None) -> str | None:
    """Resolve a possibly relative link against a base URL.

    Returns `None` for empty, fragment-only, and non-navigational hrefs.
    """

    if href is None:
        return None

    candidate = href.strip()
    if not candidate or candidate.startswith("#"):
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    try:
        absolute = urljoin(base_url, candidate)
        parsed = urlsplit(absolute)
    except ValueError:
        return None

    if parsed.scheme.lower() not in DEFAULT_PORTS or not parsed.netloc:
        return None
    return absolute


def is_image_link(url: str) -> bool:
    """Return True if the URL path ends in a common raster image extension."""

    return bool(IMAGE_LINK_RE.match(url or ""))


__all__ = [
    "SKIP_HREF_PREFIXES",
    "host_from_url",
    "is_image_link",
    "normalize_domain",
    "normalize_url",
    "resolve_url",
    "same_domain",
]
