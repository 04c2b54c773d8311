"""Link and image discovery over parsed HTML documents."""

from __future__ import annotations

from urllib.parse import urljoin

from .constants import CSS_URL_RE
from .types import ParsedDocument
from .url import is_image_link, resolve_url


def _dedup(urls) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            out.append(url)
    return out


def _resolve_image_src(base_url: str, src: str | None) -> str | None:
    """Resolve an image reference; `data:` URIs pass through untouched."""

    if src is None:
        return None
    candidate = src.strip()
    if not candidate:
        return None
    if candidate.lower().startswith("data:"):
        return candidate
    try:
        absolute = urljoin(base_url, candidate)
    except ValueError:
        return None
    if not absolute.lower().startswith(("http://", "https://")):
        return None
    return absolute


def extract_links(document: ParsedDocument) -> list[str]:
    """Absolute anchor hrefs in document order, excluding direct image links."""

    links = []
    for anchor in document.soup.find_all("a", href=True):
        resolved = resolve_url(document.base_uri, anchor.get("href"))
        if resolved and not is_image_link(resolved):
            links.append(resolved)
    return _dedup(links)


def extract_img_sources(document: ParsedDocument) -> list[str]:
    return _dedup(
        _resolve_image_src(document.base_uri, img.get("src"))
        for img in document.soup.find_all("img", src=True)
    )


def extract_css_images(document: ParsedDocument) -> list[str]:
    """`url(...)` references in inline style attributes and `<style>` blocks."""

    css_chunks: list[str] = []
    for element in document.soup.find_all(style=True):
        css_chunks.append(str(element.get("style") or ""))
    for style in document.soup.find_all("style"):
        css_chunks.append(style.get_text() or "")

    found = []
    for chunk in css_chunks:
        for match in CSS_URL_RE.finditer(chunk):
            found.append(_resolve_image_src(document.base_uri, match.group(1)))
    return _dedup(found)


def extract_anchor_images(document: ParsedDocument) -> list[str]:
    found = []
    for anchor in document.soup.find_all("a", href=True):
        resolved = resolve_url(document.base_uri, anchor.get("href"))
        if resolved and is_image_link(resolved):
            found.append(resolved)
    return _dedup(found)


def extract_images(document: ParsedDocument) -> list[str]:
    """All image URLs: `<img src>`, CSS `url(...)`, then image-valued anchors."""

    return _dedup(
        [
            *extract_img_sources(document),
            *extract_css_images(document),
            *extract_anchor_images(document),
        ]
    )


__all__ = [
    "extract_anchor_images",
    "extract_css_images",
    "extract_images",
    "extract_img_sources",
    "extract_links",
]
