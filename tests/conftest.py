import io
import os
import threading
from unittest.mock import MagicMock

import pytest
from PIL import Image

from webscraper.crawler import CrawlConfig, CrawlSession
from webscraper.crawler.fetcher import parse_document


def make_response(status_code=200, body=b"<html><body></body></html>", content_type="text/html; charset=utf-8", url=None):
    """Build a requests-like response mock."""
    response = MagicMock()
    response.status_code = status_code
    response.content = body
    response.text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    response.headers = {"Content-Type": content_type} if content_type else {}
    response.url = url
    return response


def noise_png_bytes(size=600):
    """Incompressible RGB noise saved as PNG (well over 200 KiB at 600x600)."""
    img = Image.frombytes("RGB", (size, size), os.urandom(size * size * 3))
    out = io.BytesIO()
    img.save(out, format="PNG")
    return out.getvalue()


def solid_bmp_bytes(size=600):
    img = Image.new("RGB", (size, size), color=(200, 30, 30))
    out = io.BytesIO()
    img.save(out, format="BMP")
    return out.getvalue()


class FakeFetcher:
    """Serves HTML from a dict keyed by normalized URL and records every call."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, url, session):
        with self._lock:
            self.calls.append(url)
        html = self.pages.get(url)
        if html is None:
            return None
        return parse_document(url, html)

    def close(self):
        pass


@pytest.fixture
def make_session():
    """Factory for sessions scoped to example.com."""
    def _make(**kwargs):
        kwargs.setdefault("seed_url", "http://example.com")
        kwargs.setdefault("domain", "example.com")
        return CrawlSession(**kwargs)
    return _make


@pytest.fixture
def small_config(tmp_path):
    """Config with tiny pools and tmp directories."""
    return CrawlConfig(
        fetch_workers=2,
        process_workers=2,
        handler_workers=1,
        image_workers=1,
        state_dir=str(tmp_path / "state"),
        output_dir=str(tmp_path / "images"),
    )


@pytest.fixture
def noise_png():
    return noise_png_bytes()
