import pytest

from webscraper.crawler.errors import InvalidUrl
from webscraper.crawler.url import (
    host_from_url,
    is_image_link,
    normalize_domain,
    normalize_url,
    resolve_url,
    same_domain,
)


class TestNormalizeUrl:
    """Canonical URL form used for dedup."""

    def test_lowercases_and_trims(self):
        assert normalize_url("  HTTP://EXAMPLE.COM ") == "http://example.com"

    def test_drops_default_port(self):
        assert normalize_url("http://example.com:80/page") == "http://example.com/page"
        assert normalize_url("https://example.com:443/page") == "https://example.com/page"

    def test_keeps_non_default_port(self):
        assert normalize_url("http://example.com:8080/page") == "http://example.com:8080/page"

    def test_strips_fragment(self):
        assert normalize_url("http://example.com/a#section") == "http://example.com/a"

    def test_resolves_dot_segments(self):
        assert normalize_url("http://example.com/a/./b/../c") == "http://example.com/a/c"

    def test_root_slash_collapses(self):
        assert normalize_url("http://example.com/") == normalize_url("http://example.com")

    def test_preserves_query_and_trailing_slash(self):
        assert normalize_url("http://example.com/dir/?b=2&a=1") == "http://example.com/dir/?b=2&a=1"

    def test_idempotent(self):
        for raw in [
            "HTTP://Example.COM:80/a/../b/?q=1#frag",
            "https://example.com/x/y/",
            "http://[::1]:8080/path",
            "http://example.com?x=1",
            "http://example.com/a/..",
            "http://example.com/./",
            "http://example.com/..",
            "http://example.com/a/../?q=1",
        ]:
            once = normalize_url(raw)
            assert normalize_url(once) == once

    @pytest.mark.parametrize(
        "raw",
        ["http://example.com/a/..", "http://example.com/./", "http://example.com/..", "http://example.com/a/b/../../"],
    )
    def test_dot_segments_reducing_to_root_match_seed(self, raw):
        assert normalize_url(raw) == "http://example.com"

    def test_blank_is_none(self):
        assert normalize_url("") is None
        assert normalize_url("   ") is None
        assert normalize_url(None) is None

    @pytest.mark.parametrize("raw", ["not a url", "/relative/path", "http://", "http://example.com:notaport/"])
    def test_invalid_raises(self, raw):
        with pytest.raises(InvalidUrl):
            normalize_url(raw)


class TestSameDomain:
    def test_subdomain_matches(self):
        assert same_domain("http://sub.example.com", "example.com")

    def test_www_matches(self):
        assert same_domain("https://WWW.Example.com/page", "example.com")

    def test_other_domain_rejected(self):
        assert not same_domain("http://example.org", "example.com")

    def test_suffix_without_dot_rejected(self):
        assert not same_domain("http://notexample.com", "example.com")

    def test_malformed_is_false(self):
        assert not same_domain("http://[bad", "example.com")
        assert not same_domain("", "example.com")


class TestHelpers:
    def test_host_and_domain_normalization(self):
        assert host_from_url("https://WWW.Example.com:8443/a") == "example.com"
        assert normalize_domain("www.example.com") == "example.com"
        assert normalize_domain("https://sub.example.com/x") == "sub.example.com"

    def test_resolve_url_skips_non_navigational(self):
        base = "http://example.com/dir/page"
        assert resolve_url(base, "other") == "http://example.com/dir/other"
        assert resolve_url(base, "/root") == "http://example.com/root"
        assert resolve_url(base, "#top") is None
        assert resolve_url(base, "javascript:void(0)") is None
        assert resolve_url(base, "mailto:a@example.com") is None
        assert resolve_url(base, "ftp://example.com/file") is None

    def test_image_links(self):
        assert is_image_link("http://example.com/a.JPG")
        assert is_image_link("http://example.com/a.png?w=100")
        assert not is_image_link("http://example.com/a.html")
        assert not is_image_link("http://example.com/png")
