from unittest.mock import patch

import pytest
import requests

from conftest import make_response
from webscraper.crawler.proxy import ProxyPool, filter_working_proxies
from webscraper.crawler.types import ProxyInfo, parse_proxy


P1 = ProxyInfo("10.0.0.1", 8080)
P2 = ProxyInfo("10.0.0.2", 8080)
P3 = ProxyInfo("10.0.0.3", 3128)


class TestProxyPool:
    def test_round_robin(self):
        pool = ProxyPool([P1, P2])
        assert [pool.select() for _ in range(3)] == [P1, P2, P1]

    def test_empty_pool_returns_none(self):
        pool = ProxyPool()
        assert pool.select() is None
        assert len(pool) == 0


class TestParseProxy:
    def test_host_port(self):
        assert parse_proxy("proxy.local:3128") == ProxyInfo("proxy.local", 3128)

    @pytest.mark.parametrize("raw", ["proxy.local", "proxy.local:abc", ":8080", "host:70000"])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_proxy(raw)


class TestFilterWorkingProxies:
    def test_keeps_only_healthy_in_order(self):
        def fake_get(url, proxies=None, timeout=None, verify=None):
            host = proxies["https"]
            if "10.0.0.2" in host:
                raise requests.ConnectionError("refused")
            if "10.0.0.3" in host:
                return make_response(status_code=503)
            return make_response(status_code=200)

        with patch("webscraper.crawler.proxy.requests.get", side_effect=fake_get) as mock_get:
            working = filter_working_proxies([P1, P2, P3])

        assert working == [P1]
        assert mock_get.call_count == 3
        for call in mock_get.call_args_list:
            assert call.args[0] == "https://www.google.com"
            assert call.kwargs["verify"] is False
            assert call.kwargs["timeout"] == 5.0

    def test_empty_input_skips_network(self):
        with patch("webscraper.crawler.proxy.requests.get") as mock_get:
            assert filter_working_proxies([]) == []
            assert filter_working_proxies(None) == []
        mock_get.assert_not_called()
