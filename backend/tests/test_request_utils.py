"""Tests for request utility functions."""

from unittest.mock import MagicMock

from accounts_gate.core.request_utils import _is_valid_ip, get_client_ip

PROXY = "10.0.0.2"


class TestIsValidIP:
    """Tests for _is_valid_ip function."""

    def test_valid_addresses(self):
        assert _is_valid_ip("192.168.1.1") is True
        assert _is_valid_ip("::1") is True
        assert _is_valid_ip("2001:db8::1") is True

    def test_invalid_addresses(self):
        assert _is_valid_ip("") is False
        assert _is_valid_ip("not-an-ip") is False
        assert _is_valid_ip("256.1.1.1") is False
        assert _is_valid_ip("192.168.1.1:8080") is False
        assert _is_valid_ip(" 192.168.1.1") is False


class TestGetClientIP:
    """Tests for get_client_ip function."""

    def _create_mock_request(self, x_real_ip=None, x_forwarded_for=None, client_host=None):
        """Create a mock FastAPI request."""
        request = MagicMock()

        headers = {}
        if x_real_ip is not None:
            headers["X-Real-IP"] = x_real_ip
        if x_forwarded_for is not None:
            headers["X-Forwarded-For"] = x_forwarded_for

        request.headers.get = lambda key, default=None: headers.get(key, default)

        if client_host:
            request.client = MagicMock()
            request.client.host = client_host
        else:
            request.client = None

        return request

    def test_direct_client(self):
        request = self._create_mock_request(client_host="203.0.113.9")

        assert get_client_ip(request, trusted_proxies=set()) == "203.0.113.9"

    def test_no_client(self):
        assert get_client_ip(self._create_mock_request(), trusted_proxies=set()) is None

    def test_forwarded_for_from_trusted_proxy(self):
        request = self._create_mock_request(
            x_forwarded_for="198.51.100.7, 10.0.0.1",
            client_host=PROXY,
        )

        assert get_client_ip(request, trusted_proxies={PROXY}) == "198.51.100.7"

    def test_forwarded_for_from_untrusted_peer_ignored(self):
        """Spoofed headers must not let a client pick its own rate-limit bucket."""
        request = self._create_mock_request(
            x_forwarded_for="198.51.100.7",
            x_real_ip="198.51.100.8",
            client_host="203.0.113.9",
        )

        assert get_client_ip(request, trusted_proxies={PROXY}) == "203.0.113.9"

    def test_real_ip_from_trusted_proxy(self):
        request = self._create_mock_request(x_real_ip=" 198.51.100.8 ", client_host=PROXY)

        assert get_client_ip(request, trusted_proxies={PROXY}) == "198.51.100.8"

    def test_invalid_forwarded_for_falls_back(self):
        request = self._create_mock_request(
            x_forwarded_for="garbage",
            x_real_ip="198.51.100.8",
            client_host=PROXY,
        )

        assert get_client_ip(request, trusted_proxies={PROXY}) == "198.51.100.8"

    def test_invalid_headers_fall_back_to_proxy(self):
        request = self._create_mock_request(
            x_forwarded_for="garbage",
            x_real_ip="also-garbage",
            client_host=PROXY,
        )

        assert get_client_ip(request, trusted_proxies={PROXY}) == PROXY

    def test_trusted_proxies_default_to_settings(self, monkeypatch):
        from accounts_gate.core.config import settings

        monkeypatch.setattr(settings, "trusted_proxy_ips", PROXY)
        request = self._create_mock_request(x_forwarded_for="198.51.100.7", client_host=PROXY)

        assert get_client_ip(request) == "198.51.100.7"
