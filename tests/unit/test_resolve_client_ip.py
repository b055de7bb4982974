"""Unit tests for client address resolution and rate-limit identity."""

from unittest.mock import MagicMock, patch

from keygate.dependencies import _is_trusted_proxy, resolve_client_ip, resolve_identity
from tests.conftest import make_session_token


class TestIsTrustedProxy:
    def test_single_ip_match(self):
        assert _is_trusted_proxy("10.0.0.1", ["10.0.0.1"]) is True

    def test_single_ip_no_match(self):
        assert _is_trusted_proxy("10.0.0.2", ["10.0.0.1"]) is False

    def test_cidr_match(self):
        assert _is_trusted_proxy("10.0.0.42", ["10.0.0.0/8"]) is True

    def test_cidr_no_match(self):
        assert _is_trusted_proxy("192.168.1.1", ["10.0.0.0/8"]) is False

    def test_wildcard(self):
        assert _is_trusted_proxy("192.168.1.1", ["*"]) is True
        assert _is_trusted_proxy("unknown", ["*"]) is True

    def test_invalid_address(self):
        assert _is_trusted_proxy("not-an-ip", ["10.0.0.0/8"]) is False

    def test_invalid_entry_logged(self, caplog):
        assert _is_trusted_proxy("10.0.0.1", ["bad-entry"]) is False
        assert "Invalid trusted proxy entry" in caplog.text


def _make_request(client_host="127.0.0.1", headers=None):
    """Create a mock Starlette request."""
    request = MagicMock()
    request.client.host = client_host
    request.headers = dict(headers or {})
    return request


def _settings(trusted, edge_header="cf-connecting-ip"):
    mock_settings = MagicMock()
    mock_settings.trusted_proxies_list = trusted
    mock_settings.EDGE_IP_HEADER = edge_header
    mock_settings.API_KEY_PREFIX = "dpx"
    return mock_settings


class TestResolveClientIp:
    def test_edge_header_wins(self):
        request = _make_request(
            "10.0.0.1",
            {"cf-connecting-ip": "198.51.100.1", "x-forwarded-for": "203.0.113.50"},
        )
        with patch("keygate.dependencies.settings", _settings(["*"])):
            assert resolve_client_ip(request) == "198.51.100.1"

    def test_forwarded_for_first_entry(self):
        request = _make_request("10.0.0.1", {"x-forwarded-for": "203.0.113.50, 10.0.0.1"})
        with patch("keygate.dependencies.settings", _settings(["10.0.0.1"])):
            assert resolve_client_ip(request) == "203.0.113.50"

    def test_socket_address_last(self):
        request = _make_request("10.0.0.1")
        with patch("keygate.dependencies.settings", _settings(["*"])):
            assert resolve_client_ip(request) == "10.0.0.1"

    def test_untrusted_peer_ignores_headers(self):
        request = _make_request(
            "192.168.1.1", {"cf-connecting-ip": "9.9.9.9", "x-forwarded-for": "8.8.8.8"}
        )
        with patch("keygate.dependencies.settings", _settings(["10.0.0.0/8"])):
            assert resolve_client_ip(request) == "192.168.1.1"

    def test_no_trusted_proxies_ignores_headers(self):
        request = _make_request("1.2.3.4", {"x-forwarded-for": "9.9.9.9"})
        with patch("keygate.dependencies.settings", _settings([])):
            assert resolve_client_ip(request) == "1.2.3.4"

    def test_empty_forwarded_entry_falls_back(self):
        request = _make_request("10.0.0.1", {"x-forwarded-for": " , 10.0.0.1"})
        with patch("keygate.dependencies.settings", _settings(["*"])):
            assert resolve_client_ip(request) == "10.0.0.1"

    def test_no_client_returns_unknown(self):
        request = MagicMock()
        request.client = None
        request.headers = {}
        with patch("keygate.dependencies.settings", _settings([])):
            assert resolve_client_ip(request) == "unknown"


class TestResolveIdentity:
    def test_anonymous(self):
        identity = resolve_identity(_make_request("1.2.3.4"))
        assert identity.owner_id is None
        assert identity.address == "1.2.3.4"

    def test_session_token_supplies_owner(self):
        token = make_session_token("owner-a")
        identity = resolve_identity(
            _make_request("1.2.3.4", {"authorization": f"Bearer {token}"})
        )
        assert identity.owner_id == "owner-a"

    def test_invalid_session_token_is_anonymous(self):
        identity = resolve_identity(
            _make_request("1.2.3.4", {"authorization": "Bearer not-a-jwt"})
        )
        assert identity.owner_id is None

    def test_api_key_not_resolved(self):
        identity = resolve_identity(
            _make_request("1.2.3.4", {"authorization": "Bearer dpx_" + "a" * 64})
        )
        assert identity.owner_id is None
