"""
Unit tests for client IP resolution and anonymization.
"""

import pytest

from ai_traffic_logger.config.constants import IP_HASH_LENGTH
from ai_traffic_logger.utils.ip_utils import anonymize_ip, is_valid_ip, resolve_client_ip


class TestAnonymizeIp:
    """Tests for anonymize_ip function."""

    def test_deterministic(self):
        """Same IP and secret should always give the same digest."""
        assert anonymize_ip("203.0.113.7", "secret") == anonymize_ip("203.0.113.7", "secret")

    def test_known_digest(self):
        """Digest should be SHA-256 of the IP followed by the secret."""
        import hashlib

        expected = hashlib.sha256(b"203.0.113.7secret").hexdigest()
        assert anonymize_ip("203.0.113.7", "secret") == expected

    def test_different_ip_different_digest(self):
        """Different IPs should hash differently."""
        assert anonymize_ip("203.0.113.7", "secret") != anonymize_ip("203.0.113.8", "secret")

    def test_different_secret_different_digest(self):
        """Rotating the secret should change the digest."""
        assert anonymize_ip("203.0.113.7", "secret-a") != anonymize_ip("203.0.113.7", "secret-b")

    def test_digest_does_not_contain_ip(self):
        """The raw IP must not appear in the digest."""
        digest = anonymize_ip("203.0.113.7", "secret")

        assert "203.0.113.7" not in digest
        assert len(digest) == IP_HASH_LENGTH

    def test_empty_secret_rejected(self):
        """An empty secret would make the hash reversible by brute force."""
        with pytest.raises(ValueError):
            anonymize_ip("203.0.113.7", "")


class TestIsValidIp:
    """Tests for is_valid_ip function."""

    @pytest.mark.parametrize("value", ["203.0.113.7", "::1", "2001:db8::1"])
    def test_valid(self, value):
        """IPv4 and IPv6 addresses should be accepted."""
        assert is_valid_ip(value)

    @pytest.mark.parametrize("value", ["", None, "unknown", "999.1.1.1", "203.0.113.7:8080"])
    def test_invalid(self, value):
        """Anything that is not a bare IP address should be rejected."""
        assert not is_valid_ip(value)


class TestResolveClientIp:
    """Tests for resolve_client_ip function."""

    def test_cloudflare_header_has_priority(self):
        """CF-Connecting-IP should win over other headers."""
        headers = {
            "CF-Connecting-IP": "198.51.100.1",
            "X-Forwarded-For": "198.51.100.2",
            "X-Real-IP": "198.51.100.3",
        }
        assert resolve_client_ip(headers, "10.0.0.1") == "198.51.100.1"

    def test_forwarded_for_first_entry(self):
        """Only the first entry of a comma-separated list should be used."""
        headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.2, 10.0.0.3"}
        assert resolve_client_ip(headers, "10.0.0.1") == "203.0.113.7"

    def test_header_lookup_ignores_case(self):
        """Header names should match regardless of case."""
        assert resolve_client_ip({"x-real-ip": "198.51.100.3"}) == "198.51.100.3"

    def test_invalid_header_falls_through(self):
        """An invalid header value should not stop resolution."""
        headers = {"X-Forwarded-For": "unknown", "X-Real-IP": "198.51.100.3"}
        assert resolve_client_ip(headers, "10.0.0.1") == "198.51.100.3"

    def test_falls_back_to_remote_addr(self):
        """Without proxy headers, the connection address should be used."""
        assert resolve_client_ip({}, "203.0.113.7") == "203.0.113.7"

    def test_unresolved(self):
        """No valid candidate should return None."""
        assert resolve_client_ip({"X-Forwarded-For": "garbage"}, None) is None
