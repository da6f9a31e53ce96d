"""
Client IP resolution and anonymization.

The raw address only exists long enough to be hashed; it is never
logged or stored.
"""

import hashlib
import ipaddress
from typing import Mapping, Optional

from ..config.constants import CLIENT_IP_HEADERS


def is_valid_ip(value: Optional[str]) -> bool:
    """
    Check if a string is a syntactically valid IPv4 or IPv6 address.

    Examples:
        >>> is_valid_ip("203.0.113.7")
        True
        >>> is_valid_ip("unknown")
        False
    """
    if not value:
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def anonymize_ip(raw_ip: str, site_secret: str) -> str:
    """
    Hash a client IP with the deployment secret.

    Args:
        raw_ip: Client IP address
        site_secret: Deployment-wide secret appended to the IP before hashing

    Returns:
        64-character hex SHA-256 digest of raw_ip + site_secret

    Raises:
        ValueError: If site_secret is empty
    """
    if not site_secret:
        raise ValueError("site_secret must not be empty")
    return hashlib.sha256(f"{raw_ip}{site_secret}".encode("utf-8")).hexdigest()


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    value = headers.get(name)
    if value is not None:
        return value

    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def resolve_client_ip(
    headers: Mapping[str, str],
    remote_addr: Optional[str] = None,
) -> Optional[str]:
    """
    Resolve the client address from proxy headers or the socket peer.

    Headers are checked in CLIENT_IP_HEADERS order, then remote_addr.
    For comma-separated values only the first entry is used. Candidates
    that are not valid IP addresses are skipped.

    Args:
        headers: Request headers (any key casing)
        remote_addr: Direct connection address

    Returns:
        The resolved IP, or None if no valid address was found
    """
    candidates = [_get_header(headers, name) for name in CLIENT_IP_HEADERS]
    candidates.append(remote_addr)

    for value in candidates:
        if not value:
            continue
        ip = value.split(",")[0].strip()
        if is_valid_ip(ip):
            return ip

    return None
