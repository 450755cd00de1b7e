"""Control endpoint URL validation."""

import ipaddress
from urllib.parse import urlsplit


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def validate_url(url: str) -> bool:
    """
    Accept only https URLs whose host is a domain name.

    Literal IPv4/IPv6 hosts are rejected: a WAN power-control endpoint has
    to be addressed by a stable name. Purely syntactic, no network access.
    """
    if not url:
        return False
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError:
        return False
    if not parts.scheme or parts.scheme.lower() != "https":
        return False
    if not host:
        return False
    return not _is_ip_literal(host)
