"""Client identity resolution for rate limiting.

Proxies and CDNs put the original client address in various headers. The
candidates are checked in a fixed priority order and the first one holding
a public IP literal wins.
"""

from __future__ import annotations

import ipaddress
from typing import Mapping

FALLBACK_IP = "127.0.0.1"

# Highest priority first; the socket peer address is checked after these.
CLIENT_IP_HEADERS: tuple[str, ...] = (
    "cf-connecting-ip",  # Cloudflare
    "client-ip",
    "x-forwarded-for",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
)


def _first_entry(value: str) -> str:
    # X-Forwarded-For chains list the originating client first.
    return value.split(",", 1)[0].strip()


def is_public_ip(value: str) -> bool:
    """Return True for a syntactically valid, publicly routable IP literal.

    Examples:
        >>> is_public_ip("8.8.8.8")
        True
        >>> is_public_ip("10.0.0.1")
        False
        >>> is_public_ip("not-an-ip")
        False
    """
    try:
        ip = ipaddress.ip_address(value)
    except ValueError:
        return False

    return not (
        ip.is_private
        or ip.is_reserved
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_unspecified
    )


def resolve_client_ip(headers: Mapping[str, str], remote_addr: str | None = None) -> str:
    """Pick the client IP used as rate limit identity.

    Args:
        headers: Request headers. Lookups are lower-case, so pass a
            case-insensitive mapping (Starlette ``Headers``) or lower-case keys.
        remote_addr: Socket peer address, checked last.

    Returns:
        The first valid public IP among the candidates, or ``FALLBACK_IP``.
    """
    candidates = [headers.get(name) for name in CLIENT_IP_HEADERS]
    candidates.append(remote_addr)

    for raw in candidates:
        if not raw:
            continue
        ip = _first_entry(raw)
        if is_public_ip(ip):
            return ip

    return FALLBACK_IP
