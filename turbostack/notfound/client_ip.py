"""Client address resolution for the 404 logger."""

from __future__ import annotations

import ipaddress
from collections.abc import Mapping

LOOPBACK = "127.0.0.1"


def _is_public(candidate: str) -> bool:
    try:
        return ipaddress.ip_address(candidate).is_global
    except ValueError:
        return False


def resolve_client_ip(headers: Mapping[str, str], peer: str | None) -> str:
    """Pick the first public address from CF-Connecting-IP, the peer, X-Forwarded-For.

    Each source may be a comma-separated list. IPv6 loopback counts as the
    local machine; private and reserved ranges are skipped.
    """
    sources = (
        headers.get("cf-connecting-ip"),
        peer,
        headers.get("x-forwarded-for"),
    )
    for source in sources:
        if not source:
            continue
        for raw in source.split(","):
            candidate = raw.strip()
            if candidate == "::1":
                return LOOPBACK
            if _is_public(candidate):
                return candidate
    return LOOPBACK
