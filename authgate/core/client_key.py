"""Client identity used to partition rate-limit counters.

Forwarded client IP headers are client-controllable unless an upstream proxy
overwrites them. When ``trusted_proxies`` is configured, those headers are
honored only if the direct peer is one of the listed proxies; otherwise the
peer address itself is the key. With no allowlist, headers are trusted as-is,
which is only correct behind a single sanitizing edge proxy.
"""

from __future__ import annotations

from typing import Collection, Mapping

UNKNOWN_CLIENT = "unknown"


def _first_forwarded_for(value: str | None) -> str | None:
    if not value:
        return None
    first = value.split(",")[0].strip()
    return first or None


def derive_client_key(
    headers: Mapping[str, str],
    *,
    peer: str | None = None,
    trusted_proxies: Collection[str] = (),
    client_ip_header: str = "cf-connecting-ip",
) -> str:
    """Resolve the rate-limit key for a request.

    Args:
        headers: Case-insensitive request headers (or a lower-cased mapping).
        peer: Address of the direct TCP peer, when the runtime exposes one.
        trusted_proxies: Peers allowed to supply forwarded client IP headers.
        client_ip_header: Header carrying the client IP set by the edge proxy.

    Returns:
        The client IP, or ``"unknown"`` when nothing identifies the client.

    Examples:
        >>> derive_client_key({"x-forwarded-for": " 1.2.3.4 , 10.0.0.1"})
        '1.2.3.4'
        >>> derive_client_key({})
        'unknown'
    """
    if trusted_proxies and peer not in trusted_proxies:
        return peer or UNKNOWN_CLIENT

    direct = (headers.get(client_ip_header) or "").strip()
    if direct:
        return direct

    return _first_forwarded_for(headers.get("x-forwarded-for")) or UNKNOWN_CLIENT
