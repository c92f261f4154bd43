"""Environment detection from the page hostname."""

from __future__ import annotations

from emmylearn.auth.models import Environment

_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1"})
_PRIVATE_LAN_PREFIX = "192.168."
_MDNS_SUFFIX = ".local"


def classify_environment(hostname: str) -> Environment:
    """Classify a hostname as development or production.

    Loopback names, 192.168.x.x LAN addresses and ``.local`` mDNS names are
    development; everything else is production.

    Args:
        hostname: The hostname the app is served from (no port).

    Returns:
        The matching Environment.
    """
    host = hostname.strip().lower()
    if host in _LOOPBACK_HOSTS:
        return Environment.DEVELOPMENT
    if host.startswith(_PRIVATE_LAN_PREFIX):
        return Environment.DEVELOPMENT
    if host.endswith(_MDNS_SUFFIX):
        return Environment.DEVELOPMENT
    return Environment.PRODUCTION


def is_development(hostname: str) -> bool:
    """Return True when ``hostname`` classifies as development."""
    return classify_environment(hostname) is Environment.DEVELOPMENT
