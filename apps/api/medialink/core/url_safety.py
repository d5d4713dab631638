"""Guards applied to caller-supplied page URLs before the service fetches them."""

import ipaddress
from urllib.parse import urlparse

_LOOPBACK_NAMES = frozenset({"localhost", "0.0.0.0", "127.0.0.1", "::1"})
_INTERNAL_SUFFIXES = (".local", ".internal", ".localdomain")


def parse_allowed_domains(raw: str | None) -> frozenset[str]:
    """Split a comma-separated allowlist setting into normalized hostnames."""
    value = str(raw or "").strip()
    if not value:
        return frozenset()
    return frozenset(part.strip().lower() for part in value.split(",") if part.strip())


def _non_public_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        return False
    return not ip.is_global or ip.is_multicast


def _host_allowed(hostname: str, allowed_domains: frozenset[str]) -> bool:
    return any(hostname == domain or hostname.endswith(f".{domain}") for domain in allowed_domains)


def page_url_block_reason(url: str, allowed_domains: frozenset[str] = frozenset()) -> str | None:
    """Return why ``url`` must not be fetched, or None when it is a public http(s) URL."""
    parsed = urlparse(str(url or "").strip())
    if parsed.scheme.lower() not in ("http", "https"):
        return "invalid_scheme"

    hostname = (parsed.hostname or "").lower()
    if not hostname:
        return "missing_hostname"
    if hostname in _LOOPBACK_NAMES or hostname.endswith(_INTERNAL_SUFFIXES):
        return "blocked_hostname"
    if _non_public_ip(hostname):
        return "private_ip"
    if allowed_domains and not _host_allowed(hostname, allowed_domains):
        return "domain_not_allowed"
    return None
