"""
Rate limiting using slowapi.

Public tracking endpoints are unauthenticated and keyed by client IP, so
they get tight per-minute limits.  Dashboard reads share a looser limit, and
everything else falls back to the global default applied by
SlowAPIMiddleware.

Storage comes from RATE_LIMIT_STORAGE_URI: "memory://" keeps counters per
process, a redis:// URL shares them across workers.
"""

import ipaddress
import logging
import re

from starlette.requests import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Simple pattern to quickly reject obviously invalid IPs before parsing
_IP_LIKE = re.compile(r"^[\d.:a-fA-F]+$")


def _is_valid_ip(value: str) -> bool:
    """Return True if *value* looks like a valid IPv4 or IPv6 address."""
    if not _IP_LIKE.match(value):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _is_private_ip(value: str) -> bool:
    """Return True if *value* is a private, loopback or link-local address."""
    try:
        addr = ipaddress.ip_address(value)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def get_client_ip(request: Request) -> str:
    """Extract real client IP from proxy headers, falling back to remote address.

    Forwarded values must parse as public IP addresses; anything else falls
    back to the connection address.  The same IP keys both the rate limiter
    and the visitor hash of the public tracking routes.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # X-Forwarded-For can be a comma-separated list; first entry is the client
        candidate = forwarded.split(",")[0].strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidate = real_ip.strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    return get_remote_address(request)

# Rate limit configurations
# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "landing_view": "60/minute",
    "landing_convert": "10/minute",
    "growth_read": "60/minute",
    "growth_insights": "10/minute",
    "growth_aggregate": "5/minute",
    "default": "100/minute",
}

_storage_uri = settings.rate_limit_storage_uri or "memory://"

# Counters are per process unless a shared store is configured
if _storage_uri.startswith("memory://") and settings.is_production:
    logger.warning(
        "Rate limiter using in-memory storage in production; "
        "set RATE_LIMIT_STORAGE_URI to a redis:// URL for multi-worker deployments"
    )

limiter = Limiter(
    key_func=get_client_ip,
    storage_uri=_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
)


def get_rate_limit(endpoint: str) -> str:
    """
    Get rate limit configuration for a specific endpoint.

    Args:
        endpoint: The endpoint identifier (e.g., "landing_view", "growth_read")

    Returns:
        str: Rate limit string in format "count/period"

    Example:
        >>> get_rate_limit("landing_convert")
        "10/minute"
        >>> get_rate_limit("unknown")
        "100/minute"
    """
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
