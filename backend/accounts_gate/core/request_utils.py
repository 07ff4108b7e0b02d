"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from fastapi import Request

from accounts_gate.core.config import settings

logger = logging.getLogger(__name__)


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request, trusted_proxies: set[str] | None = None) -> str | None:
    """Get the client IP address from a request.

    Security Priority Order:
    1. X-Forwarded-For (first hop) - only when the direct peer is a trusted proxy
    2. X-Real-IP - only when the direct peer is a trusted proxy
    3. Direct client connection

    Forwarded headers from any other peer are ignored since they can be spoofed
    to dodge per-client rate limits.

    Args:
        request: The FastAPI request object
        trusted_proxies: Proxy addresses allowed to forward client IPs.
            Defaults to TRUSTED_PROXY_IPS from settings.

    Returns:
        Client IP address or None if not available
    """
    if trusted_proxies is None:
        trusted_proxies = settings.trusted_proxy_ips_set

    direct_ip = request.client.host if request.client else None

    if direct_ip and direct_ip in trusted_proxies:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid IP in X-Forwarded-For header: {ip}")

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid IP in X-Real-IP header: {real_ip}")
    elif request.headers.get("X-Forwarded-For"):
        logger.debug(f"Ignoring X-Forwarded-For from untrusted source: {direct_ip}")

    return direct_ip
