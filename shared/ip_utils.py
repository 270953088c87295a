"""
Client IP resolution for FastAPI requests.

The rate limiter buckets requests by the address returned here.
"""

from __future__ import annotations

from fastapi import Request

# Checked in priority order when the service sits behind a proxy/CDN
PROXY_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
    "X-Client-IP",
)


def get_client_ip(request: Request, *, trust_proxy_headers: bool = False) -> str:
    """Extract the real client IP from a FastAPI ``Request``.

    When *trust_proxy_headers* is true the proxy headers in ``PROXY_HEADERS``
    are consulted first (first IP of a comma-separated list wins). Otherwise,
    or when none is present, the direct connection address is used.

    Returns:
        The resolved client IP string, or ``""`` if none can be found.
    """
    if trust_proxy_headers:
        for header in PROXY_HEADERS:
            ip_value: str | None = request.headers.get(header)
            if ip_value:
                client_ip: str = ip_value.split(",")[0].strip()
                if client_ip:
                    return client_ip

    return request.client.host if request.client else ""
