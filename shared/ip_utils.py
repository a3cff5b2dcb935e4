"""
Request origin helpers: client IP and user agent.

Both take an explicit ``Request`` so they are testable without an app.
"""

from __future__ import annotations

from fastapi import Request

# Checked in order; the first non-empty value wins.
_PROXY_IP_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)

_USER_AGENT_MAX_LENGTH = 512


def get_client_ip(request: Request) -> str:
    """Resolve the originating client IP.

    Proxy headers take priority; ``X-Forwarded-For`` contributes its first
    entry. Falls back to the socket peer, or ``"unknown"`` when there is
    none, so rate-limit keys are never empty.
    """
    for header in _PROXY_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            candidate = value.split(",")[0].strip()
            if candidate:
                return candidate

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str:
    return (request.headers.get("User-Agent") or "")[:_USER_AGENT_MAX_LENGTH]
