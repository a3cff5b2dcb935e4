"""Admin console login against the ADMIN_USERNAME / ADMIN_PASSWORD pair."""

from __future__ import annotations

import hmac

from config import SecuritySettings
from errors import AuthenticationError, ErrorCode
from services.token_issuer import TokenIssuer
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


def authenticate_admin(
    username: str,
    password: str,
    *,
    settings: SecuritySettings,
    issuer: TokenIssuer,
    ip_address: str,
) -> str:
    """Return an admin token, or raise AuthenticationError."""
    configured = bool(settings.admin_username and settings.admin_password)
    username_ok = hmac.compare_digest(username.encode(), settings.admin_username.encode())
    password_ok = hmac.compare_digest(password.encode(), settings.admin_password.encode())
    if not (configured and username_ok and password_ok):
        log.warning("admin_login_failed", ip=hash_ip(ip_address))
        raise AuthenticationError(
            "Invalid admin credentials", code=ErrorCode.INVALID_CREDENTIALS
        )
    log.info("admin_login_success", ip=hash_ip(ip_address))
    return issuer.issue_admin(username)
