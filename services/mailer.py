"""
Verification mailer.

Builds the one-time links for each workflow, enforces both email rate
limits and hands the message to the EmailProvider. Workflows call check()
before committing any state and send() afterwards; the limiters are only
marked once a message has actually been accepted for delivery.
"""

from __future__ import annotations

from typing import Any, Optional

from errors import ErrorCode, RateLimitError
from infrastructure.email.protocol import EmailKind, EmailProvider
from services.rate_limiter import IntervalRateLimiter, SlidingWindowRateLimiter
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)

_LINK_PATHS = {
    EmailKind.VERIFICATION: "/verify-email/confirm/{token}",
    EmailKind.EMAIL_CHANGE: "/verify-email-change/{token}",
    EmailKind.PASSWORD_RESET: "/reset-password/{token}",
}


def humanize_seconds(seconds: int) -> str:
    if seconds % 86400 == 0 and seconds >= 86400:
        value, unit = seconds // 86400, "day"
    elif seconds % 3600 == 0 and seconds >= 3600:
        value, unit = seconds // 3600, "hour"
    else:
        value, unit = max(1, seconds // 60), "minute"
    if value == 1 and unit == "day":
        return "24 hours"
    return f"{value} {unit}{'' if value == 1 else 's'}"


class VerificationMailer:
    def __init__(
        self,
        provider: EmailProvider,
        *,
        email_limiter: IntervalRateLimiter,
        ip_limiter: SlidingWindowRateLimiter,
        app_url: str,
        link_ttls: Optional[dict[EmailKind, int]] = None,
    ) -> None:
        self._provider = provider
        self.email_limiter = email_limiter
        self.ip_limiter = ip_limiter
        self._app_url = app_url.rstrip("/")
        self._link_ttls = link_ttls or {
            EmailKind.VERIFICATION: 86400,
            EmailKind.EMAIL_CHANGE: 86400,
            EmailKind.PASSWORD_RESET: 1800,
        }

    def build_link(self, kind: EmailKind, token: str) -> str:
        return self._app_url + _LINK_PATHS[kind].format(token=token)

    def check(self, email: str, ip_address: str) -> None:
        """Raise RateLimitError if either limit would be exceeded."""
        self.check_email(email)
        self.check_ip(ip_address)

    def check_email(self, email: str) -> None:
        email_decision = self.email_limiter.check(email)
        if not email_decision.allowed:
            log.info(
                "email_rate_limited",
                to_email=email,
                remaining_seconds=email_decision.remaining_seconds,
            )
            raise RateLimitError(
                f"Please wait {email_decision.remaining_seconds} seconds before "
                "requesting another email",
                remaining_seconds=email_decision.remaining_seconds,
                code=ErrorCode.EMAIL_RATE_LIMITED,
            )

    def check_ip(self, ip_address: str) -> None:
        ip_decision = self.ip_limiter.check(ip_address)
        if not ip_decision.allowed:
            log.warning(
                "ip_email_rate_limited",
                ip=hash_ip(ip_address),
                remaining_seconds=ip_decision.remaining_seconds,
            )
            raise RateLimitError(
                "Too many emails requested from this network. Please try again later.",
                remaining_seconds=ip_decision.remaining_seconds,
                code=ErrorCode.IP_RATE_LIMITED,
            )

    async def send(
        self,
        kind: EmailKind,
        to_email: str,
        token: str,
        *,
        ip_address: str,
        name: Optional[str] = None,
        extra: Optional[dict[str, Any]] = None,
        rate_limit_key: Optional[str] = None,
    ) -> bool:
        """Send a *kind* email carrying *token* to *to_email*.

        ``rate_limit_key`` is the address the per-email interval is tracked
        against; it defaults to *to_email*.
        """
        template_data: dict[str, Any] = {
            "name": name,
            "link": self.build_link(kind, token),
            "expires_in": humanize_seconds(self._link_ttls[kind]),
            **(extra or {}),
        }
        sent = await self._provider.send(kind, to_email, template_data)
        if sent:
            self.email_limiter.mark_sent(rate_limit_key or to_email)
            self.ip_limiter.mark_sent(ip_address)
            log.info("verification_email_sent", kind=kind.value, to_email=to_email)
        else:
            log.error("verification_email_failed", kind=kind.value, to_email=to_email)
        return sent
