"""
Ephemeral registration store.

Holds signups that have not yet proven mailbox ownership. Nothing is written
to MongoDB until the emailed token is consumed, so abandoned and bot signups
never reach durable storage.

Entries are keyed by their one-time token, with a secondary index by email
so a pending address can be found (and its link re-sent) without a scan.
The store is bounded: when full it sweeps expired entries immediately and
refuses the new entry if that frees nothing.

All methods are synchronous and never await, so a check-and-remove in
consume() cannot interleave with another request on the event loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from errors import ErrorCode, ServiceUnavailableError
from shared.datetime_utils import minutes_until, utc_now
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class PendingRegistration:
    """A signup payload waiting for its verification link to be visited.

    ``password_hash`` is always an argon2 hash; plaintext never enters the store.
    """

    email: str
    password_hash: str
    name: str
    phone: Optional[str]
    created_at: datetime
    expires_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class RegistrationStoreStats:
    total: int
    valid: int
    expired: int
    capacity: int
    usage_percent: float


class EphemeralRegistrationStore:
    def __init__(
        self,
        ttl: timedelta = timedelta(hours=24),
        capacity: int = 10000,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ttl = ttl
        self.capacity = capacity
        self._clock = clock
        self._by_token: dict[str, PendingRegistration] = {}
        self._token_by_email: dict[str, str] = {}

    def new_registration(
        self,
        *,
        email: str,
        password_hash: str,
        name: str,
        phone: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> PendingRegistration:
        """Build a payload stamped with this store's clock and TTL."""
        now = self._clock()
        return PendingRegistration(
            email=email,
            password_hash=password_hash,
            name=name,
            phone=phone,
            created_at=now,
            expires_at=now + self.ttl,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def store(self, token: str, registration: PendingRegistration) -> None:
        """Add *registration* under *token*.

        An older pending entry for the same email is replaced, so each
        address has at most one live link.

        Raises:
            ServiceUnavailableError: the store is full even after sweeping.
        """
        previous = self._token_by_email.get(registration.email)
        if previous is not None:
            self._remove(previous)

        if len(self._by_token) >= self.capacity:
            swept = self.sweep_expired()
            if len(self._by_token) >= self.capacity:
                log.error(
                    "registration_store_full",
                    capacity=self.capacity,
                    swept=swept,
                )
                raise ServiceUnavailableError(
                    "Registration is temporarily unavailable. Please try again later.",
                    code=ErrorCode.REGISTRATION_CAPACITY_EXCEEDED,
                )

        self._by_token[token] = registration
        self._token_by_email[registration.email] = token
        log.debug("registration_stored", pending=len(self._by_token))

    def consume(self, token: str) -> Optional[PendingRegistration]:
        """Remove and return the registration for *token*.

        Returns None for unknown, already-consumed and expired tokens. An
        expired entry is dropped as a side effect.
        """
        registration = self._remove(token)
        if registration is None:
            return None
        if registration.is_expired(self._clock()):
            log.info("registration_token_expired")
            return None
        return registration

    def peek(self, token: str) -> bool:
        registration = self._by_token.get(token)
        return registration is not None and not registration.is_expired(self._clock())

    def find_by_email(self, email: str) -> Optional[PendingRegistration]:
        token = self._token_by_email.get(email)
        if token is None:
            return None
        registration = self._by_token.get(token)
        if registration is None or registration.is_expired(self._clock()):
            return None
        return registration

    def has_pending(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def regenerate_token(self, email: str, new_token: str) -> Optional[PendingRegistration]:
        """Move the pending registration for *email* to *new_token*.

        The old token stops working immediately. The expiry stays fixed at
        creation time plus the TTL. Returns None if nothing is pending for
        *email*.
        """
        old_token = self._token_by_email.get(email)
        if old_token is None:
            return None
        registration = self._remove(old_token)
        if registration is None or registration.is_expired(self._clock()):
            return None

        self._by_token[new_token] = registration
        self._token_by_email[email] = new_token
        return registration

    def sweep_expired(self) -> int:
        now = self._clock()
        expired = [
            token
            for token, registration in self._by_token.items()
            if registration.is_expired(now)
        ]
        for token in expired:
            self._remove(token)
        if expired:
            log.info(
                "registration_sweep_completed",
                removed=len(expired),
                remaining=len(self._by_token),
            )
        return len(expired)

    def stats(self) -> RegistrationStoreStats:
        now = self._clock()
        expired = sum(1 for r in self._by_token.values() if r.is_expired(now))
        total = len(self._by_token)
        return RegistrationStoreStats(
            total=total,
            valid=total - expired,
            expired=expired,
            capacity=self.capacity,
            usage_percent=round(total / self.capacity * 100, 2) if self.capacity else 0.0,
        )

    def pending(self) -> list[dict]:
        """Admin view of live registrations. Tokens and hashes are never exposed."""
        now = self._clock()
        return [
            {
                "email": r.email,
                "name": r.name,
                "created_at": r.created_at,
                "expires_at": r.expires_at,
                "minutes_remaining": minutes_until(r.expires_at, now),
            }
            for r in sorted(self._by_token.values(), key=lambda r: r.created_at)
            if not r.is_expired(now)
        ]

    def clear(self) -> None:
        self._by_token.clear()
        self._token_by_email.clear()

    def __len__(self) -> int:
        return len(self._by_token)

    def _remove(self, token: str) -> Optional[PendingRegistration]:
        registration = self._by_token.pop(token, None)
        if registration is not None and self._token_by_email.get(registration.email) == token:
            del self._token_by_email[registration.email]
        return registration
