"""
Disposable email domain detection.

A short, conservative list of throwaway-mail providers that account for most
bot signups. Lookups are O(1) against a frozenset.
"""

from __future__ import annotations

from typing import Optional

DISPOSABLE_EMAIL_DOMAINS: frozenset[str] = frozenset(
    {
        # High-volume temporary mail providers
        "10minutemail.com",
        "10minutemail.net",
        "20minutemail.com",
        "guerrillamail.com",
        "guerrillamail.org",
        "guerrillamail.net",
        "guerrillamail.biz",
        "guerrillamail.de",
        "guerrillamailblock.com",
        "mailinator.com",
        "tempmail.org",
        "temp-mail.org",
        "getairmail.com",
        "yopmail.com",
        "maildrop.cc",
        "throwaway.email",
        "mohmal.com",
        "sharklasers.com",
        "spam4.me",
        "grr.la",
        "tempail.com",
        "1secmail.com",
        "1secmail.org",
        "1secmail.net",
        "tmpeml.com",
        "emailondeck.com",
        "luxusmail.org",
        "armyspy.com",
        "cuvox.de",
        "dayrep.com",
        "fakeinbox.com",
        "harakirimail.com",
        "mytrashmail.com",
        "jetable.org",
        "drdrb.net",
        "sogetthis.com",
        "spambog.com",
        "spambog.de",
        "spambog.ru",
    }
)


def extract_domain(email: str) -> Optional[str]:
    """Return the lower-cased domain part of *email*, or None if malformed."""
    if not email or not isinstance(email, str):
        return None
    parts = email.strip().lower().split("@")
    if len(parts) != 2 or not parts[0]:
        return None
    domain = parts[1]
    if len(domain) < 4 or "." not in domain or domain.startswith(".") or domain.endswith("."):
        return None
    return domain


def is_disposable_email(email: str) -> bool:
    domain = extract_domain(email)
    return domain is not None and domain in DISPOSABLE_EMAIL_DOMAINS
