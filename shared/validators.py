"""
Account input validators. Pure functions, no framework imports.

All validators are stateless and return booleans; callers decide which
error to raise.
"""

from __future__ import annotations

import re

import validators as _validators

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50

_PHONE_RE = re.compile(r"^[+]?[0-9\s\-()]{9,15}$")


def normalize_email(email: str) -> str:
    """Emails are the unique identity key: trimmed and lower-cased."""
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* is a syntactically valid address."""
    return bool(email) and bool(_validators.email(email))


def validate_password(password: str) -> bool:
    """Validate an account password.

    Rules:
    - Between 8 and 128 characters
    - Contains at least one letter
    - Contains at least one digit

    Returns:
        True if the password meets all requirements.
    """
    if not password:
        return False
    if len(password) < PASSWORD_MIN_LENGTH or len(password) > PASSWORD_MAX_LENGTH:
        return False
    if not re.search(r"[a-zA-Z]", password):
        return False
    if not re.search(r"\d", password):
        return False
    return True


def validate_name(name: str) -> bool:
    stripped = (name or "").strip()
    return NAME_MIN_LENGTH <= len(stripped) <= NAME_MAX_LENGTH


def validate_phone(phone: str) -> bool:
    """Return True for 9-15 digit phone numbers with optional ``+``, spaces, dashes and parentheses."""
    return bool(_PHONE_RE.match(phone or ""))
