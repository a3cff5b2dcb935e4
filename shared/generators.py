"""
One-time token generation and format checks.

All generators use the ``secrets`` module.
"""

from __future__ import annotations

import re
import secrets

ONE_TIME_TOKEN_BYTES = 32
ONE_TIME_TOKEN_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def generate_one_time_token() -> str:
    """Generate a one-time verification token.

    Used for registration confirmation, email change and password reset
    links.

    Returns:
        64-character lowercase hex string (32 random bytes).
    """
    return secrets.token_hex(ONE_TIME_TOKEN_BYTES)


def is_one_time_token(value: str) -> bool:
    """Return True if *value* has the shape produced by generate_one_time_token()."""
    return bool(ONE_TIME_TOKEN_PATTERN.match(value or ""))
