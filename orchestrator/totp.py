"""RFC 6238 one-time codes for the login checkpoint."""

from __future__ import annotations

import binascii
from typing import Optional

import pyotp

from orchestrator.exceptions import AuthenticationError


def generate_totp(secret: str, *, digits: int = 6, interval: int = 30, at: Optional[float] = None) -> str:
    """Return the current TOTP code for a base32 secret.

    `at` pins the clock (seconds since epoch); defaults to now.
    """
    totp = pyotp.TOTP(secret.replace(" ", ""), digits=digits, interval=interval)
    try:
        return totp.now() if at is None else totp.at(int(at))
    except binascii.Error as e:
        raise AuthenticationError(f"Invalid base32 TOTP secret: {e}") from e
