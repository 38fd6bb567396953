"""
Email verification tokens.

A token is issued with every new registration and redeemed once through
/api/verify-email. Redeeming moves it from `verification_token` to
`redeemed_token`, so a repeat click on the same link is answered with
success without touching the row again.
"""

import re
import secrets
from typing import Any

from course_site.errors import InvalidInput, NotFound

TOKEN_MIN_LENGTH = 10
TOKEN_MAX_LENGTH = 100
TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")

# Outcomes of redeem_token()
VERIFIED = "verified"
ALREADY_VERIFIED = "already_verified"


def issue_token() -> str:
    """Return a fresh random token (64 hex characters)."""
    return secrets.token_hex(32)


def validate_token_format(token: Any) -> str:
    """
    Reject malformed tokens before any lookup.

    Raises:
        InvalidInput: Not a string, wrong length, or characters outside [A-Za-z0-9-].
    """
    if not isinstance(token, str):
        raise InvalidInput("Invalid verification token")
    if not TOKEN_MIN_LENGTH <= len(token) <= TOKEN_MAX_LENGTH:
        raise InvalidInput("Invalid verification token")
    if not TOKEN_PATTERN.match(token):
        raise InvalidInput("Invalid verification token")
    return token


def redeem_token(cur: Any, token: str, ttl_hours: int = 0) -> str:
    """
    Mark the registration holding `token` as verified.

    Args:
        cur: Open cursor; the caller commits.
        token: A token that already passed validate_token_format().
        ttl_hours: Tokens of unverified registrations older than this are
            refused. 0 means tokens never expire.

    Returns:
        str: VERIFIED on the first redemption, ALREADY_VERIFIED afterwards.

    Raises:
        NotFound: No registration was ever issued this token.
        InvalidInput: The token has expired.
    """
    cur.execute(
        """
        SELECT id, verified,
               (%s > 0 AND created_at < now() - make_interval(hours => %s)) AS expired
        FROM registrations
        WHERE verification_token = %s OR redeemed_token = %s
        LIMIT 1;
        """,
        (ttl_hours, ttl_hours, token, token),
    )
    registration = cur.fetchone()

    if not registration:
        raise NotFound("Invalid or expired verification link")

    if registration["verified"]:
        return ALREADY_VERIFIED

    if registration["expired"]:
        raise InvalidInput("Verification link has expired")

    # Flag, timestamp and token clearing in one statement
    cur.execute(
        """
        UPDATE registrations
        SET verified = true,
            verified_at = now(),
            redeemed_token = verification_token,
            verification_token = NULL
        WHERE id = %s AND verified = false;
        """,
        (registration["id"],),
    )

    # A concurrent request may have won the race; the row is verified either way
    return VERIFIED if cur.rowcount else ALREADY_VERIFIED
