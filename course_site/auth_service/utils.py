"""
Shared authentication helpers.
Provides admin claim creation, verification, and super-admin enforcement.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import jwt
from flask import Response, jsonify, request

from course_site.config import get_settings

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"


# --- JWT CREATION ---
def create_token(admin_id: Any, is_super: bool, secret: str, expires_minutes: int = 120) -> str:
    """
    Generates a signed admin claim.

    Args:
        admin_id: The admin's id (stored as the string subject).
        is_super (bool): Whether the admin is a super-admin.
        secret (str): HS256 signing secret.
        expires_minutes (int): Lifetime of the claim.

    Returns:
        str: Encoded JWT string.
    """
    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(admin_id),
        "role": ADMIN_ROLE,
        "super": bool(is_super),
        "exp": now + timedelta(minutes=expires_minutes),
        "iat": now,
    }

    return jwt.encode(payload, secret, algorithm=ALGORITHM)


# --- JWT VALIDATION ---
def verify_token_from_request(
    require_super: bool = False,
) -> Tuple[Optional[str], Optional[bool], Optional[Response], Optional[int]]:
    """
    Verify the admin claim in the Authorization header.

    Args:
        require_super (bool): Also require the `super` flag.

    Returns:
        tuple: (admin_id, is_super, error_response, status_code)
               If successful, error_response and status_code are None.
               If failed, admin_id and is_super are None.
    """
    auth = request.headers.get("Authorization", "")

    if not auth.startswith("Bearer "):
        return None, None, jsonify({"error": "missing token"}), 401

    token = auth.split(" ", 1)[1].strip()
    secret = get_settings().jwt_secret

    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None, None, jsonify({"error": "token expired"}), 401
    except jwt.PyJWTError:
        return None, None, jsonify({"error": "invalid token"}), 401

    admin_id = payload.get("sub")
    if payload.get("role") != ADMIN_ROLE or not admin_id:
        return None, None, jsonify({"error": "invalid token"}), 401

    is_super = bool(payload.get("super"))

    if require_super and not is_super:
        return None, None, jsonify({"error": "forbidden"}), 403

    return admin_id, is_super, None, None
