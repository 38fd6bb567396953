"""
Admin credential store.

Password hashing (Argon2id, fixed cost) and the small set of SQL statements
that read and write admin credentials. Functions taking `cur` run inside the
caller's connection; the caller commits.
"""

from typing import Any, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

# Fixed cost parameters so every stored hash costs the same to check
ph = PasswordHasher(time_cost=3, memory_cost=65536, parallelism=4)

_dummy_hash: Optional[str] = None

ADMIN_COLUMNS = "id, email, is_superadmin, created_at"


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def hash_password(plaintext: str) -> str:
    """
    Hash a plaintext password with Argon2id.

    Returns:
        str: Encoded hash (algorithm, parameters and salt included).
    """
    return ph.hash(plaintext)


def verify_password(password_hash: Optional[str], plaintext: str) -> bool:
    """
    Check a plaintext password against a stored hash.

    When `password_hash` is None (no such admin) a dummy hash is checked
    instead, so an unknown email costs as much as a wrong password.

    Returns:
        bool: True only on a match. Never raises on mismatch.
    """
    global _dummy_hash
    if password_hash is None:
        if _dummy_hash is None:
            _dummy_hash = ph.hash("not-a-real-password")
        try:
            ph.verify(_dummy_hash, plaintext)
        except (VerificationError, InvalidHashError):
            pass
        return False

    try:
        return ph.verify(password_hash, plaintext)
    except (VerificationError, InvalidHashError):
        return False


def find_admin_by_email(cur: Any, email: str) -> Optional[Any]:
    cur.execute(
        "SELECT id, email, password_hash, is_superadmin FROM admins WHERE email = %s;",
        (normalize_email(email),),
    )
    return cur.fetchone()


def find_admin_by_id(cur: Any, admin_id: str) -> Optional[Any]:
    cur.execute(
        "SELECT id, email, password_hash, is_superadmin FROM admins WHERE id = %s;",
        (admin_id,),
    )
    return cur.fetchone()


def set_password(cur: Any, admin_id: str, password_hash: str) -> bool:
    """
    Store a new password hash for an admin.

    Returns:
        bool: False if no admin has that id.
    """
    cur.execute(
        "UPDATE admins SET password_hash = %s WHERE id = %s;",
        (password_hash, admin_id),
    )
    return cur.rowcount > 0


def upsert_admin(
    cur: Any,
    email: str,
    password_hash: str,
    is_superadmin: bool,
    update_role: bool = True,
) -> None:
    """
    Insert an admin, or update the existing one with the same email.

    Args:
        update_role: When True (seeding) an existing row also takes the new
            `is_superadmin` value. When False (granting) an existing row
            keeps its flag and only the password changes.
    """
    if update_role:
        conflict = "password_hash = EXCLUDED.password_hash, is_superadmin = EXCLUDED.is_superadmin"
    else:
        conflict = "password_hash = EXCLUDED.password_hash"

    cur.execute(
        f"""
        INSERT INTO admins (email, password_hash, is_superadmin)
        VALUES (%s, %s, %s)
        ON CONFLICT (email) DO UPDATE SET {conflict};
        """,
        (normalize_email(email), password_hash, is_superadmin),
    )


def seed_superadmin_flag(email: str, superadmin_email: str) -> bool:
    """Only the configured bootstrap email is ever seeded as super-admin."""
    return bool(superadmin_email) and normalize_email(email) == normalize_email(superadmin_email)
