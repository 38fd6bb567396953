"""
Create or reset an admin account from the command line.

    python -m course_site.database.seed_admin EMAIL [PASSWORD]

The account is a super-admin only when EMAIL matches SUPERADMIN_EMAIL.
The password is prompted for when not given.
"""

import getpass
import sys
from typing import Optional

import psycopg2

from course_site.auth_service import credentials
from course_site.config import Settings
from course_site.database.db_connection import get_db


def seed(settings: Settings, email: str, password: str) -> bool:
    """
    Upsert the admin and return whether it was stored as a super-admin.
    """
    is_super = credentials.seed_superadmin_flag(email, settings.superadmin_email)
    password_hash = credentials.hash_password(password)

    with get_db(settings.database_url) as conn:
        with conn.cursor() as cur:
            credentials.upsert_admin(cur, email, password_hash, is_super, update_role=True)
        conn.commit()
    return is_super


def main(argv: Optional[list] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: python -m course_site.database.seed_admin EMAIL [PASSWORD]")
        return 1

    email = credentials.normalize_email(argv[0])
    password = argv[1] if len(argv) > 1 else getpass.getpass("Password: ")
    if not password:
        print("A password is required.")
        return 1

    try:
        settings = Settings.from_env()
        is_super = seed(settings, email, password)
    except (RuntimeError, psycopg2.Error) as e:
        print(f"Error: {e}")
        return 1

    role = "Super admin" if is_super else "Admin"
    print(f"{role} created/updated: {email}")
    print("  (Change this password after first login!)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
