"""
Database bootstrap.

- ensure_database(): create the target database if it does not exist yet.
- ensure_schema(): install pgcrypto (for gen_random_uuid) and create the
  `admins` and `registrations` tables. Safe to run on every start.

Run directly to prepare a fresh server:

    python -m course_site.database.init_db [postgres://...]
"""

import logging
import sys
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import psycopg2
from psycopg2 import sql

from course_site.config import Settings
from course_site.database.db_connection import get_db

SCHEMA_STATEMENTS = [
    "CREATE EXTENSION IF NOT EXISTS pgcrypto;",
    """
    CREATE TABLE IF NOT EXISTS admins (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        email text UNIQUE NOT NULL,
        password_hash text NOT NULL,
        created_at timestamptz NOT NULL DEFAULT now()
    );
    """,
    # Older deployments created admins before the super-admin flag existed
    "ALTER TABLE admins ADD COLUMN IF NOT EXISTS is_superadmin boolean NOT NULL DEFAULT false;",
    """
    CREATE TABLE IF NOT EXISTS registrations (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        full_name text NOT NULL,
        email text NOT NULL,
        phone text NOT NULL,
        organization text,
        job_title text,
        street_address text,
        city text,
        country text,
        heard_about_us text,
        future_interests text[] DEFAULT array[]::text[],
        verification_token text,
        verified boolean NOT NULL DEFAULT false,
        verified_at timestamptz,
        created_at timestamptz NOT NULL DEFAULT now()
    );
    """,
    "ALTER TABLE registrations ADD COLUMN IF NOT EXISTS redeemed_token text;",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS registrations_verification_token_key
        ON registrations (verification_token)
        WHERE verification_token IS NOT NULL;
    """,
    """
    CREATE INDEX IF NOT EXISTS registrations_redeemed_token_idx
        ON registrations (redeemed_token)
        WHERE redeemed_token IS NOT NULL;
    """,
]


def ensure_schema(database_url: str) -> None:
    """
    Create extensions, tables and indexes if they are missing.
    """
    with get_db(database_url) as conn:
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
        conn.commit()
    logging.info("Database schema ensured.")


def ensure_database(database_url: str) -> None:
    """
    Make sure the database named in `database_url` exists.

    Connects to the maintenance database `postgres` on the same server and
    issues CREATE DATABASE when the first connection reports it missing.
    """
    try:
        conn = psycopg2.connect(database_url)
        conn.close()
        return
    except psycopg2.OperationalError as e:
        if "does not exist" not in str(e):
            raise

    parts = urlsplit(database_url)
    db_name = parts.path.lstrip("/")
    maintenance_url = urlunsplit(parts._replace(path="/postgres"))

    conn = psycopg2.connect(maintenance_url)
    try:
        # CREATE DATABASE cannot run inside a transaction block
        conn.autocommit = True
        with conn.cursor() as cur:
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(db_name)))
    finally:
        conn.close()
    logging.info(f"Created database {db_name}")


def main(argv: Optional[list] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    database_url = argv[0] if argv else Settings.from_env().database_url

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")

    try:
        ensure_database(database_url)
        ensure_schema(database_url)
    except psycopg2.Error as e:
        print(f"Database setup FAILED: {e}")
        return 1

    print("Database ensured and schema applied.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
