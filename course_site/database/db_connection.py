"""
PostgreSQL connection helper.
Provides get_db() for use by services.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator

import psycopg2
import psycopg2.extensions
from psycopg2.extras import DictCursor, register_uuid

# Let uuid.UUID values (from Flask's <uuid:...> converter) be passed as query params
register_uuid()


@contextmanager
def get_db(database_url: str) -> Iterator[psycopg2.extensions.connection]:
    """
    Open a new psycopg2 connection with dictionary-based row access.

    Every unit of work gets its own connection, which is rolled back on error
    and always closed on exit. Callers commit explicitly.

    Usage:
        with get_db(settings.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(...)
            conn.commit()

    Raises:
        psycopg2.Error: If connection or any statement fails.
    """
    try:
        # Rows come back as DictRow (e.g. row["email"] or dict(row))
        conn = psycopg2.connect(database_url, cursor_factory=DictCursor)
    except psycopg2.Error as e:
        logging.error(f"Error connecting to database: {e}")
        raise

    try:
        yield conn
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def serialize_row(row: Any) -> Dict[str, Any]:
    """
    Convert a DictRow into a JSON-friendly dict.

    Timestamps become ISO-8601 strings and UUIDs become plain strings.
    """
    out = dict(row)
    for key, value in out.items():
        if isinstance(value, (datetime, date)):
            out[key] = value.isoformat()
        elif isinstance(value, uuid.UUID):
            out[key] = str(value)
    return out
