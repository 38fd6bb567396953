"""
Registration service routes: public sign-up, email verification, and the
admin dashboard's registration management (list, create, update, delete).
"""

import logging
import uuid
from typing import Tuple

import psycopg2
from flask import Blueprint, Response, current_app, jsonify, request

from course_site.auth_service.utils import verify_token_from_request
from course_site.config import get_settings
from course_site.database.db_connection import get_db, serialize_row
from course_site.errors import NotFound, RateLimited, parse_body
from course_site.notifications.mailer import build_verification_link, send_verification_email
from course_site.registration_service import tokens
from course_site.registration_service.schemas import RegistrationIn, VerifyEmailRequest

registrations_bp = Blueprint("registrations", __name__)

RATE_LIMITER_KEY = "verify_rate_limiter"

REGISTRATION_COLUMNS = """
    id, full_name, email, phone, organization, job_title, street_address,
    city, country, heard_about_us, future_interests, verification_token,
    verified, verified_at, created_at
"""

INSERT_SQL = f"""
    INSERT INTO registrations (
        full_name, email, phone, organization, job_title, street_address,
        city, country, heard_about_us, future_interests,
        verification_token, verified
    ) VALUES (
        %s, %s, %s, %s, %s, %s,
        %s, %s, %s, %s,
        %s, false
    )
    RETURNING {REGISTRATION_COLUMNS};
"""


@registrations_bp.before_request
def before_request() -> None:
    logging.info(f"[Registrations] Incoming {request.method} {request.path}")


@registrations_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Registrations] Response {response.status}")
    return response


def _storage_error(action: str, e: psycopg2.Error) -> Tuple[Response, int]:
    logging.error(f"Database error during {action}: {e}")
    return jsonify({"error": str(e).strip() or f"{action} failed"}), 400


def client_address() -> str:
    """
    The caller's address for rate limiting.

    Forwarded headers are honoured only through ProxyFix (TRUSTED_PROXY_COUNT),
    which rewrites `remote_addr` before the request gets here.
    """
    return request.remote_addr or "unknown"


# --- PUBLIC REGISTRATION ---
@registrations_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register for the course.

    Expects JSON with fullName, email, phone and optionally organization,
    jobTitle, streetAddress, city, country, heardAboutUs, futureInterests[].

    A verification email is attempted; if it cannot be sent, the link is
    returned in the response so the client can finish verification.

    Returns:
        200: {"id": str, "emailSent": bool, "verificationLink"?: str}
        400: Invalid input or database error.
    """
    body = parse_body(RegistrationIn)
    settings = get_settings()
    token = tokens.issue_token()

    try:
        with get_db(settings.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(INSERT_SQL, body.column_values() + (token,))
                created = cur.fetchone()
            conn.commit()
    except psycopg2.Error as e:
        return _storage_error("registration", e)

    link = build_verification_link(settings.app_url, token)
    email_sent = send_verification_email(settings, body.email, body.full_name, link)

    result = {"id": str(created["id"]), "emailSent": email_sent}
    if not email_sent:
        result["verificationLink"] = link

    return jsonify(result), 200


# --- EMAIL VERIFICATION ---
@registrations_bp.route("/verify-email", methods=["POST"])
def verify_email() -> Tuple[Response, int]:
    """
    Redeem a verification token.

    Expects JSON: { "token": str }

    Returns:
        200: {"success": true, "message": str} (also for an already used token)
        400: Malformed, unknown or expired token, or database error.
        429: Too many attempts from this address.
    """
    address = client_address()
    limiter = current_app.extensions[RATE_LIMITER_KEY]
    if not limiter.hit(address):
        logging.warning(f"Rate limited verification attempts from {address}")
        raise RateLimited()

    body = parse_body(VerifyEmailRequest)
    token = tokens.validate_token_format(body.token)
    settings = get_settings()

    try:
        with get_db(settings.database_url) as conn:
            with conn.cursor() as cur:
                outcome = tokens.redeem_token(cur, token, settings.verification_token_ttl_hours)
            conn.commit()
    except NotFound as e:
        return jsonify({"error": e.message}), 400
    except psycopg2.Error as e:
        return _storage_error("verification", e)

    if outcome == tokens.ALREADY_VERIFIED:
        return jsonify({"success": True, "message": "Email already verified"}), 200

    logging.info("Email verified successfully")
    return jsonify({"success": True, "message": "Email verified successfully"}), 200


# --- LIST REGISTRATIONS (ANY ADMIN) ---
@registrations_bp.route("/registrations", methods=["GET"])
def list_registrations() -> Tuple[Response, int]:
    """
    Admin-only: list all registrations, newest first.

    Returns:
        200: List of registration objects.
        401: Unauthorized.
        400: Database error.
    """
    _, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = f"SELECT {REGISTRATION_COLUMNS} FROM registrations ORDER BY created_at DESC;"

    try:
        with get_db(get_settings().database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
                rows = [serialize_row(row) for row in cur.fetchall()]
    except psycopg2.Error as e:
        return _storage_error("registration listing", e)

    return jsonify(rows), 200


# --- CREATE REGISTRATION (SUPER-ADMIN ONLY) ---
@registrations_bp.route("/registrations", methods=["POST"])
def create_registration() -> Tuple[Response, int]:
    """
    Super-admin only: add a registration from the dashboard.

    The row gets a fresh verification token like a public sign-up, but no
    email is sent.

    Returns:
        200: The created registration.
        400: Invalid input or database error.
        401/403: Unauthorized.
    """
    _, _, err, code = verify_token_from_request(require_super=True)
    if err:
        return err, code

    body = parse_body(RegistrationIn)

    try:
        with get_db(get_settings().database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(INSERT_SQL, body.column_values() + (tokens.issue_token(),))
                created = cur.fetchone()
            conn.commit()
    except psycopg2.Error as e:
        return _storage_error("registration creation", e)

    return jsonify(serialize_row(created)), 200


# --- UPDATE REGISTRATION (SUPER-ADMIN ONLY) ---
@registrations_bp.route("/registrations/<uuid:registration_id>", methods=["PUT"])
def update_registration(registration_id: uuid.UUID) -> Tuple[Response, int]:
    """
    Super-admin only: replace a registration's editable fields.
    Verification state is left untouched.

    Returns:
        200: The updated registration.
        400: Invalid input or database error.
        401/403: Unauthorized.
        404: Registration not found.
    """
    _, _, err, code = verify_token_from_request(require_super=True)
    if err:
        return err, code

    body = parse_body(RegistrationIn)

    sql = f"""
        UPDATE registrations
        SET full_name = %s, email = %s, phone = %s, organization = %s,
            job_title = %s, street_address = %s, city = %s, country = %s,
            heard_about_us = %s, future_interests = %s
        WHERE id = %s
        RETURNING {REGISTRATION_COLUMNS};
    """

    try:
        with get_db(get_settings().database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(sql, body.column_values() + (registration_id,))
                updated = cur.fetchone()
                if not updated:
                    raise NotFound("not found")
            conn.commit()
    except psycopg2.Error as e:
        return _storage_error("registration update", e)

    return jsonify(serialize_row(updated)), 200


# --- DELETE REGISTRATION (SUPER-ADMIN ONLY) ---
@registrations_bp.route("/registrations/<uuid:registration_id>", methods=["DELETE"])
def delete_registration(registration_id: uuid.UUID) -> Tuple[Response, int]:
    """
    Super-admin only: permanently delete a registration.

    Returns:
        200: {"success": true}
        400: Database error.
        401/403: Unauthorized.
    """
    _, _, err, code = verify_token_from_request(require_super=True)
    if err:
        return err, code

    try:
        with get_db(get_settings().database_url) as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM registrations WHERE id = %s;", (registration_id,))
            conn.commit()
    except psycopg2.Error as e:
        return _storage_error("registration deletion", e)

    return jsonify({"success": True}), 200
