"""
Admin service route handlers.

Provides routes for:
- Admin login
- Bootstrap seeding of admin accounts
- Self-service password change
- Super-admin management of admin accounts (list, update, delete, grant)

All JWT logic is delegated to `auth_service.utils`; password hashing and
admin SQL live in `auth_service.credentials`.
"""

import hmac
import logging
import uuid
from typing import Tuple

import psycopg2
import psycopg2.errors
from flask import Blueprint, Response, jsonify, request

from course_site.auth_service import credentials
from course_site.auth_service.schemas import (
    AdminCredentials,
    AdminUpdate,
    ChangePasswordRequest,
    LoginRequest,
)
from course_site.auth_service.utils import create_token, verify_token_from_request
from course_site.config import get_settings
from course_site.database.db_connection import get_db, serialize_row
from course_site.errors import (
    InvalidCredentials,
    InvalidInput,
    InvalidOperation,
    NotFound,
    Unauthorized,
    parse_body,
)

admin_bp = Blueprint("admin", __name__)


# --- REQUEST LOGGING ---
@admin_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path to the admin service.
    Headers are left out: they carry bearer claims.
    """
    logging.info(f"[Admin] Incoming {request.method} {request.path}")


@admin_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Admin] Response {response.status}")
    return response


def _storage_error(action: str, e: psycopg2.Error) -> Tuple[Response, int]:
    logging.error(f"Database error during {action}: {e}")
    return jsonify({"error": str(e).strip() or f"{action} failed"}), 400


# --- LOGIN ---
@admin_bp.route("/admin/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate an admin and return a signed claim.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: {"token": str, "isSuperAdmin": bool}
        400: Missing credentials or database error.
        401: Invalid credentials (wrong password or unknown email alike).
    """
    body = parse_body(LoginRequest)
    settings = get_settings()

    try:
        with get_db(settings.database_url) as conn:
            with conn.cursor() as cur:
                admin = credentials.find_admin_by_email(cur, body.email)
    except psycopg2.Error as e:
        return _storage_error("login", e)

    password_hash = admin["password_hash"] if admin else None
    if not credentials.verify_password(password_hash, body.password) or not admin:
        raise InvalidCredentials()

    is_super = bool(admin["is_superadmin"])
    token = create_token(
        admin["id"], is_super, settings.jwt_secret, settings.admin_token_expiration_minutes
    )

    return jsonify({"token": token, "isSuperAdmin": is_super}), 200


# --- SEED ---
@admin_bp.route("/admin/seed", methods=["POST"])
def seed_admin() -> Tuple[Response, int]:
    """
    Create or reset an admin account without a bearer claim.

    Only the configured bootstrap email (SUPERADMIN_EMAIL) is stored as a
    super-admin; every other email is stored as a plain admin. When
    ADMIN_SEED_TOKEN is configured, the request must carry it in the
    X-Seed-Token header.

    Returns:
        200: {"success": true}
        400: Missing email/password or database error.
        401: Seed token required and missing/wrong.
    """
    settings = get_settings()
    if settings.admin_seed_token:
        supplied = request.headers.get("X-Seed-Token", "")
        if not hmac.compare_digest(supplied.encode(), settings.admin_seed_token.encode()):
            raise Unauthorized("Unauthorized")

    body = parse_body(AdminCredentials)
    is_super = credentials.seed_superadmin_flag(body.email, settings.superadmin_email)
    password_hash = credentials.hash_password(body.password)

    try:
        with get_db(settings.database_url) as conn:
            with conn.cursor() as cur:
                credentials.upsert_admin(cur, body.email, password_hash, is_super, update_role=True)
            conn.commit()
    except psycopg2.Error as e:
        return _storage_error("seed", e)

    logging.info(f"Seeded admin account (super={is_super})")
    return jsonify({"success": True}), 200


# --- CHANGE OWN PASSWORD ---
@admin_bp.route("/admin/change-password", methods=["PUT"])
def change_password() -> Tuple[Response, int]:
    """
    Change the authenticated admin's own password.

    Expects JSON: { "currentPassword": str, "newPassword": str }

    Returns:
        200: {"success": true}
        400: Missing fields or database error.
        401: Not authenticated, or current password is incorrect.
        404: The admin behind the claim no longer exists.
    """
    admin_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    body = parse_body(ChangePasswordRequest)
    settings = get_settings()

    try:
        with get_db(settings.database_url) as conn:
            with conn.cursor() as cur:
                admin = credentials.find_admin_by_id(cur, admin_id)
                if not admin:
                    raise NotFound("admin not found")

                if not credentials.verify_password(admin["password_hash"], body.current_password):
                    raise InvalidCredentials("current password is incorrect")

                credentials.set_password(cur, admin_id, credentials.hash_password(body.new_password))
            conn.commit()
    except psycopg2.Error as e:
        return _storage_error("password change", e)

    return jsonify({"success": True}), 200


# --- GRANT (SUPER-ADMIN ONLY) ---
@admin_bp.route("/admin/grant", methods=["POST"])
def grant_admin() -> Tuple[Response, int]:
    """
    Super-admin only: create a plain admin account (or reset its password).

    An existing super-admin with the same email keeps the super flag.

    Returns:
        200: {"success": true}
        400: Invalid input or database error.
        401/403: Not authenticated / not a super-admin.
    """
    _, _, err, code = verify_token_from_request(require_super=True)
    if err:
        return err, code

    body = parse_body(AdminCredentials)
    password_hash = credentials.hash_password(body.password)

    try:
        with get_db(get_settings().database_url) as conn:
            with conn.cursor() as cur:
                credentials.upsert_admin(cur, body.email, password_hash, False, update_role=False)
            conn.commit()
    except psycopg2.Error as e:
        return _storage_error("grant", e)

    return jsonify({"success": True}), 200


# --- LIST ADMINS (SUPER-ADMIN ONLY) ---
@admin_bp.route("/admins", methods=["GET"])
def list_admins() -> Tuple[Response, int]:
    """
    Super-admin only: list all admin accounts, newest first.

    Returns:
        200: List of {id, email, is_superadmin, created_at}.
        401/403: Unauthorized.
        400: Database error.
    """
    _, _, err, code = verify_token_from_request(require_super=True)
    if err:
        return err, code

    sql = f"SELECT {credentials.ADMIN_COLUMNS} FROM admins ORDER BY created_at DESC;"

    try:
        with get_db(get_settings().database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
                admins = [serialize_row(row) for row in cur.fetchall()]
    except psycopg2.Error as e:
        return _storage_error("admin listing", e)

    return jsonify(admins), 200


# --- UPDATE ADMIN (SUPER-ADMIN ONLY) ---
@admin_bp.route("/admin/<uuid:admin_id>", methods=["PUT"])
def update_admin(admin_id: uuid.UUID) -> Tuple[Response, int]:
    """
    Super-admin only: change an admin's email and/or password.

    Expects JSON: { "email"?: str, "password"?: str }

    Returns:
        200: Updated admin object (without password hash).
        400: No changes supplied, invalid input, or duplicate email.
        401/403: Unauthorized.
        404: Admin not found.
    """
    _, _, err, code = verify_token_from_request(require_super=True)
    if err:
        return err, code

    body = parse_body(AdminUpdate)
    if not body.email and not body.password:
        raise InvalidInput("no changes")

    fields = []
    values = []
    if body.email:
        fields.append("email = %s")
        values.append(body.email)
    if body.password:
        fields.append("password_hash = %s")
        values.append(credentials.hash_password(body.password))
    values.append(admin_id)

    sql = (
        f"UPDATE admins SET {', '.join(fields)} WHERE id = %s "
        f"RETURNING {credentials.ADMIN_COLUMNS};"
    )

    try:
        with get_db(get_settings().database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(sql, values)
                updated = cur.fetchone()
                if not updated:
                    raise NotFound("not found")
            conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Email already exists"}), 400
    except psycopg2.Error as e:
        return _storage_error("admin update", e)

    return jsonify(serialize_row(updated)), 200


# --- DELETE ADMIN (SUPER-ADMIN ONLY) ---
@admin_bp.route("/admin/<uuid:admin_id>", methods=["DELETE"])
def delete_admin(admin_id: uuid.UUID) -> Tuple[Response, int]:
    """
    Super-admin only: delete an admin account.

    An admin can never delete their own account.

    Returns:
        200: {"success": true}
        400: Attempt to delete self, or database error.
        401/403: Unauthorized.
    """
    current_id, _, err, code = verify_token_from_request(require_super=True)
    if err:
        return err, code

    if str(admin_id) == current_id:
        raise InvalidOperation("cannot delete self")

    try:
        with get_db(get_settings().database_url) as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM admins WHERE id = %s;", (admin_id,))
            conn.commit()
    except psycopg2.Error as e:
        return _storage_error("admin deletion", e)

    return jsonify({"success": True}), 200
