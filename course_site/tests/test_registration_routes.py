import pytest
import uuid
from dataclasses import replace
from datetime import datetime
from urllib.parse import parse_qs, urlparse

from course_site.gateway.server import create_app
from course_site.registration_service.rate_limit import FixedWindowRateLimiter
from course_site.registration_service.tokens import TOKEN_PATTERN
from conftest import executed_sql

REGISTRATION_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")


def registration_row(**overrides):
    row = {
        "id": REGISTRATION_ID,
        "full_name": "Jane Doe",
        "email": "jane@x.com",
        "phone": "+15551234567",
        "organization": None,
        "job_title": None,
        "street_address": None,
        "city": None,
        "country": None,
        "heard_about_us": None,
        "future_interests": [],
        "verification_token": "a" * 64,
        "verified": False,
        "verified_at": None,
        "created_at": datetime(2025, 1, 1, 10, 0, 0),
    }
    row.update(overrides)
    return row


# --- REGISTER ---
def test_register_without_mail_returns_link(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"id": REGISTRATION_ID}

    response = client.post(
        "/api/register",
        json={"fullName": "Jane Doe", "email": "jane@x.com", "phone": "+15551234567"},
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data["id"] == str(REGISTRATION_ID)
    assert data["emailSent"] is False

    link = urlparse(data["verificationLink"])
    assert link.netloc == "localhost:3000"
    assert link.path == "/verify-email"
    token = parse_qs(link.query)["token"][0]
    assert TOKEN_PATTERN.match(token)

    # The token in the link is the one stored with the row, unverified
    sql, params = mock_cursor.execute.call_args.args
    assert "INSERT INTO registrations" in sql
    assert "false" in sql
    assert params[:3] == ("Jane Doe", "jane@x.com", "+15551234567")
    assert params[3:9] == (None,) * 6
    assert params[9] == []
    assert params[10] == token
    assert mock_conn.commit.called


def test_register_issues_distinct_tokens(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"id": REGISTRATION_ID}
    body = {"fullName": "Jane Doe", "email": "jane@x.com", "phone": "+15551234567"}

    first = client.post("/api/register", json=body).get_json()["verificationLink"]
    second = client.post("/api/register", json=body).get_json()["verificationLink"]

    assert first != second


def test_register_with_all_fields(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"id": REGISTRATION_ID}

    response = client.post("/api/register", json={
        "fullName": "Jane Doe",
        "email": "jane@x.com",
        "phone": "+15551234567",
        "organization": "Acme",
        "jobTitle": "Engineer",
        "streetAddress": "1 Main St",
        "city": "Lagos",
        "country": "Nigeria",
        "heardAboutUs": "",
        "futureInterests": ["AI", "Cloud"],
    })

    assert response.status_code == 200
    params = mock_cursor.execute.call_args.args[1]
    assert params[3:9] == ("Acme", "Engineer", "1 Main St", "Lagos", "Nigeria", None)
    assert params[9] == ["AI", "Cloud"]


def test_register_sends_email_when_configured(client, mock_db, mocker):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"id": REGISTRATION_ID}
    send = mocker.patch(
        "course_site.registration_service.routes.send_verification_email", return_value=True
    )

    response = client.post(
        "/api/register",
        json={"fullName": "Jane Doe", "email": "jane@x.com", "phone": "+15551234567"},
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data == {"id": str(REGISTRATION_ID), "emailSent": True}
    _, recipient, full_name, link = send.call_args.args
    assert recipient == "jane@x.com"
    assert full_name == "Jane Doe"
    assert "/verify-email?token=" in link


@pytest.mark.parametrize("body", [
    {},
    {"fullName": "Jane Doe", "email": "jane@x.com"},
    {"fullName": "Jane Doe", "email": "not-an-email", "phone": "+15551234567"},
    {"fullName": "   ", "email": "jane@x.com", "phone": "+15551234567"},
])
def test_register_invalid_input(client, mock_db, body):
    _, mock_cursor = mock_db

    response = client.post("/api/register", json=body)

    assert response.status_code == 400
    assert "error" in response.get_json()
    assert not mock_cursor.execute.called


def test_register_storage_error(client, mock_db):
    import psycopg2

    _, mock_cursor = mock_db
    mock_cursor.execute.side_effect = psycopg2.OperationalError("connection refused")

    response = client.post(
        "/api/register",
        json={"fullName": "Jane Doe", "email": "jane@x.com", "phone": "+15551234567"},
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "connection refused"


# --- VERIFY EMAIL ---
def test_verify_email_first_redemption(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"id": REGISTRATION_ID, "verified": False, "expired": False}
    mock_cursor.rowcount = 1

    response = client.post("/api/verify-email", json={"token": "a" * 64})

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "message": "Email verified successfully"}
    update_sql = executed_sql(mock_cursor)[1]
    assert "verified = true" in update_sql
    assert "verification_token = NULL" in update_sql
    assert mock_conn.commit.called


def test_verify_email_repeat_redemption(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"id": REGISTRATION_ID, "verified": True, "expired": False}

    response = client.post("/api/verify-email", json={"token": "a" * 64})

    assert response.status_code == 200
    assert response.get_json()["success"] is True
    # Lookup only, no update
    assert len(executed_sql(mock_cursor)) == 1


def test_verify_email_unknown_token(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.post("/api/verify-email", json={"token": "b" * 64})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid or expired verification link"
    assert len(executed_sql(mock_cursor)) == 1


def test_verify_email_expired_token(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"id": REGISTRATION_ID, "verified": False, "expired": True}

    response = client.post("/api/verify-email", json={"token": "a" * 64})

    assert response.status_code == 400
    assert len(executed_sql(mock_cursor)) == 1


@pytest.mark.parametrize("token", [None, "", "short", "x" * 101, "abc def ghij", "'; DROP TABLE--", 12345678901])
def test_verify_email_malformed_token_never_hits_storage(client, mock_db, token):
    _, mock_cursor = mock_db

    response = client.post("/api/verify-email", json={"token": token})

    assert response.status_code == 400
    assert not mock_cursor.execute.called


def test_verify_email_rate_limited(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None
    environ = {"REMOTE_ADDR": "203.0.113.7"}

    codes = [client.post("/api/verify-email", json={"token": "b" * 64}, environ_base=environ).status_code
             for _ in range(11)]

    assert codes[:10] == [400] * 10
    assert codes[10] == 429

    # Other addresses are counted separately
    other = client.post("/api/verify-email", json={"token": "b" * 64},
                        environ_base={"REMOTE_ADDR": "198.51.100.2"})
    assert other.status_code == 400


def test_rotating_forwarded_for_does_not_bypass_limit(client, mock_db):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    codes = [
        client.post(
            "/api/verify-email",
            json={"token": "b" * 64},
            headers={"X-Forwarded-For": f"198.51.100.{i}"},
        ).status_code
        for i in range(11)
    ]

    assert codes[10] == 429


def test_forwarded_for_honoured_behind_trusted_proxy(mock_db, settings):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None
    limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60)
    client = create_app(replace(settings, trusted_proxy_count=1), rate_limiter=limiter).test_client()

    first = client.post("/api/verify-email", json={"token": "b" * 64},
                        headers={"X-Forwarded-For": "203.0.113.7"})
    again = client.post("/api/verify-email", json={"token": "b" * 64},
                        headers={"X-Forwarded-For": "203.0.113.7"})
    other = client.post("/api/verify-email", json={"token": "b" * 64},
                        headers={"X-Forwarded-For": "198.51.100.2"})

    assert first.status_code == 400
    assert again.status_code == 429
    assert other.status_code == 400



# --- ADMIN: REGISTRATIONS ---
def test_list_registrations_any_admin(client, mock_db, admin_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchall.return_value = [
        registration_row(verified=True, verification_token=None, verified_at=datetime(2025, 1, 2, 9, 30))
    ]

    response = client.get("/api/registrations", headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data[0]["id"] == str(REGISTRATION_ID)
    assert data[0]["verified_at"] == "2025-01-02T09:30:00"
    assert data[0]["created_at"] == "2025-01-01T10:00:00"
    assert "ORDER BY created_at DESC" in executed_sql(mock_cursor)[0]


def test_list_registrations_requires_token(client, mock_db):
    assert client.get("/api/registrations").status_code == 401


@pytest.mark.parametrize("method, path", [
    ("post", "/api/registrations"),
    ("put", f"/api/registrations/{REGISTRATION_ID}"),
    ("delete", f"/api/registrations/{REGISTRATION_ID}"),
])
def test_plain_admin_cannot_modify_registrations(client, mock_db, admin_headers, method, path):
    _, mock_cursor = mock_db
    body = {"full_name": "Jane Doe", "email": "jane@x.com", "phone": "+15551234567"}

    response = getattr(client, method)(path, json=body, headers=admin_headers)

    assert response.status_code == 403
    assert not mock_cursor.execute.called


def test_create_registration_snake_case(client, mock_db, super_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = registration_row(job_title="Engineer")

    response = client.post(
        "/api/registrations",
        json={"full_name": "Jane Doe", "email": "jane@x.com", "phone": "+15551234567", "job_title": "Engineer"},
        headers=super_headers,
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data["job_title"] == "Engineer"
    assert data["verified"] is False
    params = mock_cursor.execute.call_args.args[1]
    assert params[4] == "Engineer"
    assert TOKEN_PATTERN.match(params[10])


def test_update_registration(client, mock_db, super_headers):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = registration_row(city="Accra")

    response = client.put(
        f"/api/registrations/{REGISTRATION_ID}",
        json={"full_name": "Jane Doe", "email": "jane@x.com", "phone": "+15551234567", "city": "Accra"},
        headers=super_headers,
    )

    assert response.status_code == 200
    assert response.get_json()["city"] == "Accra"
    sql, params = mock_cursor.execute.call_args.args
    assert "verified" not in sql.split("RETURNING")[0]
    assert params[-1] == REGISTRATION_ID
    assert mock_conn.commit.called


def test_update_registration_not_found(client, mock_db, super_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.put(
        f"/api/registrations/{REGISTRATION_ID}",
        json={"full_name": "Jane Doe", "email": "jane@x.com", "phone": "+15551234567"},
        headers=super_headers,
    )

    assert response.status_code == 404


def test_delete_registration(client, mock_db, super_headers):
    _, mock_cursor = mock_db

    response = client.delete(f"/api/registrations/{REGISTRATION_ID}", headers=super_headers)

    assert response.status_code == 200
    assert response.get_json() == {"success": True}
    assert mock_cursor.execute.call_args.args == (
        "DELETE FROM registrations WHERE id = %s;", (REGISTRATION_ID,)
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"ok": True}
