"""
Outbound email through the configured SMTP relay.

Delivery is best effort: callers get a boolean and decide what to do when
the message could not be sent.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from html import escape
from urllib.parse import quote

from course_site.config import Settings

VERIFY_SUBJECT = "Verify Your Email - Digital Skills Mastery Course"
SMTP_TIMEOUT_SECONDS = 15


def build_verification_link(app_url: str, token: str) -> str:
    return f"{app_url.rstrip('/')}/verify-email?token={quote(token, safe='')}"


def _compose_verification_email(full_name: str, link: str, ttl_hours: int = 0) -> tuple:
    validity = f"The link is valid for {ttl_hours} hours." if ttl_hours else ""
    text_body = (
        f"Hello {full_name},\n\n"
        "Thank you for registering for the Digital Skills Mastery Course.\n"
        f"Please verify your email address by opening this link:\n{link}\n\n"
        f"{validity}\n"
    )
    html_body = (
        f"<p>Hello {escape(full_name)}</p>"
        "<p>Thank you for registering for the Digital Skills Mastery Course.</p>"
        f'<p>Please verify your email: <a href="{escape(link, quote=True)}">Verify</a></p>'
        f"<p>{validity}</p>"
    )
    return text_body, html_body


def send_verification_email(settings: Settings, recipient: str, full_name: str, link: str) -> bool:
    """
    Send the verification link to a new registrant.

    Returns:
        bool: True if the relay accepted the message; False if mail is not
        configured or delivery failed.
    """
    if not settings.mail_configured:
        logging.info("SMTP credentials not configured; skipping verification email")
        return False

    try:
        text_body, html_body = _compose_verification_email(
            full_name, link, settings.verification_token_ttl_hours
        )

        msg = EmailMessage()
        msg["Subject"] = VERIFY_SUBJECT
        msg["From"] = settings.smtp_from
        msg["To"] = recipient
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT_SECONDS) as server:
            server.starttls(context=ssl.create_default_context())
            server.login(settings.smtp_login, settings.smtp_password)
            server.send_message(msg)
    except Exception:
        # Registration must not fail because of the relay
        logging.exception("Verification email failed (non-fatal)")
        return False

    logging.info("Verification email sent via SMTP")
    return True
