"""
Application settings.

Everything the services need from the environment is read here once, at
startup, and handed to the Flask app as a single `Settings` object
(`app.config["SETTINGS"]`). Route modules fetch it with `get_settings()`.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv
from flask import current_app

DEFAULT_SMTP_FROM = "Digital Skills Training <noreply@dependifyllc.com>"


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret: str
    admin_token_expiration_minutes: int = 120
    app_url: str = "http://localhost:3000"

    # --- Mail relay (Brevo by default) ---
    smtp_host: str = "smtp-relay.brevo.com"
    smtp_port: int = 587
    smtp_login: str = ""
    smtp_password: str = ""
    smtp_from: str = DEFAULT_SMTP_FROM

    # --- Admin bootstrap ---
    superadmin_email: str = ""
    admin_seed_token: str = ""

    # --- Email verification ---
    verification_token_ttl_hours: int = 24
    verify_rate_limit: int = 10
    verify_rate_window_seconds: int = 60

    # Reverse proxies in front of the app; 0 means clients connect directly
    trusted_proxy_count: int = 0

    cors_origins: Tuple[str, ...] = ("*",)
    port: int = 3000

    @property
    def mail_configured(self) -> bool:
        return bool(self.smtp_login and self.smtp_password)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """
        Build settings from environment variables.

        Loads `.env` (or `env_file`), falling back to `.env.local` when
        DATABASE_URL is still unset.

        Raises:
            RuntimeError: If DATABASE_URL or JWT_SECRET is missing.
        """
        load_dotenv(env_file)
        if not os.getenv("DATABASE_URL"):
            load_dotenv(".env.local")

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")

        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            raise RuntimeError("JWT_SECRET is missing. Set it in .env")

        origins = tuple(
            o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
        )

        return cls(
            database_url=database_url,
            jwt_secret=jwt_secret,
            admin_token_expiration_minutes=int(os.getenv("ADMIN_TOKEN_EXPIRATION_MINUTES", 120)),
            app_url=os.getenv("APP_URL", "http://localhost:3000").rstrip("/"),
            smtp_host=os.getenv("SMTP_HOST", "smtp-relay.brevo.com"),
            smtp_port=int(os.getenv("SMTP_PORT", 587)),
            smtp_login=os.getenv("SMTP_LOGIN") or os.getenv("BREVO_SMTP_LOGIN", ""),
            smtp_password=os.getenv("SMTP_PASSWORD") or os.getenv("BREVO_SMTP_PASSWORD", ""),
            smtp_from=os.getenv("SMTP_FROM", DEFAULT_SMTP_FROM),
            superadmin_email=os.getenv("SUPERADMIN_EMAIL", "").strip().lower(),
            admin_seed_token=os.getenv("ADMIN_SEED_TOKEN", ""),
            verification_token_ttl_hours=int(os.getenv("VERIFICATION_TOKEN_TTL_HOURS", 24)),
            verify_rate_limit=int(os.getenv("VERIFY_RATE_LIMIT", 10)),
            verify_rate_window_seconds=int(os.getenv("VERIFY_RATE_WINDOW_SECONDS", 60)),
            trusted_proxy_count=int(os.getenv("TRUSTED_PROXY_COUNT", 0)),
            cors_origins=origins or ("*",),
            port=int(os.getenv("PORT", 3000)),
        )


def get_settings() -> Settings:
    """Return the settings of the running Flask app."""
    return current_app.config["SETTINGS"]
