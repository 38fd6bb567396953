"""
API gateway: combines the registration and admin blueprints.
This is the local entrypoint for development.
"""

import logging
import sys
from typing import Optional, Tuple

from flask import Flask, Response, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from course_site.auth_service.routes import admin_bp
from course_site.config import Settings
from course_site.database.init_db import ensure_schema
from course_site.errors import ApiError
from course_site.registration_service.rate_limit import FixedWindowRateLimiter
from course_site.registration_service.routes import RATE_LIMITER_KEY, registrations_bp

# Basic console logging during API requests
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")


def create_app(
    settings: Optional[Settings] = None,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        settings: Configuration; read from the environment when omitted.
        rate_limiter: Limiter for /api/verify-email; one is built from the
            settings when omitted.

    Returns:
        Flask: The configured Flask application.
    """
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    if rate_limiter is None:
        rate_limiter = FixedWindowRateLimiter(
            max_requests=settings.verify_rate_limit,
            window_seconds=settings.verify_rate_window_seconds,
        )
    app.extensions[RATE_LIMITER_KEY] = rate_limiter

    # Only trust X-Forwarded-* hops added by our own proxies
    if settings.trusted_proxy_count:
        n = settings.trusted_proxy_count
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=n, x_proto=n)

    CORS(app, resources={
        r"/*": {
            "origins": list(settings.cors_origins),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-Seed-Token"],
        }
    })

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(registrations_bp, url_prefix="/api")
    app.register_blueprint(admin_bp, url_prefix="/api")

    register_error_handlers(app)

    # --- BASIC HEALTH CHECKPOINT ---
    @app.route("/health")
    def health():
        """
        Health check endpoint.
        """
        return jsonify({"ok": True}), 200

    return app


def register_error_handlers(app: Flask) -> None:
    """Render every failure as {"error": message}."""

    @app.errorhandler(ApiError)
    def api_error(error: ApiError) -> Tuple[Response, int]:
        return jsonify({"error": error.message}), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException) -> Tuple[Response, int]:
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def unexpected_error(error: Exception) -> Tuple[Response, int]:
        logging.exception("Unhandled error while serving request")
        return jsonify({"error": str(error) or "Request failed"}), 400


if __name__ == "__main__":
    try:
        app = create_app()
    except RuntimeError as e:
        logging.error(str(e))
        sys.exit(1)

    ensure_schema(app.config["SETTINGS"].database_url)
    app.run(host="0.0.0.0", port=app.config["SETTINGS"].port, debug=True)
