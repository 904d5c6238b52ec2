# cinestream/app.py
# Run locally with `flask --app cinestream run` or `python -m cinestream.app`.
import logging
import time

from flask import Flask, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .cli import register_commands
from .config import Settings
from .errors import ApiError
from .models import db
from .responses import failure, success
from .routes import register_blueprints
from .services import EmailService, MediaService

API_VERSION = "1.0.0"


def create_app(settings=None):
    if settings is None:
        settings = Settings.from_env()
    settings.validate()

    app = Flask(__name__)
    app.config.from_mapping(settings.flask_config())
    app.extensions["settings"] = settings
    app.extensions["email"] = EmailService(settings)
    app.extensions["media"] = MediaService(settings)
    app.config["STARTED_AT"] = time.time()

    _configure_logging(app, settings)
    db.init_app(app)

    # Ensure DB tables exist
    with app.app_context():
        try:
            db.create_all()
        except Exception:
            app.logger.exception("DB create_all failed")
            raise

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    # ---------------- HEALTH ----------------
    @app.route("/health")
    def health():
        return success("Server is running", {
            "environment": settings.app_env,
            "uptime": round(time.time() - app.config["STARTED_AT"], 3),
        })

    # ---------------- API INDEX ----------------
    @app.route("/")
    def index():
        return success("Welcome to the CineStream API", {
            "version": API_VERSION,
            "endpoints": {
                "health": "/health",
                "auth": "/api/auth",
                "users": "/api/users",
                "movies": "/api/movies",
                "favorites": "/api/favorites",
                "ratings": "/api/ratings",
                "comments": "/api/comments",
            },
        })

    app.logger.info("CineStream configured: %s", settings.summary())
    return app


def _configure_logging(app, settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(getattr(logging, settings.log_level, logging.INFO))


def register_error_handlers(app):
    settings = app.extensions["settings"]

    @app.errorhandler(ApiError)
    def handle_api_error(exc):
        if exc.status_code >= 500:
            app.logger.error("%s %s failed: %s", request.method, request.path, exc.message)
        return failure(exc.message, exc.status_code, error=exc.error, details=exc.details)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc):
        db.session.rollback()
        app.logger.warning("Integrity error on %s %s: %s", request.method, request.path, exc.orig)
        return failure("Resource already exists", 409, error="Duplicate value for a unique field")

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        if exc.code == 404:
            return failure("Route not found", 404, error=f"Cannot {request.method} {request.path}")
        return failure(exc.name, exc.code, error=exc.description)

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        detail = "Something went wrong" if settings.is_production else str(exc)
        return failure("Internal server error", 500, error=detail)


if __name__ == "__main__":
    app = create_app()
    app.run(port=app.extensions["settings"].port, debug=app.extensions["settings"].is_development)
