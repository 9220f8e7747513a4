"""Flask application factory for the PPE Console."""

import os

from flask import Flask

from ppe_console.config import get_package_version, get_settings


def create_app() -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    settings = get_settings()
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    # Ten 10 MB images per add-batch plus multipart overhead
    app.config["MAX_CONTENT_LENGTH"] = 128 * 1024 * 1024

    app.config["SETTINGS"] = settings

    from ppe_console.routes.analytics import analytics_bp
    from ppe_console.routes.auth import auth_bp
    from ppe_console.routes.images import images_bp
    from ppe_console.routes.logs import logs_bp
    from ppe_console.routes.settings import settings_bp
    from ppe_console.routes.upload import upload_bp

    app.register_blueprint(upload_bp, url_prefix="/api/upload")
    app.register_blueprint(images_bp, url_prefix="/api/images")
    app.register_blueprint(analytics_bp, url_prefix="/api/analytics")
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")
    app.register_blueprint(logs_bp, url_prefix="/api/logs")

    from ppe_console.services.log_service import get_log_service

    log = get_log_service()
    log.info(
        "app",
        "app_started",
        f"Console started (v{get_package_version()})",
        {"version": get_package_version(), "api_base_url": settings.api_base_url},
    )

    return app
