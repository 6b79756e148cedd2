# washstation/__init__.py
from __future__ import annotations

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .settings import Config
from .extensions import db, migrate, login_manager, limiter
from .cache import init_cache
from .errors import ApiError


def create_app(config_object=None, cache=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.json.sort_keys = app.config.get("JSON_SORT_KEYS", False)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # ======================
    # Initialize Extensions
    # ======================
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)
    init_cache(app, cache)

    # ======================
    # Import Models (CRITICAL)
    # ======================
    from . import models  # noqa: F401

    # ======================
    # Register Blueprints
    # ======================
    from .auth import auth
    from .routes import API_BLUEPRINTS

    app.register_blueprint(auth)
    for bp in API_BLUEPRINTS:
        app.register_blueprint(bp)

    register_error_handlers(app)
    return app


def register_error_handlers(app: Flask) -> None:
    # ======================
    # Domain errors
    # ======================
    @app.errorhandler(ApiError)
    def api_error(e):
        if e.status_code >= 500:
            app.logger.error("%s: %s", e.message, e.details)
        return jsonify(e.to_dict()), e.status_code

    # ======================
    # Rate limit error handler
    # ======================
    @app.errorhandler(429)
    def ratelimit_handler(e):
        return jsonify({"error": "Too many requests. Please try again later."}), 429

    # ======================
    # Auth / routing errors
    # ======================
    @app.errorhandler(401)
    def unauthorized(e):
        return jsonify({"error": "Access denied"}), 401

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({"error": "Access denied. Admin privileges required."}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    # ======================
    # Anything else
    # ======================
    @app.errorhandler(Exception)
    def unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description or e.name}), e.code
        app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error", "details": str(e)}), 500
