# backend/backoffice/__init__.py
from flask import Flask, jsonify, request

from .config import Config, engine_options
from .extensions import db, migrate


READY_KEY = "backoffice.ready"


def create_app(config_overrides: dict | None = None) -> Flask:
    """
    Build the application in two phases.

    1. Configuration, database client and credential issuer are constructed.
    2. Only then is the app marked ready; requests arriving earlier get 503.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Every database call is bounded by the collaborator timeout
    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options(app.config["SQLALCHEMY_DATABASE_URI"], app.config["COLLABORATOR_TIMEOUT_SECONDS"]),
    )

    app.extensions[READY_KEY] = False

    @app.before_request
    def reject_until_ready():
        if not app.extensions.get(READY_KEY):
            return jsonify({"error": "Service is starting"}), 503

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.credential_service import EXTENSION_KEY, build_credential_issuer
    app.extensions[EXTENSION_KEY] = build_credential_issuer(app.config)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.permissions import permissions_bp
    from .routes.staff import staff_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(permissions_bp)
    app.register_blueprint(staff_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    app.extensions[READY_KEY] = True
    return app
