import logging

import click

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, token_settings
from .errors import register_error_handlers
from models import storage
from services.authentication import AuthenticationFlow

__version__ = "1.0.0"

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Refresh Token API",
        "version": __version__,
        "description": "Issues JWT access tokens and rotating refresh tokens with reuse detection.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Keyword overrides are applied on top of the selected config class
    (tests use them to point DATABASE_URL at a temporary database).
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    app.config.update(overrides)
    logging.basicConfig(level=app.config["LOG_LEVEL"])

    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}}, supports_credentials=True)
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)
    register_error_handlers(app)

    storage.timeout = app.config["DB_TIMEOUT_SECONDS"]
    storage.reload(app.config["DATABASE_URL"])
    flow = AuthenticationFlow(storage, token_settings(app.config))
    app.extensions["auth_flow"] = flow

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/users")
    app.register_blueprint(users_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.cli.command("seed-users")
    def seed_users():
        """Create the demo 'test' and 'admin' users if they are missing."""
        for user in flow.seed_users():
            click.echo(f"created user {user.username} ({user.id})")

    if app.config.get("SEED_USERS"):
        flow.seed_users()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Refresh Token API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
