from flask import Flask
from flasgger import Swagger
from flask_cors import CORS
import logging

from .config import get_config, validate_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from models.repositories import SqlUserRepository, SqlRefreshTokenRepository
from services.access_tokens import AccessTokenCodec, SigningKey
from services.auth_service import AuthService
from services.refresh_tokens import RefreshTokenManager
from services.request_auth import RequestAuthenticator
from utils.decorators import authenticate_request
from utils.security import Argon2Hasher

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Token Auth API",
        "version": "1.0.0",
        "description": "Registration, login, rotating refresh tokens and bearer authentication.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
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


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def init_auth(app: Flask) -> None:
    """Build the token core once per app; the signing key is never re-derived."""
    signing_key = SigningKey.from_secret(app.config["JWT_SECRET"], app.config["JWT_ALGORITHM"])
    codec = AccessTokenCodec(signing_key, app.config["ACCESS_TOKEN_EXPIRES"])
    users = SqlUserRepository(storage)
    refresh_tokens = RefreshTokenManager(
        SqlRefreshTokenRepository(storage),
        storage,
        app.config["REFRESH_TOKEN_EXPIRES"],
    )

    app.extensions["access_token_codec"] = codec
    app.extensions["refresh_token_manager"] = refresh_tokens
    app.extensions["auth_service"] = AuthService(
        users,
        Argon2Hasher(),
        codec,
        refresh_tokens,
        storage,
        default_role=app.config["DEFAULT_ROLE"],
    )
    app.extensions["request_authenticator"] = RequestAuthenticator(codec, users)


def create_app(config_name: str | None = None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Keyword overrides are applied on top of the selected config class.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    app.config.update(overrides)
    validate_config(app.config)
    configure_logging(app.config["LOG_LEVEL"])

    storage.configure(app.config["DATABASE_URL"], echo=app.config["SQL_ECHO"])
    storage.reload()

    # Cross-Origin Resource Sharing: enable for dev, configurable for prod
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    init_auth(app)
    app.before_request(authenticate_request)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1")
    app.register_blueprint(users_bp, url_prefix="/api/v1")

    from . import sweeper
    sweeper.init_app(app)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Token Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
