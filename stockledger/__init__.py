import logging
import uuid

from flask import Flask, current_app, g, request
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .extensions import db
from .errors import BackendError
from .routes import catalog, dashboard, errors, health, history, products, transfer
from .utils.logging import configure_logging
from config import Config
from . import models  # ensure models are registered with SQLAlchemy


logger = logging.getLogger(__name__)


def _ping_database() -> None:
    """Raise :class:`OperationalError` when the configured database is unreachable."""

    with db.engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    app.config.setdefault("DATABASE_AVAILABLE", True)
    app.config.setdefault("DATABASE_ERROR", None)

    if not app.testing:
        configure_logging(app)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    db.init_app(app)

    database_available = True
    database_error_message: str | None = None

    # create tables if they do not exist
    with app.app_context():
        try:
            _ping_database()
        except OperationalError as exc:
            database_available = False
            root_cause = getattr(exc, "orig", exc)
            details = str(root_cause).strip()
            database_error_message = (
                "Unable to connect to the configured database. Start the "
                "database service or update the DB_URL setting, then restart "
                "the API."
            )
            if details:
                database_error_message += f" (Error: {details})"
            message_suffix = f": {details}" if details else ""
            current_app.logger.error(
                "Database connection unavailable during startup%s",
                message_suffix,
                exc_info=current_app.debug,
            )
            db.session.remove()
            db.engine.dispose()
        else:
            try:
                db.create_all()
            except SQLAlchemyError:
                database_available = False
                database_error_message = (
                    "The database schema could not be initialized. Review the logs "
                    "for details and run the migrations once resolved."
                )
                current_app.logger.exception("Database initialization error")
                db.session.remove()

    app.config["DATABASE_AVAILABLE"] = database_available
    app.config["DATABASE_ERROR"] = database_error_message

    @app.before_request
    def _assign_request_id():
        incoming = (request.headers.get("X-Request-ID") or "").strip()
        g.request_id = incoming[:64] or uuid.uuid4().hex

    @app.before_request
    def _require_database():
        if not request.path.startswith("/api/"):
            return None
        if not current_app.config.get("DATABASE_AVAILABLE", True):
            raise BackendError(
                current_app.config.get("DATABASE_ERROR") or "The database is unavailable."
            )
        return None

    @app.after_request
    def _echo_request_id(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    # register blueprints
    app.register_blueprint(errors.bp)
    app.register_blueprint(health.bp)
    app.register_blueprint(transfer.bp)
    app.register_blueprint(products.bp)
    app.register_blueprint(history.bp)
    app.register_blueprint(catalog.bp)
    app.register_blueprint(dashboard.bp)

    logger.info(
        "Stock ledger API ready (database available: %s)", database_available
    )
    return app
