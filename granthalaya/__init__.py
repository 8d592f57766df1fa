import uuid

from flask import Flask, current_app, g, request
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from config import Config

from . import models  # ensure models are registered with SQLAlchemy
from .cli import register_cli
from .extensions import PACKING_EXTENSION, SCANNER_EXTENSION, db
from .routes import admin, errors, health, packing, products, racks, scanning
from .scanner import ScannerRegistry
from .services.packing import PackingStationRegistry
from .utils.logging import configure_logging


def _ping_database() -> None:
    """Raise :class:`OperationalError` when the configured database is unreachable."""

    with db.engine.connect() as connection:
        connection.execute(text("SELECT 1"))


def _initialize_database(app: Flask) -> None:
    database_available = True
    database_error_message: str | None = None

    with app.app_context():
        try:
            _ping_database()
        except OperationalError as exc:
            database_available = False
            details = str(getattr(exc, "orig", exc)).strip()
            database_error_message = (
                "Unable to connect to the configured database. Start the "
                "PostgreSQL service or update the DB_URL setting."
            )
            if details:
                database_error_message += f" (Error: {details})"
            current_app.logger.error(
                "Database connection unavailable during startup%s",
                f": {details}" if details else "",
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
                    "and run `alembic upgrade head`."
                )
                current_app.logger.exception("Database initialization error")
                db.session.remove()

    app.config["DATABASE_AVAILABLE"] = database_available
    app.config["DATABASE_ERROR"] = database_error_message


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    app.config.setdefault("DATABASE_AVAILABLE", True)
    app.config.setdefault("DATABASE_ERROR", None)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    configure_logging(app)
    db.init_app(app)

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _echo_request_id(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers.setdefault("X-Request-ID", request_id)
        return response

    _initialize_database(app)

    # Station state lives in process memory, one registry per app.
    app.extensions[SCANNER_EXTENSION] = ScannerRegistry(
        burst_threshold_ms=float(app.config["SCANNER_BURST_THRESHOLD_MS"]),
        min_scan_length=int(app.config["SCANNER_MIN_SCAN_LENGTH"]),
    )
    app.extensions[PACKING_EXTENSION] = PackingStationRegistry()

    # register blueprints
    app.register_blueprint(health.bp)
    app.register_blueprint(products.bp)
    app.register_blueprint(racks.bp)
    app.register_blueprint(scanning.bp)
    app.register_blueprint(packing.bp)
    app.register_blueprint(admin.bp)
    app.register_blueprint(errors.bp)

    register_cli(app)

    return app
