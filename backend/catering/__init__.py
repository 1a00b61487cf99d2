# backend/catering/__init__.py
import logging

from flask import Flask
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import CateringError
from .extensions import db, migrate


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CateringError)
    def handle_domain_error(err: CateringError):
        db.session.rollback()
        if err.status_code >= 500:
            app.logger.error("%s: %s", err.__class__.__name__, err)
        else:
            app.logger.info("%s: %s", err.__class__.__name__, err)
        body = {"error": str(err), "type": err.__class__.__name__}
        if err.details:
            body["details"] = err.details
        return body, err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(err: HTTPException):
        return {"error": err.description}, err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return {"error": "Internal server error"}, 500


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Fail at startup on a bad ORDER_WORKFLOW_TRANSITIONS setting
    from .services.order_workflow_service import init_workflow
    init_workflow(app)

    from .routes.system import system_bp
    from .routes.orders import orders_bp
    from .routes.stock_inventories import stock_inventories_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(stock_inventories_bp)

    _register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
