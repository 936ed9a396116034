# backend/phoneshop/__init__.py
import logging

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before extensions bind (tests swap the database URI)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.catalog import categories_bp, products_bp
    from .routes.partners import customers_bp, suppliers_bp
    from .routes.imeis import imeis_bp
    from .routes.purchases import purchases_bp
    from .routes.sales import sales_bp
    from .routes.expenses import expenses_bp
    from .routes.installments import installments_bp
    from .routes.aftersales import repairs_bp, trade_ins_bp, warranties_bp
    from .routes.reports import dashboard_bp, reports_bp
    from .routes.communications import audit_logs_bp, notifications_bp

    for blueprint in (
        system_bp,
        auth_bp,
        users_bp,
        categories_bp,
        products_bp,
        customers_bp,
        suppliers_bp,
        imeis_bp,
        purchases_bp,
        sales_bp,
        expenses_bp,
        installments_bp,
        repairs_bp,
        trade_ins_bp,
        warranties_bp,
        dashboard_bp,
        reports_bp,
        notifications_bp,
        audit_logs_bp,
    ):
        app.register_blueprint(blueprint)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """JSON bodies for unrouted paths, wrong methods and unhandled failures."""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_exception(e: Exception):
        db.session.rollback()
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500
