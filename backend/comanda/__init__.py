# backend/comanda/__init__.py
import traceback

from flask import Flask, current_app, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate, sock
from .responses import error_response



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # /ws is registered on flask-sock's blueprint at import time
    from . import realtime  # noqa: F401
    sock.init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.inventory import inventory_bp
    from .routes.recipes import recipes_bp
    from .routes.products import products_bp
    from .routes.production_areas import production_areas_bp
    from .routes.clients import clients_bp
    from .routes.tables import tables_bp
    from .routes.orders import orders_bp
    from .routes.sales import sales_bp
    from .routes.purchasing import purchasing_bp
    from .routes.cash_register import cash_register_bp
    from .routes.stock import stock_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(recipes_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(production_areas_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(tables_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchasing_bp)
    app.register_blueprint(cash_register_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(reports_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            o.strip() for o in app.config.get("FRONTEND_URL", "").split(",") if o.strip()
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

    return app


def register_error_handlers(app: Flask) -> None:
    """
    Map domain exceptions raised by services to the JSON error envelope.

    Every handler rolls back the session first so a failed write never
    leaks into the next request on the same scoped session.
    """
    from .validation import ConflictError, ValidationError
    from .services.auth_service import PasswordValidationError, RegistrationError
    from .services.cash_service import CashRegisterError
    from .services.document_service import DocumentSequenceError
    from .services.order_service import OrderError
    from .services.purchase_service import PurchaseError
    from .services.sales_service import SaleError
    from .services.stock_service import StockError
    from .services.tenant_service import NotFoundError, TenantAccessError

    bad_request = (
        ValidationError,
        ConflictError,
        SaleError,
        PurchaseError,
        OrderError,
        CashRegisterError,
        StockError,
        RegistrationError,
        PasswordValidationError,
        DocumentSequenceError,
    )

    def handle_bad_request(exc):
        db.session.rollback()
        return error_response(str(exc), 400)

    for exc_class in bad_request:
        app.register_error_handler(exc_class, handle_bad_request)

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc):
        db.session.rollback()
        return error_response(str(exc), 404)

    @app.errorhandler(TenantAccessError)
    def handle_tenant_access(exc):
        db.session.rollback()
        return error_response(str(exc), 401)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc):
        db.session.rollback()
        current_app.logger.warning("Integrity error: %s", exc.orig)
        return error_response("Duplicate or conflicting record", 400)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc):
        return error_response(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        db.session.rollback()
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        extra = {}
        if current_app.config.get("APP_ENV") != "production":
            extra["stack"] = traceback.format_exc()
        return error_response("Internal server error", 500, **extra)
