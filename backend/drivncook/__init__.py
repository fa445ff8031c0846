# backend/drivncook/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


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

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp  # Sessions and self-registration
    from .routes.franchises import franchises_bp  # Franchise network and documents
    from .routes.vehicles import vehicles_bp, maintenance_bp  # Fleet
    from .routes.warehouses import warehouses_bp  # Catalog: warehouses
    from .routes.products import products_bp, categories_bp  # Catalog: products
    from .routes.stocks import stocks_bp  # Inventory adjustments
    from .routes.orders import orders_bp  # Order lifecycle
    from .routes.order_items import order_items_bp  # Order lines and stock reservations
    from .routes.invoices import invoices_bp  # Royalty and order invoices
    from .routes.sales_reports import sales_reports_bp  # Daily sales declarations
    from .routes.payments import payments_bp  # Stripe payments and webhooks
    from .routes.notifications import notifications_bp  # In-app inbox
    from .routes.dashboard import dashboard_bp  # Statistics
    from .routes.admin import admin_bp  # Head office operations
    from .routes.pages import pages_bp  # Section guard and placeholder pages

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(franchises_bp)
    app.register_blueprint(vehicles_bp)
    app.register_blueprint(maintenance_bp)
    app.register_blueprint(warehouses_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(stocks_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(order_items_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(sales_reports_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(pages_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in set(app.config.get("CORS_ORIGINS", [])):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, Stripe-Signature"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
