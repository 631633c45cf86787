# backend/resellerpro/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate, mail



def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        # Must land before extensions bind (engine options are read at init)
        app.config.update(overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.orders import orders_bp
    from .routes.enquiries import enquiries_bp
    from .routes.subscription import subscription_bp
    from .routes.settings import settings_bp
    from .routes.notifications import notifications_bp
    from .routes.security import security_bp
    from .routes.analytics import analytics_bp
    from .routes.webhooks import webhooks_bp
    from .routes.cron import cron_bp
    from .routes.admin import admin_bp
    from .routes.public import public_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(enquiries_bp)
    app.register_blueprint(subscription_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(security_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(cron_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(public_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ALLOWED_ORIGINS", set()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
