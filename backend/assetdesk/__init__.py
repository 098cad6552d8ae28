# backend/assetdesk/__init__.py
import os

from flask import Flask

from .config import Config
from .extensions import db, migrate



def create_app(config_object=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    # Relative SQLite paths resolve inside the instance folder
    os.makedirs(app.instance_path, exist_ok=True)

    from .logging_cfg import setup_logging
    setup_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.assets import assets_bp
    from .routes.invoices import invoices_bp
    from .routes.movements import movements_bp
    from .routes.verification import verification_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(assets_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(movements_bp)
    app.register_blueprint(verification_bp)
    app.register_blueprint(reports_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
