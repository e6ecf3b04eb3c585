# backend/hotelops/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        # Must land before db.init_app, which builds the engine from config
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .immutability import register_immutability_listeners
    register_immutability_listeners()

    # Register blueprints
    from .routes.system import system_bp
    from .routes.departments import departments_bp
    from .routes.inventory import inventory_bp
    from .routes.extras import extras_bp
    from .routes.orders import orders_bp
    from .routes.transfers import transfers_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(departments_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(extras_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(transfers_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
