# backend/shopledger/__init__.py
import atexit
import logging

from flask import Flask

from .config import Config
from .extensions import configure_engine, db


def create_app(config_object=None, snapshot_slot=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("shopledger").setLevel(app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)

    # Import models so the metadata is complete before the schema is applied
    from . import models  # noqa: F401
    from .services.snapshot_service import SnapshotManager, build_slot
    from .services.store import LedgerStore

    snapshots = SnapshotManager(
        snapshot_slot or build_slot(app.config),
        attempts=app.config["SNAPSHOT_RETRY_ATTEMPTS"],
        backoff_base=app.config["SNAPSHOT_RETRY_BACKOFF"],
    )
    store = LedgerStore(db, snapshots)
    with app.app_context():
        configure_engine(db.engine)
        store.open(db.engine)
    app.extensions["ledger_store"] = store

    if not app.testing:
        atexit.register(store.close)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.shops import shops_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.sales import sales_bp
    from .routes.expenses import expenses_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(shops_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(expenses_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
