"""Engine, schema and connectivity for the org chart store.

PostgreSQL deployments get a pooled engine and an Alembic-managed schema via
Flask-Migrate. SQLite (local runs and the test suite) has no migration
history, so its schema is built straight from the models.
"""

import logging
from typing import Tuple

from flask import Flask
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import inspect, text

from .config import get_database_url, get_value, mask_database_url

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

# Tables the hierarchy service cannot run without
REQUIRED_TABLES = ("departments", "positions")


def is_sqlite_url(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def engine_options(config: dict, database_url: str) -> dict:
    """Pool settings for server databases; SQLite keeps Flask-SQLAlchemy's defaults."""
    if is_sqlite_url(database_url):
        return {}
    return {
        "pool_size": get_value(config, "database", "pool_size", default=10),
        "pool_timeout": get_value(config, "database", "pool_timeout", default=30),
        "pool_recycle": 3600,
        "pool_pre_ping": True,
        # Advisory locks hold a connection each; fail fast rather than queue
        "connect_args": {"connect_timeout": 5},
    }


def init_database(app: Flask, config: dict) -> bool:
    """Bind the app to its database and make sure the org chart tables exist.

    Returns False (and logs) when the database is unreachable; the app still
    starts so /health can report the outage.
    """
    database_url = get_database_url(config)
    masked_url = mask_database_url(database_url)

    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    options = engine_options(config, database_url)
    if options:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options

    db.init_app(app)
    migrate.init_app(app, db)

    connected = verify_connection(app)
    if not connected:
        logger.error(f"Database connection failed: {masked_url}")
        return False

    logger.info(f"Database connected to {masked_url}")
    if is_sqlite_url(database_url):
        create_schema(app)
    else:
        missing = missing_tables(app)
        if missing:
            logger.warning(
                f"Org chart tables missing ({', '.join(missing)}); run 'flask db upgrade'"
            )
    return True


def create_schema(app: Flask) -> None:
    # Models must be imported so their tables are on db.metadata
    from . import models  # noqa: F401

    with app.app_context():
        db.create_all()
    logger.info("SQLite schema created from models")


def missing_tables(app: Flask) -> list[str]:
    with app.app_context():
        existing = set(inspect(db.engine).get_table_names())
    return [name for name in REQUIRED_TABLES if name not in existing]


def verify_connection(app: Flask) -> bool:
    try:
        with app.app_context():
            db.session.execute(text("SELECT 1"))
            db.session.commit()
        return True
    except Exception as e:
        logger.error(f"Database connection verification failed: {e}")
        return False


def check_database_health() -> Tuple[bool, str | None]:
    """Check the current app's database for /health.

    Returns:
        (connected, error) where error is the exception type plus at most
        100 characters of its message, never the full driver output.
    """
    try:
        db.session.execute(text("SELECT 1"))
        db.session.commit()
        return True, None
    except Exception as e:
        return False, f"{type(e).__name__}: {str(e)[:100]}"
