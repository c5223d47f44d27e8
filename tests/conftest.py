"""Pytest fixtures for org chart engine tests."""

import os

import pytest
import yaml

from orgchart.app import create_app
from orgchart.database import db


# ---------------------------------------------------------------------------
# Test database guard (session-scoped, autouse)
# ---------------------------------------------------------------------------


def _build_test_database_url() -> str:
    """TEST_DATABASE_URL if set (a server database must end in '_test'), else in-memory SQLite."""
    return os.environ.get("TEST_DATABASE_URL") or "sqlite://"


@pytest.fixture(scope="session", autouse=True)
def _force_test_database():
    """Force ALL tests to use the test database. Never connect to production.

    Sets DATABASE_URL before any test or fixture can create a Flask app.
    """
    original = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = _build_test_database_url()

    yield

    if original is not None:
        os.environ["DATABASE_URL"] = original
    else:
        os.environ.pop("DATABASE_URL", None)


@pytest.fixture
def config_path(tmp_path):
    """A config.yaml in a temp app root, so logs land in tmp_path."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "logging": {"level": "DEBUG", "file": "logs/test.log"},
        "hierarchy": {"lock_timeout_seconds": 2, "max_import_rows": 50},
    }))
    return path


@pytest.fixture
def app(config_path):
    """Create a Flask application for testing."""
    app = create_app(config_path=str(config_path), testing=True)

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner."""
    return app.test_cli_runner()


@pytest.fixture
def db_session(app):
    """Provide a database session; tables are emptied afterwards."""
    with app.app_context():
        db.create_all()
        yield db.session
        db.session.rollback()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()


@pytest.fixture
def service(app, db_session):
    """The app's hierarchy service, bound to the test session."""
    return app.extensions["org_hierarchy"]
