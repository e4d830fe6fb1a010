"""Shared pytest fixtures.

Every test gets a fresh file-backed SQLite database so that worker threads
in the concurrency tests see the same data through their own connections.
"""

import itertools
import os

import pytest

os.environ["APP_SECRET_KEY"] = "test-secret-key"
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["FLASK_ENV"] = "development"

from app import create_app  # noqa: E402
from extensions import db  # noqa: E402
from services.accounts import register  # noqa: E402
from services.subscriptions import subscribe  # noqa: E402
from services.uow import run_in_transaction  # noqa: E402

TEST_PASSWORD = "testpassword"


@pytest.fixture
def app(tmp_path, monkeypatch):
    """Create application for testing, inside an application context."""
    monkeypatch.setenv("DATABASE_URI", f"sqlite:///{tmp_path / 'ledger.db'}")
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "absent.yaml"))
    application = create_app()
    application.config["TESTING"] = True
    application.config["WTF_CSRF_ENABLED"] = False
    with application.app_context():
        yield application
        db.engine.dispose()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Register users; returns their IDs to avoid detached instance errors."""
    counter = itertools.count(1)

    def _make(plan=None, email=None, first_name="Olivia", last_name="Owner"):
        user = register(
            email or f"user{next(counter)}@example.com",
            TEST_PASSWORD,
            first_name=first_name,
            last_name=last_name,
        )
        if plan:
            subscribe(user.id, plan)
        return user.id

    return _make


@pytest.fixture
def update_row():
    """Poke a column directly, for arranging edge cases."""

    def _update(model, row_id, **values):
        def work(store):
            row = store.session.get(model, row_id)
            for key, value in values.items():
                setattr(row, key, value)

        run_in_transaction(work)

    return _update


@pytest.fixture
def fetch():
    """Load a fresh copy of a row, or all rows of a model matching filters."""

    def _fetch(model, row_id=None, **filters):
        def work(store):
            if row_id is not None:
                return store.session.get(model, row_id)
            query = store.session.query(model).filter_by(**filters).order_by(model.id)
            return query.all()

        return run_in_transaction(work)

    return _fetch
