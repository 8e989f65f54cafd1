from __future__ import annotations

import os

import pytest
from werkzeug.security import generate_password_hash

from invoicedesk import create_admin_user, create_app, db
from invoicedesk.models import Customer, User

os.environ.setdefault("SECRET_KEY", "testsecret")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ADMIN_PASS", "adminpass")


def _build_app(tmp_path, **overrides):
    config = {
        "TESTING": True,
        "WTF_CSRF_ENABLED": False,
        "RATELIMIT_ENABLED": False,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'invoices.db'}",
    }
    config.update(overrides)
    return create_app(["--demo"], config)


@pytest.fixture
def app(tmp_path):
    app = _build_app(tmp_path)
    with app.app_context():
        db.create_all()
        create_admin_user()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def csrf_app(tmp_path):
    """Application with CSRF protection left on."""
    app = _build_app(tmp_path, WTF_CSRF_ENABLED=True)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def customer(app):
    customer = Customer(id="c1", name="Evil Rabbit", email="evil@rabbit.com")
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture
def user(app):
    user = User(
        name="Test User",
        email="user@example.com",
        password=generate_password_hash("password123"),
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def auth_client(client, user):
    """Test client with ``user`` already signed in."""
    from tests.utils import login

    login(client, "user@example.com", "password123")
    return client


@pytest.fixture
def second_app(app, tmp_path):
    """A second application instance on ``app``'s database, like another worker."""
    return _build_app(tmp_path)
