"""Shared pytest fixtures for tienda tests."""
import os

# Configuracion antes de importar tienda: Settings se lee una sola vez
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PASSWORD_SCHEMES"] = "pbkdf2_sha256"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tienda.app import app
from tienda.auth.models import User
from tienda.config import get_settings
from tienda.db import Base, configure_sqlite, get_db
from tienda.productos.models import Product
from tienda.security import ROLE_ADMIN, ROLE_CUSTOMER, create_access_token, hash_password


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def override_settings(settings):
    """Swap configuration for the app, e.g. ``override_settings(order_total_policy="client")``."""

    def _override(**changes):
        changed = settings.model_copy(update=changes)
        app.dependency_overrides[get_settings] = lambda: changed
        return changed

    return _override


def _make_user(db, email, role):
    user = User(email=email, password_hash=hash_password("secret123"), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def customer(db):
    return _make_user(db, "ana@mail.com", ROLE_CUSTOMER)


@pytest.fixture
def other_customer(db):
    return _make_user(db, "bruno@mail.com", ROLE_CUSTOMER)


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@mail.com", ROLE_ADMIN)


def auth_header(user, settings):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role, settings)}"}


@pytest.fixture
def customer_headers(customer, settings):
    return auth_header(customer, settings)


@pytest.fixture
def other_headers(other_customer, settings):
    return auth_header(other_customer, settings)


@pytest.fixture
def admin_headers(admin, settings):
    return auth_header(admin, settings)


@pytest.fixture
def make_product(db):
    def _make(name="Phone", price="100.00", in_stock=True, **kwargs):
        p = Product(name=name, price=Decimal(price), in_stock=in_stock, **kwargs)
        db.add(p)
        db.commit()
        db.refresh(p)
        return p

    return _make


@pytest.fixture
def phone(make_product):
    return make_product(name="Phone X", price="100.00", image_url="https://img/phone.png")


@pytest.fixture
def charger(make_product):
    return make_product(name="Charger", price="25.50")
