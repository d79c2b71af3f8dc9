"""Pytest fixtures for storefront tests.

Every test gets its own SQLite file so that threads see one shared database,
and the FastAPI app is wired to it through dependency overrides.
"""

import os

os.environ["ENV"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DATABASE_URI"] = "sqlite://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"
os.environ["BCRYPT_ROUNDS"] = "4"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from storefront import models  # noqa: F401
from storefront.constants.product_status import PUBLISHED
from storefront.database import get_session
from storefront.dependencies.payments import get_payment_gateway, get_unit_of_work
from storefront.main import app
from storefront.models.product import Product
from storefront.models.user import User
from storefront.services.order_finalizer import OrderFinalizer
from storefront.services.unit_of_work import UnitOfWork
from storefront.utils.hash import hash_password
from storefront.utils.token import create_access_token

from fakes import InMemoryGateway

PASSWORD = "correct-horse-battery"


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def unit_of_work(engine):
    return UnitOfWork(engine, max_attempts=10, backoff=0.01)


@pytest.fixture
def finalizer(gateway, unit_of_work):
    return OrderFinalizer(gateway, unit_of_work)


@pytest.fixture
def client(engine, gateway):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_unit_of_work] = lambda: UnitOfWork(engine, max_attempts=10, backoff=0.01)
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    created = []

    def _make_user(role="user", can_login=True):
        user = User(
            name=f"{role.title()} {len(created) + 1}",
            email=f"{role}{len(created) + 1}@example.com",
            password=hash_password(PASSWORD),
            role=role,
            can_login=can_login,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        created.append(user)
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def make_product(session):
    def _make_product(name="Widget", price="10.00", stock=5, status=PUBLISHED, category_id=None):
        product = Product(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            stock=stock,
            status=status,
            category_id=category_id,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make_product


def auth_headers(user):
    token = create_access_token({"user_id": user.id})
    return {"Authorization": f"Bearer {token}"}


def stock_of(engine, product_id):
    with Session(engine) as fresh:
        product = fresh.get(Product, product_id)
        return product.stock, product.status
