from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from brainxcel.config import Settings
from brainxcel.gateway import GatewayError, GatewayResult
from brainxcel.main import create_app
from brainxcel.models import Course, User


class FakeGateway:
    def __init__(self):
        self.fail = False
        self.subscriptions = []
        self.cancelled = []
        self.orders = []

    def _check(self):
        if self.fail:
            raise GatewayError("gateway down")

    def create_subscription(self, plan_id, email):
        self._check()
        sub_id = f"sub_{len(self.subscriptions) + 1}"
        self.subscriptions.append((sub_id, plan_id, email))
        return GatewayResult(sub_id, "created")

    def cancel_subscription(self, subscription_id):
        self._check()
        self.cancelled.append(subscription_id)
        return GatewayResult(subscription_id, "cancelled")

    def create_order(self, amount, currency):
        self._check()
        order_id = f"order_{len(self.orders) + 1}"
        self.orders.append((order_id, amount, currency))
        return GatewayResult(order_id, "created")


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.deliver = True
        self.broken = False

    def send(self, to, subject, html_body):
        if self.broken:
            raise ConnectionRefusedError("smtp unreachable")
        self.sent.append((to, subject, html_body))
        return self.deliver


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        access_token_secret="test-access",
        refresh_token_secret="test-refresh",
        payment_secret="test-payment",
        stripe_price_id="price_test",
        frontend_url="https://lms.example.com",
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def app(settings, gateway, mailer):
    return create_app(settings, gateway=gateway, mailer=mailer)


@pytest.fixture
def client(app):
    # https so the secure session cookies round-trip
    with TestClient(app, base_url="https://testserver") as c:
        yield c


@pytest.fixture
def new_client(app):
    clients = []

    def make():
        c = TestClient(app, base_url="https://testserver")
        clients.append(c)
        return c

    yield make
    for c in clients:
        c.close()


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


def register(client, email="student@example.com", password="password123", full_name="Test Student"):
    res = client.post("/auth/register", json={"fullName": full_name, "email": email, "password": password})
    assert res.status_code == 201, res.text
    return res.json()["data"]


def set_user(db, email, **fields):
    user = load_user(db, email)
    for name, value in fields.items():
        setattr(user, name, value)
    db.commit()
    return user


def add_course(db, title="Python Basics", price=49900, currency="INR"):
    course = Course(title=title, price=price, currency=currency)
    db.add(course)
    db.commit()
    return course


def load_user(db, email):
    db.expire_all()
    return db.query(User).filter(User.email == email).one()
