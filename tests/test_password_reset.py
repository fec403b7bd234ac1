import datetime as dt
import re

from brainxcel.models import utcnow
from conftest import load_user, register, set_user

EMAIL = "student@example.com"


def _reset_token(mailer):
    _, _, body = mailer.sent[-1]
    return re.search(r"/reset-password/([0-9a-f]+)", body).group(1)


def test_forgot_password_mails_unhashed_token(client, mailer, db):
    register(client)
    res = client.post("/auth/forgot-password", json={"email": EMAIL})
    assert res.status_code == 200, res.text

    to, subject, body = mailer.sent[-1]
    assert to == EMAIL
    assert "https://lms.example.com/reset-password/" in body
    token = _reset_token(mailer)
    user = load_user(db, EMAIL)
    assert user.reset_token_hash and user.reset_token_hash != token
    assert user.reset_token_expires_at > utcnow() + dt.timedelta(minutes=14)


def test_forgot_password_unknown_email(client, mailer):
    res = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})
    assert res.status_code == 400
    assert res.json()["message"] == "Email not registered"
    assert mailer.sent == []


def test_undelivered_mail_stores_nothing(client, mailer, db):
    register(client)
    mailer.deliver = False
    res = client.post("/auth/forgot-password", json={"email": EMAIL})
    assert res.status_code == 500
    assert load_user(db, EMAIL).reset_token_hash is None


def test_reset_is_single_use(client, new_client, mailer):
    register(client)
    client.post("/auth/forgot-password", json={"email": EMAIL})
    token = _reset_token(mailer)

    res = client.post("/auth/reset-password", json={"token": token, "newPassword": "brand-new-pass"})
    assert res.status_code == 200
    again = client.post("/auth/reset-password", json={"token": token, "newPassword": "another-pass1"})
    assert again.status_code == 400

    login = new_client().post("/auth/login", json={"email": EMAIL, "password": "brand-new-pass"})
    assert login.status_code == 200


def test_expired_reset_token_fails(client, mailer, db):
    register(client)
    client.post("/auth/forgot-password", json={"email": EMAIL})
    token = _reset_token(mailer)
    set_user(db, EMAIL, reset_token_expires_at=utcnow() - dt.timedelta(seconds=1))

    res = client.post("/auth/reset-password", json={"token": token, "newPassword": "brand-new-pass"})
    assert res.status_code == 400
    assert res.json()["message"] == "Token is invalid or expired, please try again"


def test_change_password(client, new_client):
    register(client)
    wrong = client.post("/auth/change-password", json={"oldPassword": "nope", "newPassword": "password456"})
    assert wrong.status_code == 401
    same = client.post("/auth/change-password", json={"oldPassword": "password123", "newPassword": "password123"})
    assert same.status_code == 400

    res = client.post("/auth/change-password", json={"oldPassword": "password123", "newPassword": "password456"})
    assert res.status_code == 200
    assert new_client().post("/auth/login", json={"email": EMAIL, "password": "password456"}).status_code == 200
    assert new_client().post("/auth/login", json={"email": EMAIL, "password": "password123"}).status_code == 401


def test_unreachable_mail_server_stores_nothing(client, mailer, db):
    register(client)
    mailer.broken = True
    res = client.post("/auth/forgot-password", json={"email": EMAIL})
    assert res.status_code == 500
    assert res.json()["message"] == "Unable to send reset email, please try again"
    user = load_user(db, EMAIL)
    assert user.reset_token_hash is None
    assert user.reset_token_expires_at is None
