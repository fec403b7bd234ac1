import datetime as dt
import hashlib
import hmac
import secrets
from typing import NamedTuple

import jwt
from passlib.context import CryptContext

from .config import Settings

ALGORITHM = "HS256"
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt_sha256", "bcrypt"], default="pbkdf2_sha256", deprecated="auto")


class TokenError(Exception):
    pass


class TokenExpired(TokenError):
    pass


class TokenMalformed(TokenError):
    pass


class TokenSignatureInvalid(TokenError):
    pass


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password[:72])


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password[:72], password_hash)


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _sign(user_id: int, kind: str, secret: str, lifetime: dt.timedelta, now: dt.datetime | None) -> str:
    issued = now or _now()
    payload = {
        "sub": str(user_id),
        "type": kind,
        "iat": issued,
        "exp": issued + lifetime,
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def create_access_token(user_id: int, settings: Settings, now: dt.datetime | None = None) -> str:
    return _sign(user_id, "access", settings.access_token_secret,
                 dt.timedelta(minutes=settings.access_token_expire_minutes), now)


def create_refresh_token(user_id: int, settings: Settings, now: dt.datetime | None = None) -> str:
    return _sign(user_id, "refresh", settings.refresh_token_secret,
                 dt.timedelta(days=settings.refresh_token_expire_days), now)


def issue_tokens(user, settings: Settings, now: dt.datetime | None = None) -> TokenPair:
    return TokenPair(
        create_access_token(user.id, settings, now),
        create_refresh_token(user.id, settings, now),
    )


def _verify(token: str, kind: str, secret: str) -> int:
    try:
        # iat is skipped: tokens minted with a back-dated clock are still judged by exp
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM],
                             options={"require": ["exp", "sub"], "verify_iat": False})
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired("token expired") from exc
    except jwt.InvalidSignatureError as exc:
        raise TokenSignatureInvalid("bad signature") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenMalformed("malformed token") from exc
    if payload.get("type") != kind:
        raise TokenMalformed(f"not an {kind} token")
    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise TokenMalformed("bad subject") from exc


def verify_access(token: str, settings: Settings) -> int:
    return _verify(token, "access", settings.access_token_secret)


def verify_refresh(token: str, settings: Settings) -> int:
    return _verify(token, "refresh", settings.refresh_token_secret)


def new_reset_token() -> str:
    return secrets.token_hex(20)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def payment_signature(secret: str, *parts: str) -> str:
    message = "|".join(parts)
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def signature_matches(expected: str, presented: str) -> bool:
    return hmac.compare_digest(expected.encode(), (presented or "").encode())
