import logging

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from . import accounts, security
from .config import Settings
from .cookies import ACCESS_COOKIE, REFRESH_COOKIE, remember_rotation, set_session_cookies
from .db import get_db
from .entitlements import get_course, has_entitlement
from .errors import Forbidden, PaymentRequired, Unauthorized
from .gateway import PaymentGateway
from .mailer import EmailSender
from .models import Role, User

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_mailer(request: Request) -> EmailSender:
    return request.app.state.mailer


def get_current_user(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    access_token = request.cookies.get(ACCESS_COOKIE)
    if not access_token:
        raise Unauthorized("Access token not found")

    try:
        user_id = security.verify_access(access_token, settings)
    except security.TokenError as exc:
        logger.debug("Access token rejected (%s), trying refresh", type(exc).__name__)
        refresh_token = request.cookies.get(REFRESH_COOKIE)
        if not refresh_token:
            raise Unauthorized("Refresh token not found")
        user, pair = accounts.refresh_session(db, refresh_token, settings)
        set_session_cookies(response, pair, settings)
        # error responses are built fresh, they pick the pair up from here
        remember_rotation(request, pair)
        return user

    user = db.get(User, user_id)
    if not user:
        raise Unauthorized("User not found")
    return user


def require_roles(*roles: Role):
    allowed = frozenset(roles)

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise Forbidden()
        return user

    return checker


def require_entitlement(course_id: int, user: User = Depends(get_current_user),
                        db: Session = Depends(get_db)) -> User:
    get_course(db, course_id)
    if not has_entitlement(user, course_id):
        raise PaymentRequired()
    return user
