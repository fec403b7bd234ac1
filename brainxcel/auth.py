from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from . import accounts
from .config import Settings
from .cookies import REFRESH_COOKIE, clear_session_cookies, set_session_cookies
from .db import get_db
from .deps import get_current_user, get_mailer, get_settings, require_roles
from .errors import SessionExpired, ok
from .mailer import EmailSender
from .models import Role, User
from .schemas import CamelModel, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterIn(CamelModel):
    full_name: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8)


class LoginIn(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ForgotPasswordIn(CamelModel):
    email: EmailStr


class ResetPasswordIn(CamelModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


class ChangePasswordIn(CamelModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


def _signed_in(db: Session, user: User, response: Response, settings: Settings, message: str) -> dict:
    pair = accounts.start_session(db, user, settings)
    set_session_cookies(response, pair, settings)
    return ok(message, UserOut.of(user))


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterIn, response: Response, db: Session = Depends(get_db),
             settings: Settings = Depends(get_settings)):
    user = accounts.create_user(db, payload.full_name, payload.email, payload.password)
    return _signed_in(db, user, response, settings, "User registered successfully")


@router.post("/login")
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db),
          settings: Settings = Depends(get_settings)):
    user = accounts.authenticate(db, payload.email, payload.password)
    return _signed_in(db, user, response, settings, "User logged in successfully")


@router.post("/guest-login")
def guest_login(response: Response, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = accounts.guest_user(db, settings)
    return _signed_in(db, user, response, settings, "Guest logged in successfully")


@router.post("/logout")
def logout(response: Response, user: User = Depends(get_current_user), db: Session = Depends(get_db),
           settings: Settings = Depends(get_settings)):
    accounts.end_session(db, user)
    clear_session_cookies(response, settings)
    return ok("User logged out successfully")


@router.post("/refresh")
def refresh(request: Request, response: Response, db: Session = Depends(get_db),
            settings: Settings = Depends(get_settings)):
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise SessionExpired("Refresh token not found, please log in again")
    user, pair = accounts.refresh_session(db, token, settings)
    set_session_cookies(response, pair, settings)
    return ok("Session refreshed", UserOut.of(user))


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordIn, db: Session = Depends(get_db),
                    settings: Settings = Depends(get_settings), mailer: EmailSender = Depends(get_mailer)):
    accounts.request_reset(db, payload.email, settings, mailer)
    return ok(f"Reset password link has been sent to {payload.email}")


@router.post("/reset-password")
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_db)):
    accounts.redeem_reset(db, payload.token, payload.new_password)
    return ok("Password changed successfully")


@router.post("/change-password")
def change_password(payload: ChangePasswordIn, db: Session = Depends(get_db),
                    user: User = Depends(require_roles(Role.USER, Role.TEACHER, Role.ADMIN))):
    accounts.change_password(db, user, payload.old_password, payload.new_password)
    return ok("Password changed successfully")
