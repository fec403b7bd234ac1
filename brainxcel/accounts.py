import datetime as dt
import html
import logging

from sqlalchemy.orm import Session

from . import security
from .config import Settings
from .errors import Conflict, InvalidOrExpired, NotFound, SessionExpired, Unauthorized, UpstreamError, ValidationError
from .mailer import EmailSender
from .models import Role, User, utcnow

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def apply_password(user: User, password: str) -> User:
    # every write of a new password goes through here, never plain text on the row
    user.password_hash = security.hash_password(password)
    return user


def create_user(db: Session, full_name: str, email: str, password: str, role: Role = Role.USER) -> User:
    if find_by_email(db, email):
        raise Conflict("Email already registered")
    user = User(email=normalize_email(email), full_name=full_name.strip(), role=role)
    apply_password(user, password)
    db.add(user)
    db.flush()
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = find_by_email(db, email)
    if not user or not security.verify_password(password, user.password_hash):
        raise Unauthorized("Email or password does not match")
    return user


def start_session(db: Session, user: User, settings: Settings) -> security.TokenPair:
    pair = security.issue_tokens(user, settings)
    user.refresh_token = pair.refresh_token
    db.commit()
    return pair


def end_session(db: Session, user: User):
    user.refresh_token = None
    db.commit()


def refresh_session(db: Session, refresh_token: str, settings: Settings) -> tuple[User, security.TokenPair]:
    try:
        user_id = security.verify_refresh(refresh_token, settings)
    except security.TokenError as exc:
        raise SessionExpired() from exc
    user = db.get(User, user_id)
    if not user or user.refresh_token != refresh_token:
        # a superseded token is as dead as a forged one
        raise SessionExpired()
    pair = start_session(db, user, settings)
    logger.info("Rotated session for user %s", user.id)
    return user, pair


def guest_user(db: Session, settings: Settings) -> User:
    user = find_by_email(db, settings.guest_email)
    if user:
        return user
    return create_user(db, "Guest", settings.guest_email, settings.guest_password, role=Role.GUEST)


def change_password(db: Session, user: User, old_password: str, new_password: str):
    if not security.verify_password(old_password, user.password_hash):
        raise Unauthorized("Old password is incorrect")
    if old_password == new_password:
        raise ValidationError("New password must differ from the old one")
    apply_password(user, new_password)
    db.commit()


def update_profile(db: Session, user: User, full_name: str | None) -> User:
    if full_name is not None:
        if not full_name.strip():
            raise ValidationError("Full name cannot be empty")
        user.full_name = full_name.strip()
    db.commit()
    return user


def request_reset(db: Session, email: str, settings: Settings, mailer: EmailSender) -> None:
    user = find_by_email(db, email)
    if not user:
        raise NotFound("Email not registered", status_code=400)

    token = security.new_reset_token()
    reset_url = f"{settings.frontend_url.rstrip('/')}/reset-password/{token}"
    body = (
        "<p>You asked to reset your BrainXcel password.</p>"
        f'<p><a href="{reset_url}" target="_blank">Reset your password</a></p>'
        f"<p>The link expires in {settings.reset_token_expire_minutes} minutes. "
        "If you did not ask for this, ignore this email.</p>"
    )
    try:
        delivered = mailer.send(user.email, "Reset your password", body)
    except OSError as exc:
        logger.exception("Reset email to user %s failed", user.id)
        raise UpstreamError("Unable to send reset email, please try again") from exc
    if not delivered:
        logger.error("Reset email to user %s was refused", user.id)
        raise UpstreamError("Unable to send reset email, please try again")

    user.reset_token_hash = security.hash_reset_token(token)
    user.reset_token_expires_at = utcnow() + dt.timedelta(minutes=settings.reset_token_expire_minutes)
    db.commit()


def redeem_reset(db: Session, token: str, new_password: str) -> User:
    user = (
        db.query(User)
        .filter(User.reset_token_hash == security.hash_reset_token(token))
        .filter(User.reset_token_expires_at > utcnow())
        .first()
    )
    if not user:
        raise InvalidOrExpired()
    apply_password(user, new_password)
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    db.commit()
    return user


def send_contact_message(settings: Settings, mailer: EmailSender, name: str, email: str, message: str) -> None:
    body = (
        f"<p><strong>From:</strong> {html.escape(name)} &lt;{html.escape(email)}&gt;</p>"
        f"<p>{html.escape(message)}</p>"
    )
    try:
        delivered = mailer.send(settings.contact_email, "New contact form message", body)
    except OSError as exc:
        logger.exception("Contact message from %s failed", email)
        raise UpstreamError("Unable to send your message, please try again") from exc
    if not delivered:
        logger.error("Contact message from %s was refused", email)
        raise UpstreamError("Unable to send your message, please try again")
