from fastapi import APIRouter, Depends
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from . import accounts, entitlements
from .config import Settings
from .db import get_db
from .deps import get_current_user, get_mailer, get_settings, require_roles
from .errors import ok
from .mailer import EmailSender
from .models import Course, Role, User
from .schemas import CamelModel, CourseOut, PaymentOut, UserOut

router = APIRouter(prefix="/users", tags=["users"])


class UpdateUserIn(CamelModel):
    full_name: str | None = Field(default=None, min_length=3, max_length=50)


class ContactIn(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    message: str = Field(min_length=1, max_length=5000)


@router.get("/profile")
def profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    entitlements.expire_if_lapsed(db, user)
    return ok("User details", UserOut.of(user))


@router.post("/update")
def update(payload: UpdateUserIn, db: Session = Depends(get_db),
           user: User = Depends(require_roles(Role.USER, Role.TEACHER, Role.ADMIN))):
    accounts.update_profile(db, user, payload.full_name)
    return ok("User details updated successfully", UserOut.of(user))


@router.get("/my-courses")
def my_courses(db: Session = Depends(get_db), user: User = Depends(require_roles(Role.USER, Role.GUEST))):
    courses = db.query(Course).order_by(Course.id).all()
    mine = [CourseOut.of(c) for c in courses if entitlements.has_entitlement(user, c.id)]
    return ok("Courses fetched successfully", mine)


@router.get("/my-purchases")
def my_purchases(db: Session = Depends(get_db), user: User = Depends(require_roles(Role.USER, Role.GUEST))):
    payments = entitlements.list_payments(db, count=100, user=user)
    return ok("Purchases fetched successfully", [PaymentOut.of(p) for p in payments])


@router.post("/contact")
def contact(payload: ContactIn, settings: Settings = Depends(get_settings), mailer: EmailSender = Depends(get_mailer)):
    accounts.send_contact_message(settings, mailer, payload.name, payload.email, payload.message)
    return ok("Your message has been sent")
