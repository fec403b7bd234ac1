import datetime as dt
import enum

from sqlalchemy import (
    Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> dt.datetime:
    # naive UTC, matching what SQLite hands back
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class Role(str, enum.Enum):
    GUEST = "GUEST"
    USER = "USER"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


# Roles that get every course without paying and may never subscribe.
EXEMPT_ROLES = frozenset({Role.TEACHER, Role.ADMIN})


class SubscriptionStatus(str, enum.Enum):
    CREATED = "created"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    PENDING = "pending"
    HALTED = "halted"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXPIRED = "expired"


def _values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(Enum(Role, name="user_role", values_callable=_values, validate_strings=True),
                  nullable=False, default=Role.USER)
    avatar_public_id = Column(String, nullable=False, default="")
    avatar_url = Column(String, nullable=False, default="")

    subscription_id = Column(String, nullable=False, default="")
    subscription_status = Column(
        Enum(SubscriptionStatus, name="subscription_status", values_callable=_values, validate_strings=True),
        nullable=False, default=SubscriptionStatus.COMPLETED,
    )
    subscription_expires_on = Column(DateTime, nullable=True)

    reset_token_hash = Column(String, nullable=True, index=True)
    reset_token_expires_at = Column(DateTime, nullable=True)
    refresh_token = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    purchased_courses = relationship("PurchasedCourse", back_populates="user", cascade="all, delete-orphan")


class Course(Base):
    __tablename__ = "courses"
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, default="")
    price = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class PurchasedCourse(Base):
    __tablename__ = "purchased_courses"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_purchased_course"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    purchased_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="purchased_courses")


class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(String, unique=True, nullable=False, index=True)
    order_id = Column(String, nullable=True)
    subscription_id = Column(String, nullable=True)
    signature = Column(String, nullable=False)
    amount = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True)
    course_purchase = Column(Boolean, nullable=False, default=False)
    subscription_purchase = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
