import datetime as dt

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .models import Course, Payment, User


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubscriptionOut(CamelModel):
    id: str
    status: str
    expires_on: dt.datetime | None = None


class UserOut(CamelModel):
    id: int
    email: str
    full_name: str
    role: str
    avatar: dict
    subscription: SubscriptionOut
    courses_purchased: list[int]
    created_at: dt.datetime

    @classmethod
    def of(cls, user: User) -> dict:
        out = cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role.value,
            avatar={"publicId": user.avatar_public_id, "secureUrl": user.avatar_url},
            subscription=SubscriptionOut(
                id=user.subscription_id,
                status=user.subscription_status.value,
                expires_on=user.subscription_expires_on,
            ),
            courses_purchased=sorted(p.course_id for p in user.purchased_courses),
            created_at=user.created_at,
        )
        return out.model_dump(mode="json", by_alias=True)


class CourseOut(CamelModel):
    id: int
    title: str
    description: str
    category: str
    price: int
    currency: str
    created_by: int | None = None

    @classmethod
    def of(cls, course: Course) -> dict:
        out = cls(
            id=course.id, title=course.title, description=course.description, category=course.category,
            price=course.price, currency=course.currency, created_by=course.created_by,
        )
        return out.model_dump(mode="json", by_alias=True)


class PaymentOut(CamelModel):
    payment_id: str
    order_id: str | None = None
    subscription_id: str | None = None
    amount: int
    currency: str
    purchased_by: int
    course_id: int | None = None
    course_purchase: bool
    subscription_purchase: bool
    created_at: dt.datetime

    @classmethod
    def of(cls, payment: Payment) -> dict:
        out = cls(
            payment_id=payment.payment_id, order_id=payment.order_id, subscription_id=payment.subscription_id,
            amount=payment.amount, currency=payment.currency, purchased_by=payment.user_id,
            course_id=payment.course_id, course_purchase=payment.course_purchase,
            subscription_purchase=payment.subscription_purchase, created_at=payment.created_at,
        )
        return out.model_dump(mode="json", by_alias=True)
