from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.orm import Session

from . import entitlements
from .config import Settings
from .db import get_db
from .deps import get_current_user, get_gateway, get_settings, require_roles
from .errors import ok
from .gateway import PaymentGateway
from .models import Role, User
from .schemas import CamelModel, PaymentOut

router = APIRouter(prefix="/payments", tags=["payments"])


class VerifySubscriptionIn(CamelModel):
    payment_id: str = Field(min_length=1)
    signature: str = Field(min_length=1)
    amount: int = Field(default=0, ge=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)


class OrderIn(CamelModel):
    course_id: int


class VerifyPaymentIn(CamelModel):
    order_id: str = Field(min_length=1)
    payment_id: str = Field(min_length=1)
    signature: str = Field(min_length=1)
    amount: int = Field(ge=0)
    currency: str = Field(min_length=3, max_length=3)
    course_id: int


@router.get("/apikey")
def api_key(user: User = Depends(get_current_user), settings: Settings = Depends(get_settings)):
    return ok("Api key fetched successfully", {"key": settings.stripe_publishable_key})


@router.get("/subscribe")
def buy_subscription(user: User = Depends(get_current_user), db: Session = Depends(get_db),
                     gateway: PaymentGateway = Depends(get_gateway), settings: Settings = Depends(get_settings)):
    result = entitlements.buy_subscription(db, user, gateway, settings)
    return ok("Subscription created successfully", {"id": result.id, "status": result.status})


@router.post("/verify/subscription")
def verify_subscription(payload: VerifySubscriptionIn, user: User = Depends(get_current_user),
                        db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    payment = entitlements.verify_subscription_payment(
        db, user, payload.payment_id, payload.signature, payload.amount, payload.currency, settings,
    )
    return ok("Payment verified successfully", PaymentOut.of(payment))


@router.get("/unsubscribe")
def cancel_subscription(user: User = Depends(get_current_user), db: Session = Depends(get_db),
                        gateway: PaymentGateway = Depends(get_gateway)):
    result = entitlements.cancel_subscription(db, user, gateway)
    return ok("Subscription cancelled successfully", {"status": result.status})


@router.post("/order")
def create_order(payload: OrderIn, user: User = Depends(get_current_user), db: Session = Depends(get_db),
                 gateway: PaymentGateway = Depends(get_gateway)):
    course, order = entitlements.create_order(db, user, payload.course_id, gateway)
    return ok("Order created successfully", {
        "id": order.id,
        "status": order.status,
        "amount": course.price,
        "currency": course.currency,
        "courseId": course.id,
    })


@router.post("/verify/payment")
def verify_payment(payload: VerifyPaymentIn, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    payment = entitlements.verify_course_payment(
        db, user, payload.order_id, payload.payment_id, payload.signature,
        payload.amount, payload.currency, payload.course_id, settings,
    )
    return ok("Payment verified successfully", PaymentOut.of(payment))


@router.get("")
def all_payments(count: int = Query(10, gt=0, le=100), db: Session = Depends(get_db),
                 user: User = Depends(require_roles(Role.ADMIN))):
    payments = entitlements.list_payments(db, count)
    return ok("Payments fetched successfully", [PaymentOut.of(p) for p in payments])
