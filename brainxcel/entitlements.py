"""Subscription and per-course purchase state machine.

Every operation validates first, talks to the payment gateway second and
writes to the database last, in a single commit. A failure at any step
leaves the user row and the payment ledger untouched.
"""
import datetime as dt
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import security
from .config import Settings
from .errors import Conflict, Forbidden, NotFound, UpstreamError, VerificationFailed
from .gateway import GatewayError, GatewayResult, PaymentGateway
from .models import EXEMPT_ROLES, Course, Payment, PurchasedCourse, SubscriptionStatus, User, utcnow

logger = logging.getLogger(__name__)


def purchased_ids(user: User) -> set[int]:
    return {p.course_id for p in user.purchased_courses}


def has_entitlement(user: User, course_id: int | None = None) -> bool:
    if user.role in EXEMPT_ROLES:
        return True
    if course_id is not None and course_id in purchased_ids(user):
        return True
    return user.subscription_status == SubscriptionStatus.ACTIVE


def expire_if_lapsed(db: Session, user: User, now: dt.datetime | None = None) -> bool:
    now = now or utcnow()
    expires_on = user.subscription_expires_on
    if user.subscription_status != SubscriptionStatus.ACTIVE or expires_on is None or expires_on > now:
        return False
    user.subscription_status = SubscriptionStatus.COMPLETED
    user.subscription_id = ""
    user.subscription_expires_on = None
    db.commit()
    logger.info("Subscription for user %s lapsed on %s", user.id, expires_on.isoformat())
    return True


def _payment_recorded(db: Session, payment_id: str) -> bool:
    return db.query(Payment.id).filter(Payment.payment_id == payment_id).first() is not None


def _commit_payment(db: Session):
    try:
        db.commit()
    except IntegrityError as exc:
        # a concurrent verification of the same payment won the race
        db.rollback()
        raise Conflict("Payment already verified") from exc


def buy_subscription(db: Session, user: User, gateway: PaymentGateway, settings: Settings) -> GatewayResult:
    if user.role in EXEMPT_ROLES:
        raise Forbidden(f"{user.role.value.title()}s cannot purchase a subscription")
    if user.subscription_status == SubscriptionStatus.ACTIVE:
        raise Conflict("User already has an active subscription")

    try:
        result = gateway.create_subscription(settings.stripe_price_id, user.email)
    except GatewayError as exc:
        logger.exception("Subscription creation failed for user %s", user.id)
        raise UpstreamError("Unable to create subscription") from exc

    user.subscription_id = result.id
    user.subscription_status = SubscriptionStatus(result.status)
    db.commit()
    logger.info("Subscription %s created for user %s (%s)", result.id, user.id, result.status)
    return result


def verify_subscription_payment(
    db: Session, user: User, payment_id: str, signature: str, amount: int, currency: str, settings: Settings,
) -> Payment:
    if _payment_recorded(db, payment_id):
        raise Conflict("Payment already verified")
    if user.role in EXEMPT_ROLES:
        raise Forbidden(f"{user.role.value.title()}s cannot purchase a subscription")
    if not user.subscription_id:
        raise Conflict("No pending subscription to verify")

    expected = security.payment_signature(settings.payment_secret, payment_id, user.subscription_id)
    if not security.signature_matches(expected, signature):
        logger.warning("Subscription signature mismatch for user %s", user.id)
        raise VerificationFailed()

    now = utcnow()
    payment = Payment(
        payment_id=payment_id,
        subscription_id=user.subscription_id,
        signature=signature,
        amount=amount,
        currency=currency.upper(),
        user_id=user.id,
        subscription_purchase=True,
        created_at=now,
    )
    db.add(payment)
    user.subscription_status = SubscriptionStatus.ACTIVE
    user.subscription_expires_on = now + dt.timedelta(days=settings.subscription_duration_days)
    _commit_payment(db)
    logger.info("Subscription %s active for user %s", user.subscription_id, user.id)
    return payment


def cancel_subscription(db: Session, user: User, gateway: PaymentGateway) -> GatewayResult:
    if user.subscription_status != SubscriptionStatus.ACTIVE:
        raise Conflict("User does not have an active subscription")

    try:
        result = gateway.cancel_subscription(user.subscription_id)
    except GatewayError as exc:
        logger.exception("Subscription cancel failed for user %s", user.id)
        raise UpstreamError("Unable to cancel subscription") from exc

    user.subscription_status = SubscriptionStatus(result.status)
    user.subscription_id = ""
    user.subscription_expires_on = None
    db.commit()
    logger.info("Subscription %s for user %s is now %s", result.id, user.id, result.status)
    return result


def get_course(db: Session, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")
    return course


def create_order(db: Session, user: User, course_id: int, gateway: PaymentGateway) -> tuple[Course, GatewayResult]:
    course = get_course(db, course_id)
    if course.id in purchased_ids(user):
        raise Conflict("Course already purchased")

    try:
        result = gateway.create_order(course.price, course.currency)
    except GatewayError as exc:
        logger.exception("Order creation failed for user %s course %s", user.id, course.id)
        raise UpstreamError("Unable to create order") from exc
    return course, result


def verify_course_payment(
    db: Session, user: User, order_id: str, payment_id: str, signature: str,
    amount: int, currency: str, course_id: int, settings: Settings,
) -> Payment:
    course = get_course(db, course_id)
    if _payment_recorded(db, payment_id):
        raise Conflict("Payment already verified")
    if course.id in purchased_ids(user):
        raise Conflict("Course already purchased")

    expected = security.payment_signature(settings.payment_secret, order_id, payment_id)
    if not security.signature_matches(expected, signature):
        logger.warning("Course payment signature mismatch for user %s course %s", user.id, course.id)
        raise VerificationFailed()

    payment = Payment(
        payment_id=payment_id,
        order_id=order_id,
        signature=signature,
        amount=amount,
        currency=currency.upper(),
        user_id=user.id,
        course_id=course.id,
        course_purchase=True,
    )
    db.add(payment)
    user.purchased_courses.append(PurchasedCourse(course_id=course.id))
    _commit_payment(db)
    logger.info("User %s purchased course %s", user.id, course.id)
    return payment


def list_payments(db: Session, count: int = 10, user: User | None = None) -> list[Payment]:
    query = db.query(Payment)
    if user is not None:
        query = query.filter(Payment.user_id == user.id)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(count).all()
