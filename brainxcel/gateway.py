import logging
from typing import NamedTuple, Protocol

import stripe

from .models import SubscriptionStatus

logger = logging.getLogger(__name__)

# Stripe subscription statuses folded onto the ones we store.
STRIPE_STATUS = {
    "incomplete": SubscriptionStatus.CREATED,
    "trialing": SubscriptionStatus.AUTHENTICATED,
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PENDING,
    "unpaid": SubscriptionStatus.HALTED,
    "paused": SubscriptionStatus.HALTED,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}


class GatewayError(Exception):
    pass


class GatewayResult(NamedTuple):
    id: str
    status: str


class PaymentGateway(Protocol):
    def create_subscription(self, plan_id: str, email: str) -> GatewayResult: ...

    def cancel_subscription(self, subscription_id: str) -> GatewayResult: ...

    def create_order(self, amount: int, currency: str) -> GatewayResult: ...


class StripeGateway:
    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    def _require_key(self):
        if not self.secret_key:
            raise GatewayError("Stripe not configured")

    def create_subscription(self, plan_id: str, email: str) -> GatewayResult:
        self._require_key()
        try:
            customer = stripe.Customer.create(email=email, api_key=self.secret_key)
            sub = stripe.Subscription.create(
                customer=customer.id,
                items=[{"price": plan_id, "quantity": 1}],
                payment_behavior="default_incomplete",
                api_key=self.secret_key,
            )
        except stripe.StripeError as exc:
            raise GatewayError(str(exc)) from exc
        return GatewayResult(sub.id, STRIPE_STATUS.get(sub.status, SubscriptionStatus.CREATED).value)

    def cancel_subscription(self, subscription_id: str) -> GatewayResult:
        self._require_key()
        try:
            sub = stripe.Subscription.cancel(subscription_id, api_key=self.secret_key)
        except stripe.StripeError as exc:
            raise GatewayError(str(exc)) from exc
        return GatewayResult(sub.id, STRIPE_STATUS.get(sub.status, SubscriptionStatus.CANCELLED).value)

    def create_order(self, amount: int, currency: str) -> GatewayResult:
        self._require_key()
        try:
            intent = stripe.PaymentIntent.create(amount=amount, currency=currency.lower(), api_key=self.secret_key)
        except stripe.StripeError as exc:
            raise GatewayError(str(exc)) from exc
        return GatewayResult(intent.id, "created")
