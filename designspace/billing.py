# billing.py
"""
Payment provider calls for subscriptions.

Stripe's SDK is synchronous, so each call runs in the threadpool. Without a
secret key the calls return mock identifiers and nothing leaves the process,
which keeps local development and tests offline.
"""

import logging
import uuid
from typing import Any, Dict, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from designspace.errors import InvalidState, ValidationFailed
from designspace.models import User
from designspace.settings import settings

logger = logging.getLogger(__name__)
stripe.api_key = settings.STRIPE_SECRET_KEY


def is_configured() -> bool:
    return bool(settings.STRIPE_SECRET_KEY)


def price_for(plan_id: str) -> str:
    return {"pro": settings.STRIPE_PRICE_PRO, "enterprise": settings.STRIPE_PRICE_ENTERPRISE}[plan_id]


def _mock_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:24]}"


async def create_customer(user: User, payment_method_id: str) -> str:
    if not is_configured():
        logger.warning("STRIPE_SECRET_KEY is not set. Issuing a mock customer id.")
        return _mock_id("cus")
    try:
        customer = await run_in_threadpool(
            stripe.Customer.create,
            email=user.email,
            payment_method=payment_method_id,
            invoice_settings={"default_payment_method": payment_method_id},
            metadata={"user_id": str(user.id)},
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe customer creation failed for user {user.id}: {e}")
        raise InvalidState(f"Payment failed: {e.user_message or 'could not create customer'}")
    return customer.id


async def create_subscription(customer_id: str, plan_id: str, payment_method_id: str) -> Dict[str, Any]:
    if not is_configured():
        return {"id": _mock_id("sub"), "status": "active"}
    try:
        subscription = await run_in_threadpool(
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": price_for(plan_id)}],
            default_payment_method=payment_method_id,
            metadata={"plan": plan_id},
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe subscription creation failed for customer {customer_id}: {e}")
        raise InvalidState(f"Payment failed: {e.user_message or 'could not create subscription'}")
    return {"id": subscription.id, "status": subscription.status}


async def cancel_subscription(subscription_id: Optional[str]) -> None:
    if not subscription_id:
        return
    if not is_configured():
        logger.info(f"Cancelling mock subscription {subscription_id}")
        return
    try:
        await run_in_threadpool(stripe.Subscription.cancel, subscription_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe cancellation failed for {subscription_id}: {e}")
        raise InvalidState("Could not cancel the subscription with the payment provider")


def parse_webhook(payload: bytes, signature: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Verifies and decodes a webhook delivery. Returns None when no webhook
    secret is configured, in which case the delivery is only acknowledged.
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        return None
    try:
        return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Rejected webhook delivery: {e}")
        raise ValidationFailed("Webhook error")
