# subscriptions.py
import logging
from datetime import timedelta
from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Request
from pydantic import Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from designspace import billing
from designspace.auth import get_current_user
from designspace.db import commit_or_raise, get_db
from designspace.errors import InvalidState
from designspace.models import Design, Project, User, utcnow
from designspace.schemas import CamelModel
from designspace.serializers import ok
from designspace.tiers import can_access

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])

BILLING_PERIOD = timedelta(days=30)

# -1 means unlimited.
PLAN_CATALOG = [
    {
        "id": "free",
        "name": "Free",
        "price": 0,
        "currency": "USD",
        "interval": "month",
        "features": [
            "2D Floor Plans",
            "Basic 3D Visualization",
            "5 Projects",
            "Standard Templates",
            "Basic Furniture Library",
            "Community Support",
        ],
        "limits": {"projects": 5, "designs": 10, "aiTools": 0, "storage": "100MB", "collaborators": 1},
    },
    {
        "id": "pro",
        "name": "Pro",
        "price": 19,
        "currency": "USD",
        "interval": "month",
        "features": [
            "Everything in Free",
            "Advanced 3D Visualization",
            "Unlimited Projects",
            "All Templates",
            "Premium Furniture Library",
            "AI Design Tools",
            "Priority Support",
        ],
        "limits": {"projects": -1, "designs": -1, "aiTools": 100, "storage": "10GB", "collaborators": 5},
        "popular": True,
    },
    {
        "id": "enterprise",
        "name": "Enterprise",
        "price": 49,
        "currency": "USD",
        "interval": "month",
        "features": [
            "Everything in Pro",
            "Team Collaboration",
            "Advanced Analytics",
            "Custom Branding",
            "API Access",
            "24/7 Priority Support",
        ],
        "limits": {"projects": -1, "designs": -1, "aiTools": -1, "storage": "100GB", "collaborators": -1},
    },
]
PLAN_LIMITS = {plan["id"]: plan["limits"] for plan in PLAN_CATALOG}


class UpgradeRequest(CamelModel):
    plan_id: Literal["pro", "enterprise"]
    payment_method_id: str = Field(..., min_length=1)


def subscription_out(user: User) -> Dict[str, Any]:
    return {
        "plan": user.subscription_plan,
        "status": user.subscription_status,
        "currentPeriodEnd": user.current_period_end,
        "stripeCustomerId": user.stripe_customer_id,
        "stripeSubscriptionId": user.stripe_subscription_id,
    }


async def usage_of(db: AsyncSession, user: User) -> Dict[str, Any]:
    """Owned projects and the designs under them, against the plan's limits."""
    owned = select(Project.id).where(Project.owner_id == user.id)
    projects = (await db.execute(select(func.count()).select_from(Project).where(Project.owner_id == user.id))).scalar_one()
    designs = (await db.execute(select(func.count()).select_from(Design).where(Design.project_id.in_(owned)))).scalar_one()
    limits = PLAN_LIMITS[user.subscription_plan]
    return {
        "projects": {"used": projects, "limit": limits["projects"]},
        "designs": {"used": designs, "limit": limits["designs"]},
        "aiTools": {"limit": limits["aiTools"]},
    }


# ===================================================================
# API Endpoints
# ===================================================================

@router.get("/plans", summary="Available plans")
async def list_plans():
    return ok({"plans": PLAN_CATALOG})


@router.get("/current", summary="The caller's subscription and usage")
async def current_subscription(
    db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return ok({"subscription": subscription_out(current_user), "usage": await usage_of(db, current_user)})


@router.post("/upgrade", summary="Move to a higher plan")
async def upgrade_subscription(
    payload: UpgradeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if can_access(current_user.subscription_plan, payload.plan_id):
        raise InvalidState("You are already on this plan or higher")

    customer_id = current_user.stripe_customer_id or await billing.create_customer(
        current_user, payload.payment_method_id
    )
    subscription = await billing.create_subscription(customer_id, payload.plan_id, payload.payment_method_id)

    current_user.subscription_plan = payload.plan_id
    current_user.subscription_status = "active"
    current_user.current_period_end = utcnow() + BILLING_PERIOD
    current_user.stripe_customer_id = customer_id
    current_user.stripe_subscription_id = subscription["id"]
    await commit_or_raise(db, "Server error while upgrading subscription")

    logger.info(f"User {current_user.id} upgraded to {payload.plan_id}")
    return ok({"subscription": subscription_out(current_user)}, "Subscription upgraded successfully")


@router.post("/cancel", summary="Cancel the paid plan")
async def cancel_subscription(
    db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)
):
    """Drops the caller to free; the paid period end is kept for reference."""
    if current_user.subscription_plan == "free":
        raise InvalidState("No active subscription to cancel")

    await billing.cancel_subscription(current_user.stripe_subscription_id)
    current_user.subscription_plan = "free"
    current_user.subscription_status = "cancelled"
    current_user.stripe_subscription_id = None
    await commit_or_raise(db, "Server error while cancelling subscription")

    logger.info(f"User {current_user.id} cancelled their subscription")
    return ok({"subscription": subscription_out(current_user)}, "Subscription cancelled successfully")


@router.get("/usage", summary="The caller's usage")
async def subscription_usage(
    db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return ok({"usage": await usage_of(db, current_user)})


@router.post("/webhook", summary="Payment provider webhook")
async def payment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    event = billing.parse_webhook(await request.body(), request.headers.get("stripe-signature"))
    if event is None:
        return {"received": True}

    if event["type"] == "customer.subscription.deleted":
        subscription_id = event["data"]["object"]["id"]
        result = await db.execute(select(User).where(User.stripe_subscription_id == subscription_id))
        user = result.scalars().first()
        if user is not None:
            user.subscription_plan = "free"
            user.subscription_status = "cancelled"
            user.stripe_subscription_id = None
            await commit_or_raise(db, "Server error while processing webhook")
            logger.info(f"Subscription {subscription_id} ended by provider; user {user.id} moved to free")
    else:
        logger.info(f"Ignoring webhook event {event['type']}")
    return {"received": True}
