# tiers.py
"""Subscription tier ordering and the plan gate used by routes and catalog queries."""

from typing import List, Optional

from fastapi import Depends

from designspace.auth import get_current_user
from designspace.errors import SubscriptionRequired
from designspace.models import User

PLANS = ("free", "pro", "enterprise")
TIER_RANK = {"free": 1, "pro": 2, "enterprise": 3}


def tier_rank(plan: str) -> int:
    return TIER_RANK[plan]


def can_access(user_plan: str, required_plan: str) -> bool:
    return tier_rank(user_plan) >= tier_rank(required_plan)


def visible_tiers(plan: Optional[str]) -> List[str]:
    """Tiers whose content a caller on `plan` may see; no identity means free."""
    plan = plan or "free"
    return [tier for tier in PLANS if can_access(plan, tier)]


def plan_of(user: Optional[User]) -> str:
    return user.subscription_plan if user is not None else "free"


def require_subscription(required_plan: str):
    """Dependency factory: the caller must be signed in and on `required_plan` or higher."""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if not can_access(current_user.subscription_plan, required_plan):
            raise SubscriptionRequired(required_plan, current_user.subscription_plan)
        return current_user

    return checker
