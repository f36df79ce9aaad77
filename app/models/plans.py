"""
Plan tiers and their credit allotments
"""
from enum import Enum
from typing import Optional, Any


class PlanTier(str, Enum):
    """Plan tiers, ordered free < pro < studio"""
    FREE = "free"
    PRO = "pro"
    STUDIO = "studio"


PLAN_CREDIT_LIMITS = {
    PlanTier.FREE: 2,
    PlanTier.PRO: 30,
    PlanTier.STUDIO: 150,
}

PLAN_RANK = {
    PlanTier.FREE: 0,
    PlanTier.PRO: 1,
    PlanTier.STUDIO: 2,
}

FREE_SIGNUP_CREDITS = PLAN_CREDIT_LIMITS[PlanTier.FREE]
DEV_MODE_CREDITS = 999

# Plans that can be bought through checkout
PURCHASABLE_PLANS = (PlanTier.PRO, PlanTier.STUDIO)


def parse_plan(value: Optional[str]) -> Optional[PlanTier]:
    if not isinstance(value, str):
        return None
    try:
        return PlanTier(value.strip().lower())
    except ValueError:
        return None


def resolve_plan(profile: Any) -> PlanTier:
    """Resolve a profile row (or None) to its plan tier from the plan column or the flags"""
    if profile is None:
        return PlanTier.FREE

    plan = parse_plan(getattr(profile, "plan", None))
    if getattr(profile, "is_studio", False) or plan == PlanTier.STUDIO:
        return PlanTier.STUDIO
    if getattr(profile, "is_pro", False) or plan == PlanTier.PRO:
        return PlanTier.PRO
    return PlanTier.FREE


def higher_plan(current: PlanTier, incoming: PlanTier) -> PlanTier:
    return incoming if PLAN_RANK[incoming] > PLAN_RANK[current] else current


def plan_flags(plan: PlanTier) -> dict:
    """Denormalized flags stored next to the plan column"""
    return {
        "plan": plan.value,
        "is_pro": plan != PlanTier.FREE,
        "is_studio": plan == PlanTier.STUDIO,
    }
