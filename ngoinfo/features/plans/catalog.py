"""
ngoinfo/features/plans/catalog.py

Static plan catalog.

Handles:
- Plan lookup (trial, starter, growth, impact_plus)
- Stripe price resolution (env override, catalog placeholder otherwise)
- Reverse lookup from a Stripe price to a plan
"""

from typing import Dict, List, Optional

from ngoinfo.core.config import settings
from ngoinfo.models.plan import Plan

TRIAL_PLAN_ID = "trial"

PLANS: List[Plan] = [
    Plan(
        id="trial",
        name="Free Trial",
        price=0,
        proposals_per_month=1,
        manual_review_included=False,
        trial_days=2,
        trial_proposals=1,
        stripe_price_id=None,
        tagline="Try NGOInfo free for 2 days",
        features=[
            "1 grant proposal",
            "AI-powered proposal generation",
            "Basic funding opportunities",
        ],
    ),
    Plan(
        id="starter",
        name="Starter",
        price=19,
        proposals_per_month=2,
        manual_review_included=False,
        trial_days=2,
        trial_proposals=1,
        stripe_price_id="price_starter_placeholder",
        tagline="Perfect for small NGOs getting started",
        features=[
            "2 grant proposals per month",
            "AI-powered proposal generation",
            "Basic funding opportunities",
            "Email support",
        ],
    ),
    Plan(
        id="growth",
        name="Growth",
        price=39,
        proposals_per_month=5,
        manual_review_included=True,
        trial_days=2,
        trial_proposals=1,
        stripe_price_id="price_growth_placeholder",
        tagline="For growing organizations scaling impact",
        is_featured=True,
        features=[
            "5 grant proposals per month",
            "AI-powered proposal generation",
            "Manual expert review included",
            "Advanced funding opportunities",
            "Priority email support",
            "Proposal templates library",
        ],
    ),
    Plan(
        id="impact_plus",
        name="Impact+",
        price=79,
        proposals_per_month=7,
        manual_review_included=True,
        trial_days=2,
        trial_proposals=1,
        stripe_price_id="price_impact_plus_placeholder",
        tagline="Enterprise solution for maximum funding success",
        features=[
            "7 grant proposals per month",
            "AI-powered proposal generation",
            "Manual expert review included",
            "Premium funding opportunities",
            "Dedicated account manager",
            "Custom proposal templates",
            "API access (coming soon)",
            "White-label reports",
        ],
    ),
]

_BY_ID: Dict[str, Plan] = {plan.id: plan for plan in PLANS}

# settings attribute holding the live Stripe price for each paid plan
_PRICE_SETTINGS = {
    "starter": "STRIPE_PRICE_STARTER",
    "growth": "STRIPE_PRICE_GROWTH",
    "impact_plus": "STRIPE_PRICE_IMPACT_PLUS",
}


def get_plan_by_id(plan_id: Optional[str]) -> Optional[Plan]:
    if not plan_id:
        return None
    return _BY_ID.get(plan_id)


def get_trial_plan() -> Plan:
    return _BY_ID[TRIAL_PLAN_ID]


def get_featured_plan() -> Plan:
    """Featured plan, growth unless the catalog says otherwise."""
    for plan in PLANS:
        if plan.is_featured:
            return plan
    return _BY_ID["growth"]


def has_manual_review(plan_id: str) -> bool:
    plan = get_plan_by_id(plan_id)
    return bool(plan and plan.manual_review_included)


def list_paid_plans() -> List[Plan]:
    return [plan for plan in PLANS if plan.id != TRIAL_PLAN_ID]


def stripe_price_for_plan(plan_id: str) -> Optional[str]:
    plan = get_plan_by_id(plan_id)
    if not plan or plan.id == TRIAL_PLAN_ID:
        return None
    override = getattr(settings, _PRICE_SETTINGS[plan.id], None)
    return override or plan.stripe_price_id


def plan_for_stripe_price(price_id: Optional[str]) -> Optional[Plan]:
    if not price_id:
        return None
    for plan in list_paid_plans():
        if stripe_price_for_plan(plan.id) == price_id or plan.stripe_price_id == price_id:
            return plan
    return None
