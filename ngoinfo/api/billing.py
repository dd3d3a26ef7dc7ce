"""
Billing API routes.

- POST /api/billing/checkout: Stripe checkout for a paid plan
- POST /api/billing/portal: Stripe customer portal
- GET  /api/plans: public plan catalog
- GET  /api/quota: caller's quota status (starts the trial on first call)
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ngoinfo.core.config import settings
from ngoinfo.features.auth.session import Session, require_session
from ngoinfo.features.billing.service import start_checkout, start_portal
from ngoinfo.features.plans.catalog import PLANS
from ngoinfo.features.quota.service import check_quota, ensure_trial
from ngoinfo.models.plan import Plan
from ngoinfo.models.quota import QuotaStatus

router = APIRouter(prefix="/api", tags=["billing"])


class CheckoutRequest(BaseModel):
    """Request to create checkout session."""
    plan_id: str = Field(..., min_length=1)
    success_url: str = ""
    cancel_url: str = ""


class PortalRequest(BaseModel):
    return_url: str = ""


class RedirectResponse(BaseModel):
    url: str


@router.post("/billing/checkout", response_model=RedirectResponse)
def create_checkout(body: CheckoutRequest, session: Session = Depends(require_session)):
    """
    Errors:
        503: billing disabled
        400: trial or unknown plan
    """
    url = start_checkout(
        user_id=session.user_id,
        plan_id=body.plan_id,
        success_url=body.success_url or f"{settings.SITE_URL}/dashboard?checkout=success",
        cancel_url=body.cancel_url or f"{settings.SITE_URL}/pricing?checkout=cancelled",
    )
    return {"url": url}


@router.post("/billing/portal", response_model=RedirectResponse)
def create_portal(body: PortalRequest, session: Session = Depends(require_session)):
    """
    Errors:
        503: billing disabled
        404: user never completed checkout
    """
    url = start_portal(session.user_id, return_url=body.return_url or f"{settings.SITE_URL}/dashboard")
    return {"url": url}


@router.get("/plans", response_model=List[Plan])
def list_plans():
    return list(PLANS)


@router.get("/quota", response_model=QuotaStatus)
def get_quota(session: Session = Depends(require_session)):
    ensure_trial(session.user_id)
    return check_quota(session.user_id)
