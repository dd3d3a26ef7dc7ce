"""
Plan state and quota models.

UserPlanState mirrors the user_plan_state row. QuotaStatus is what the
resolver derives from it and what the API returns.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ngoinfo.models.plan import PlanId, SubscriptionStatus


class UserPlanState(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    plan_id: PlanId
    quota_used: int = Field(ge=0)
    monthly_quota: int = Field(ge=0)
    trial_expires_at: Optional[datetime] = None
    subscription_status: Optional[SubscriptionStatus] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuotaStatus(BaseModel):
    """Whether the user may generate a proposal right now, and why."""

    model_config = ConfigDict(frozen=True)

    plan_id: PlanId
    quota_used: int = Field(ge=0)
    quota_remaining: int = Field(ge=0)
    monthly_quota: int = Field(ge=0)
    can_generate: bool
    is_trial: bool
    trial_active: bool
    trial_hours_remaining: Optional[int] = Field(default=None, ge=0, description="Whole hours, null without an expiry")
