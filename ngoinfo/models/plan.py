"""
Plan catalog models.

Plans are immutable reference data: a named tier with a price, a monthly
proposal allowance and trial settings.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PlanId = Literal["trial", "starter", "growth", "impact_plus"]
SubscriptionStatus = Literal["trial", "active", "cancelled", "past_due"]


class Plan(BaseModel):
    """Single pricing tier."""

    model_config = ConfigDict(frozen=True)

    id: PlanId
    name: str = Field(..., min_length=1)
    price: int = Field(ge=0, description="USD per month")
    proposals_per_month: int = Field(ge=0)
    manual_review_included: bool = False
    trial_days: int = Field(ge=0)
    trial_proposals: int = Field(ge=0)
    stripe_price_id: Optional[str] = None
    tagline: str = ""
    is_featured: bool = False
    features: List[str] = Field(default_factory=list)
