from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Opportunity(BaseModel):
    """A funding opportunity as shown in the browser."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    donor: str = Field(..., min_length=1)
    country: str
    region: str
    deadline: datetime
    amount_min: int = Field(ge=0)
    amount_max: int = Field(ge=0)
    sectors: List[str] = Field(default_factory=list)
    summary: str = ""
    eligibility: str = ""
    budget_notes: str = ""
    official_url: str = ""
    created_at: datetime
