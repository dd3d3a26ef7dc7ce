"""
Organization profile built by the four-step wizard.

1. basics: org_name, country, website, year_established
2. focus: sectors, geography
3. capacity: staff_count, annual_budget
4. projects: optional past projects
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

COUNTRIES = [
    "Kenya", "Tanzania", "Uganda", "Nigeria", "Ghana", "South Africa",
    "Ethiopia", "Rwanda", "Malawi", "Zambia", "Zimbabwe", "Other",
]

SECTORS = [
    "Health", "Education", "Agriculture", "Environment", "Water & Sanitation",
    "Gender Equality", "Youth Development", "Economic Development",
    "Humanitarian", "Climate Change", "Governance", "Human Rights",
]

GEOGRAPHIES = [
    "East Africa", "West Africa", "Southern Africa", "Central Africa",
    "North Africa", "Multi-regional", "National", "Sub-national",
]

STAFF_RANGES = {
    "1-5": "1-5 staff",
    "6-20": "6-20 staff",
    "21-50": "21-50 staff",
    "50+": "50+ staff",
}

BUDGET_RANGES = {
    "<50K": "Under $50,000",
    "50K-250K": "$50,000 - $250,000",
    "250K-1M": "$250,000 - $1M",
    "1M+": "Over $1M",
}


class ProfileProject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    title: str = ""
    donor: str = ""
    summary: str = ""


class ProfileData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    org_name: str = ""
    country: str = ""
    website: str = ""
    year_established: Optional[int] = None
    sectors: List[str] = Field(default_factory=list)
    geography: str = ""
    staff_count: str = ""
    annual_budget: str = ""
    projects: List[ProfileProject] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    """Partial update; unset fields are left alone."""

    model_config = ConfigDict(extra="forbid")

    org_name: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    year_established: Optional[int] = Field(default=None, ge=1800, le=2100)
    sectors: Optional[List[str]] = None
    geography: Optional[str] = None
    staff_count: Optional[str] = None
    annual_budget: Optional[str] = None
    projects: Optional[List[ProfileProject]] = None
