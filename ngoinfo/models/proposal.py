from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ngoinfo.models.quota import QuotaStatus

ProposalStatus = Literal["draft", "submitted", "archived"]


class GenerateProposalRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    opportunity_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    organization_name: str = Field(..., min_length=1)


class Proposal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    opportunity_id: Optional[str] = None
    title: str
    organization_name: str
    status: ProposalStatus = "draft"
    content: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class ProposalSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    status: ProposalStatus
    created_at: datetime


class GenerateProposalResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    proposal: ProposalSummary
    quota: QuotaStatus


class DownloadLink(BaseModel):
    """Short-lived signed link to a proposal export."""

    model_config = ConfigDict(frozen=True)

    url: str
    expires_in: int = Field(gt=0, description="Seconds")
    proposal_id: str
    title: str
