"""
Funding opportunity routes.

The list is always served from the local catalog. Detail lookups go to the
ReqAgent API unless USE_MSW is on (or no API_BASE_URL is configured), in
which case the catalog answers.
"""
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query

from ngoinfo.core.config import settings
from ngoinfo.core.errors import AppError, NotFoundError
from ngoinfo.core.logging import log_event
from ngoinfo.features.opportunities.catalog import filter_opportunities, get_opportunity_by_id
from ngoinfo.features.opportunities.client import (
    FundingOpportunity,
    ReqAgentClient,
    ReqAgentError,
    get_reqagent_client,
)
from ngoinfo.models.opportunity import Opportunity

router = APIRouter(prefix="/api/opportunities", tags=["opportunities"])


def _use_local_catalog() -> bool:
    return settings.USE_MSW or not settings.API_BASE_URL


def _map_reqagent_error(err: ReqAgentError) -> AppError:
    if err.code == "TIMEOUT":
        return AppError(err.message, code="upstream_timeout", status_code=504, request_id=err.request_id)
    if err.code == "HTTP_404":
        return NotFoundError("Opportunity not found", request_id=err.request_id)
    return AppError("Opportunity service unavailable", code="upstream_error", status_code=502, request_id=err.request_id)


@router.get("", response_model=List[Opportunity])
def list_opportunities(
    region: Optional[str] = Query(None),
    sector: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    deadline: Optional[str] = Query(None, pattern=r"^(next_30|next_60|next_90)$"),
):
    return filter_opportunities(region=region, sector=sector, search=search, deadline=deadline)


@router.get("/{opportunity_id}", response_model=Union[Opportunity, FundingOpportunity])
def get_opportunity(opportunity_id: str, client: ReqAgentClient = Depends(get_reqagent_client)):
    if _use_local_catalog():
        opportunity = get_opportunity_by_id(opportunity_id)
        if opportunity is None:
            raise NotFoundError("Opportunity not found")
        return opportunity

    try:
        return client.get_funding_opportunity(opportunity_id)
    except ReqAgentError as err:
        log_event("warning", "opportunities.fetch_failed", error_code=err.code, extra={"opportunity_id": opportunity_id})
        raise _map_reqagent_error(err)
