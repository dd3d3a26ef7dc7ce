"""
ReqAgent API client.

Fetches funding opportunities from API_BASE_URL. Failures surface as
ReqAgentError with a stable code: TIMEOUT, HTTP_<status> or NETWORK.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from ngoinfo.core.config import settings
from ngoinfo.core.logging import get_request_id

logger = logging.getLogger("ngoinfo")


class FundingOpportunity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    donor: str
    deadline: Optional[str] = None
    url: str


class ReqAgentError(Exception):
    def __init__(self, code: str, message: str, request_id: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.request_id = request_id


class ReqAgentClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = (timeout_ms or settings.API_TIMEOUT_MS) / 1000.0
        self.transport = transport

    def _get(self, path: str) -> dict:
        rid = get_request_id()
        headers = {"Accept": "application/json"}
        if rid:
            headers["x-request-id"] = rid
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.get(path, headers=headers)
        except httpx.TimeoutException:
            logger.warning(f"[reqagent] {path} timed out")
            raise ReqAgentError("TIMEOUT", "Request timed out", request_id=rid)
        except httpx.HTTPError as e:
            logger.warning(f"[reqagent] {path} failed: {e}")
            raise ReqAgentError("NETWORK", str(e) or "Network error", request_id=rid)

        if response.is_error:
            raise ReqAgentError(
                f"HTTP_{response.status_code}",
                response.text or response.reason_phrase,
                request_id=rid,
            )
        return response.json()

    def get_funding_opportunity(self, opportunity_id: str) -> FundingOpportunity:
        return FundingOpportunity(**self._get(f"/opportunities/{opportunity_id}"))


def get_reqagent_client() -> ReqAgentClient:
    """FastAPI dependency; override in tests with a mock transport."""
    return ReqAgentClient()
