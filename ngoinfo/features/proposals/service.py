"""
ngoinfo/features/proposals/service.py

Proposal generation and export.

Generation is billed and stored in one transaction: the quota increment,
the proposal insert and the usage log commit together, so a proposal is
never stored without being counted.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import insert, select

from ngoinfo.core.database import get_db_session, proposals
from ngoinfo.core.errors import NotFoundError, PermissionError, QuotaExceededError
from ngoinfo.core.logging import log_event
from ngoinfo.core.metrics import proposals_generated_total, quota_exceeded_total
from ngoinfo.core.telemetry import track
from ngoinfo.features.quota.service import (
    append_usage_log,
    check_quota,
    consume_quota,
    ensure_trial,
)
from ngoinfo.features.storage.signing import EXPORT_EXPIRES_IN, create_proposal_export_url
from ngoinfo.models.proposal import (
    DownloadLink,
    GenerateProposalRequest,
    GenerateProposalResponse,
    Proposal,
    ProposalSummary,
)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_proposal(row) -> Proposal:
    return Proposal(
        id=row.id,
        user_id=row.user_id,
        opportunity_id=row.opportunity_id,
        title=row.title,
        organization_name=row.organization_name,
        status=row.status,
        content=row.content or {},
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def new_proposal_id() -> str:
    return f"prop_{uuid4().hex}"


def build_stub_content(request: GenerateProposalRequest) -> Dict[str, Any]:
    """Placeholder document until a generation model is wired in."""
    return {
        "title": request.title,
        "organization_name": request.organization_name,
        "opportunity_id": request.opportunity_id,
        "executive_summary": "This is a placeholder proposal generated for demonstration purposes.",
        "problem_statement": "Stub content, generated text will replace it.",
        "objectives": ["Objective 1", "Objective 2", "Objective 3"],
        "methodology": "Stub methodology",
        "budget": {"total": 0, "items": []},
        "timeline": [],
    }


def generate_proposal(user_id: str, request: GenerateProposalRequest, now: Optional[datetime] = None) -> GenerateProposalResponse:
    """
    Generate (stub) and store a proposal, spending one unit of quota.

    Raises:
        QuotaExceededError: the caller cannot generate right now; carries
            the quota snapshot for the upgrade prompt
    """
    current = _utc(now) if now else datetime.now(timezone.utc)

    ensure_trial(user_id, now=current)
    status = check_quota(user_id, now=current)
    log_event("info", "proposals.quota_checked", user_id=user_id, extra=status.model_dump())

    if not status.can_generate:
        quota_exceeded_total.inc(labels={"plan_id": status.plan_id})
        track("monetisation:quota_exceeded", {"plan_id": status.plan_id, "quota_used": status.quota_used}, user_id=user_id)
        raise QuotaExceededError("Quota exceeded", quota=status.model_dump(mode="json"))

    proposal_id = new_proposal_id()
    with get_db_session() as session:
        consume_quota(session, user_id, now=current)
        session.execute(
            insert(proposals).values(
                id=proposal_id,
                user_id=user_id,
                opportunity_id=request.opportunity_id,
                title=request.title,
                organization_name=request.organization_name,
                status="draft",
                content=build_stub_content(request),
                created_at=current,
                updated_at=current,
            )
        )
        append_usage_log(session, user_id, proposal_id, "generate", now=current)

    proposals_generated_total.inc(labels={"plan_id": status.plan_id})
    log_event("info", "proposals.created", user_id=user_id, proposal_id=proposal_id, extra={"title": request.title})
    track("monetisation:proposal_consumed", {"plan_id": status.plan_id, "proposal_id": proposal_id}, user_id=user_id)

    return GenerateProposalResponse(
        proposal=ProposalSummary(id=proposal_id, title=request.title, status="draft", created_at=current),
        quota=check_quota(user_id, now=current),
    )


def get_proposal(proposal_id: str) -> Optional[Proposal]:
    with get_db_session() as session:
        row = session.execute(select(proposals).where(proposals.c.id == proposal_id)).first()
        return _row_to_proposal(row) if row else None


def list_proposals(user_id: str) -> List[ProposalSummary]:
    with get_db_session() as session:
        rows = session.execute(
            select(proposals.c.id, proposals.c.title, proposals.c.status, proposals.c.created_at)
            .where(proposals.c.user_id == user_id)
            .order_by(proposals.c.created_at.desc(), proposals.c.id)
        ).all()
        return [
            ProposalSummary(id=row.id, title=row.title, status=row.status, created_at=_utc(row.created_at))
            for row in rows
        ]


def get_owned_proposal(user_id: str, proposal_id: str) -> Proposal:
    """
    Raises:
        NotFoundError: no such proposal
        PermissionError: proposal belongs to someone else
    """
    proposal = get_proposal(proposal_id)
    if proposal is None:
        log_event("warning", "proposals.not_found", user_id=user_id, proposal_id=proposal_id)
        raise NotFoundError("Proposal not found")
    if proposal.user_id != user_id:
        log_event("warning", "proposals.ownership_mismatch", user_id=user_id, proposal_id=proposal_id)
        raise PermissionError("Forbidden")
    return proposal


def create_download_link(user_id: str, proposal_id: str, now: Optional[datetime] = None) -> DownloadLink:
    proposal = get_owned_proposal(user_id, proposal_id)
    url = create_proposal_export_url(user_id, proposal.id, expires_in=EXPORT_EXPIRES_IN, now=now)
    log_event("info", "proposals.download_link_created", user_id=user_id, proposal_id=proposal.id)
    return DownloadLink(url=url, expires_in=EXPORT_EXPIRES_IN, proposal_id=proposal.id, title=proposal.title)
