"""
Proposal API routes.

- POST /api/proposals/generate: generate a proposal, spending one quota unit
- GET  /api/proposals: the caller's proposals, newest first
- GET  /api/proposals/download?id=: short-lived signed export link
- GET  /api/proposals/export/{proposal_id}: serve the export behind a signed link
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ngoinfo.core.errors import PermissionError, ValidationError
from ngoinfo.core.logging import log_event
from ngoinfo.features.auth.session import Session, require_session
from ngoinfo.features.proposals.service import (
    create_download_link,
    generate_proposal,
    get_proposal,
    list_proposals,
)
from ngoinfo.features.storage.signing import verify_proposal_export
from ngoinfo.models.proposal import (
    DownloadLink,
    GenerateProposalRequest,
    GenerateProposalResponse,
    ProposalSummary,
)

router = APIRouter(prefix="/api/proposals", tags=["proposals"])


@router.post("/generate", response_model=GenerateProposalResponse, status_code=201)
async def generate(body: GenerateProposalRequest, session: Session = Depends(require_session)):
    """
    Errors:
        401: no session
        400: invalid body
        402: quota exceeded (requiresPayment, quota snapshot)
    """
    return await run_in_threadpool(generate_proposal, session.user_id, body)


@router.get("", response_model=List[ProposalSummary])
def list_mine(session: Session = Depends(require_session)):
    return list_proposals(session.user_id)


@router.get("/download", response_model=DownloadLink)
def download(id: Optional[str] = Query(None), session: Session = Depends(require_session)):
    if not id:
        raise ValidationError("Missing proposal id", details=[{"field": "id", "message": "Field required"}])
    return create_download_link(session.user_id, id)


@router.get("/export/{proposal_id}")
def export(proposal_id: str, expires: int = Query(...), token: str = Query(...)):
    """Signed links are the credential here; no session is required."""
    proposal = get_proposal(proposal_id)
    if proposal is None or not verify_proposal_export(proposal.user_id, proposal.id, expires, token):
        log_event("warning", "proposals.export_denied", proposal_id=proposal_id, error_code="invalid_link")
        raise PermissionError("Invalid or expired link")

    log_event("info", "proposals.exported", user_id=proposal.user_id, proposal_id=proposal.id)
    return JSONResponse(
        content=proposal.model_dump(mode="json"),
        headers={"Content-Disposition": f'attachment; filename="{proposal.id}.json"'},
    )
