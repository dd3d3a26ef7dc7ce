"""
Organization profile routes backing the four-step wizard.
"""
from fastapi import APIRouter, Depends, Path

from ngoinfo.features.auth.session import Session, require_session
from ngoinfo.features.profile.service import (
    complete_profile,
    get_profile,
    reset_profile,
    save_profile,
    validate_step,
)
from ngoinfo.models.profile import ProfileData, ProfileUpdate

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("", response_model=ProfileData)
def read_profile(session: Session = Depends(require_session)):
    return get_profile(session.user_id)


@router.put("", response_model=ProfileData)
def update_profile(body: ProfileUpdate, session: Session = Depends(require_session)):
    return save_profile(session.user_id, body)


@router.delete("")
def delete_profile(session: Session = Depends(require_session)):
    reset_profile(session.user_id)
    return {"ok": True}


@router.post("/steps/{step}/validate")
def validate_wizard_step(
    body: ProfileUpdate,
    step: int = Path(..., ge=1, le=4),
    session: Session = Depends(require_session),
):
    """Validate a step against the stored profile with the submitted fields applied."""
    stored = get_profile(session.user_id)
    candidate = ProfileData(**{**stored.model_dump(), **body.model_dump(exclude_unset=True)})
    errors = validate_step(step, candidate)
    return {
        "step": step,
        "valid": not errors,
        "errors": [{"field": field, "message": message} for field, message in errors.items()],
    }


@router.post("/complete", response_model=ProfileData)
def complete(session: Session = Depends(require_session)):
    return complete_profile(session.user_id)
