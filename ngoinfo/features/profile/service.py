"""
ngoinfo/features/profile/service.py

Organization profile persistence and wizard validation.

Handles:
- Step validation (1 basics, 2 focus, 3 capacity, 4 projects)
- Partial saves merged onto the stored document
- Completion (every step must validate) and reset
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from ngoinfo.core.database import get_db_session, organization_profiles
from ngoinfo.core.errors import ValidationError
from ngoinfo.core.logging import log_event
from ngoinfo.core.telemetry import track
from ngoinfo.models.profile import (
    BUDGET_RANGES,
    COUNTRIES,
    STAFF_RANGES,
    ProfileData,
    ProfileUpdate,
)

WIZARD_STEPS = (1, 2, 3, 4)
MIN_YEAR_ESTABLISHED = 1800


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_step(step: int, data: ProfileData, now: Optional[datetime] = None) -> Dict[str, str]:
    """Field errors for one wizard step; empty when the step is valid."""
    errors: Dict[str, str] = {}

    if step == 1:
        if not data.org_name.strip():
            errors["org_name"] = "Organization name is required"
        if not data.country:
            errors["country"] = "Country is required"
        elif data.country not in COUNTRIES:
            errors["country"] = "Select a country from the list"
        if not data.year_established:
            errors["year_established"] = "Year is required"
        else:
            current_year = (now or datetime.now(timezone.utc)).year
            if not MIN_YEAR_ESTABLISHED <= data.year_established <= current_year:
                errors["year_established"] = f"Year must be between {MIN_YEAR_ESTABLISHED} and {current_year}"
        if data.website and not data.website.startswith(("http://", "https://")):
            errors["website"] = "Website must start with http:// or https://"
    elif step == 2:
        if not data.sectors:
            errors["sectors"] = "Select at least one sector"
        if not data.geography:
            errors["geography"] = "Geography is required"
    elif step == 3:
        if not data.staff_count:
            errors["staff_count"] = "Staff count is required"
        elif data.staff_count not in STAFF_RANGES:
            errors["staff_count"] = "Unknown staff range"
        if not data.annual_budget:
            errors["annual_budget"] = "Budget range is required"
        elif data.annual_budget not in BUDGET_RANGES:
            errors["annual_budget"] = "Unknown budget range"
    elif step == 4:
        # projects are optional, but a listed project needs a title
        for index, project in enumerate(data.projects):
            if not project.title.strip():
                errors[f"projects.{index}.title"] = "Project title is required"
    else:
        raise ValidationError(f"Unknown wizard step: {step}", details=[{"field": "step", "message": "must be 1-4"}])

    return errors


def _details(errors: Dict[str, str]) -> List[Dict[str, str]]:
    return [{"field": field, "message": message} for field, message in errors.items()]


def get_profile(user_id: str) -> ProfileData:
    """Stored profile, or an empty one for users who never saved."""
    with get_db_session() as session:
        row = session.execute(
            select(organization_profiles).where(organization_profiles.c.user_id == user_id)
        ).first()
    if row is None:
        return ProfileData()
    data = dict(row.data or {})
    data["completed_at"] = _utc(row.completed_at)
    data["updated_at"] = _utc(row.updated_at)
    return ProfileData(**data)


def _update(session, user_id: str, values: dict) -> int:
    result = session.execute(
        update(organization_profiles)
        .where(organization_profiles.c.user_id == user_id)
        .values(**values)
    )
    return result.rowcount


def _write(user_id: str, profile: ProfileData) -> None:
    """
    Upsert the profile document.

    Two concurrent first saves race on the primary key; the loser retries
    as an update.
    """
    document = profile.model_dump(mode="json", exclude={"completed_at", "updated_at"})
    values = dict(data=document, completed_at=profile.completed_at, updated_at=profile.updated_at)
    try:
        with get_db_session() as session:
            if _update(session, user_id, values) == 0:
                session.execute(insert(organization_profiles).values(user_id=user_id, **values))
    except IntegrityError:
        log_event("info", "profile.write_race", user_id=user_id)
        with get_db_session() as session:
            _update(session, user_id, values)


def save_profile(user_id: str, changes: ProfileUpdate, now: Optional[datetime] = None) -> ProfileData:
    """Merge the provided fields onto the stored profile and stamp updated_at."""
    current = _utc(now) or datetime.now(timezone.utc)
    fields = changes.model_dump(exclude_unset=True)
    merged = ProfileData(**{**get_profile(user_id).model_dump(), **fields, "updated_at": current})
    _write(user_id, merged)

    log_event("info", "profile.saved", user_id=user_id, extra={"fields": sorted(fields)})
    track("profile:updated", {"fields": sorted(fields), "completed": merged.completed_at is not None}, user_id=user_id)
    return merged


def complete_profile(user_id: str, now: Optional[datetime] = None) -> ProfileData:
    """
    Mark the profile complete.

    Raises:
        ValidationError: any wizard step has field errors
    """
    current = _utc(now) or datetime.now(timezone.utc)
    profile = get_profile(user_id)

    errors: Dict[str, str] = {}
    for step in WIZARD_STEPS:
        errors.update(validate_step(step, profile, now=current))
    if errors:
        raise ValidationError("Profile is incomplete", details=_details(errors))

    completed = profile.model_copy(update={"completed_at": current, "updated_at": current})
    _write(user_id, completed)

    log_event("info", "profile.completed", user_id=user_id)
    track(
        "profile:completed",
        {"sectors": completed.sectors, "staff_count": completed.staff_count},
        user_id=user_id,
    )
    return completed


def reset_profile(user_id: str) -> None:
    with get_db_session() as session:
        session.execute(delete(organization_profiles).where(organization_profiles.c.user_id == user_id))
    log_event("info", "profile.reset", user_id=user_id)
    track("profile:reset", {}, user_id=user_id)
