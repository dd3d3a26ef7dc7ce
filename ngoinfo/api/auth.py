"""
Auth API routes.

Login accepts any email/password pair and derives a stable user id from the
email; identity verification belongs to whichever SessionProvider is plugged
in. With AUTH_SECRET set a signed session token is issued, otherwise the
development cookie is used.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from ngoinfo.core.config import settings
from ngoinfo.core.errors import AppError
from ngoinfo.core.logging import log_event
from ngoinfo.core.telemetry import track
from ngoinfo.features.auth.session import (
    DEV_SESSION_COOKIE,
    SESSION_COOKIE,
    Session,
    get_session,
    issue_token,
    user_id_for_email,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    user_id: str
    email: str
    token: Optional[str] = None
    expires_at: Optional[datetime] = None


class SessionResponse(BaseModel):
    authenticated: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    expires_at: Optional[datetime] = None


def _is_production() -> bool:
    return (settings.ENV or "").lower() == "production"


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, response: Response):
    email = body.email.strip().lower()
    user_id = user_id_for_email(email)

    if settings.AUTH_SECRET:
        token, expires_at = issue_token(user_id, email=email)
        response.set_cookie(
            SESSION_COOKIE,
            token,
            max_age=settings.SESSION_TTL_SECONDS,
            httponly=True,
            secure=_is_production(),
            samesite="lax",
        )
    elif _is_production():
        raise AppError("Authentication is not configured", code="auth_disabled", status_code=503)
    else:
        token, expires_at = None, None
        response.set_cookie(DEV_SESSION_COOKIE, user_id, httponly=True, samesite="lax")

    log_event("info", "auth.login", user_id=user_id)
    track("auth:login_success", {"method": "jwt" if token else "dev"}, user_id=user_id)
    return LoginResponse(user_id=user_id, email=email, token=token, expires_at=expires_at)


@router.post("/logout")
def logout(response: Response, session: Optional[Session] = Depends(get_session)):
    response.delete_cookie(SESSION_COOKIE)
    response.delete_cookie(DEV_SESSION_COOKIE)
    if session is not None:
        log_event("info", "auth.logout", user_id=session.user_id)
        track("auth:logout", {}, user_id=session.user_id)
    return {"ok": True}


@router.get("/session", response_model=SessionResponse)
def current_session(session: Optional[Session] = Depends(get_session)):
    if session is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(
        authenticated=True,
        user_id=session.user_id,
        email=session.email,
        expires_at=session.expires_at,
    )
