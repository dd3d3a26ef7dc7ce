"""
Session resolution.

Authentication is an external collaborator: routes only depend on
get_session() / require_session(). Two providers ship here:

- JwtSessionProvider: HS256 tokens signed with AUTH_SECRET, read from a
  Bearer header or the ngo_session cookie.
- DevSessionProvider: local development stand-in that trusts the
  dev-session-token cookie or the X-User-Id header.
"""
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Protocol, Tuple

import jwt
from fastapi import Request
from pydantic import BaseModel, ConfigDict

from ngoinfo.core.config import settings
from ngoinfo.core.errors import UnauthorizedError

logger = logging.getLogger("ngoinfo")

SESSION_COOKIE = "ngo_session"
DEV_SESSION_COOKIE = "dev-session-token"
JWT_ALGORITHM = "HS256"


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None


class SessionProvider(Protocol):
    def get_session(self, request: Request) -> Optional[Session]:
        ...


def user_id_for_email(email: str) -> str:
    """Stable user id derived from the login email."""
    digest = hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()
    return f"user_{digest[:16]}"


def issue_token(user_id: str, email: Optional[str] = None, ttl_seconds: Optional[int] = None, secret: Optional[str] = None) -> Tuple[str, datetime]:
    key = secret or settings.AUTH_SECRET
    if not key:
        raise RuntimeError("AUTH_SECRET is not configured")
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds or settings.SESSION_TTL_SECONDS)
    payload = {"sub": user_id, "exp": expires_at}
    if email:
        payload["email"] = email
    return jwt.encode(payload, key, algorithm=JWT_ALGORITHM), expires_at


class JwtSessionProvider:
    def __init__(self, secret: Optional[str] = None):
        self.secret = secret or settings.AUTH_SECRET

    def _token(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:].strip() or None
        return request.cookies.get(SESSION_COOKIE)

    def get_session(self, request: Request) -> Optional[Session]:
        token = self._token(request)
        if not token or not self.secret:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.ExpiredSignatureError:
            logger.debug("[auth] expired session token")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"[auth] invalid session token: {e}")
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None
        exp = payload.get("exp")
        return Session(
            user_id=user_id,
            email=payload.get("email"),
            expires_at=datetime.fromtimestamp(exp, timezone.utc) if exp else None,
        )


class DevSessionProvider:
    def get_session(self, request: Request) -> Optional[Session]:
        user_id = request.cookies.get(DEV_SESSION_COOKIE) or request.headers.get("X-User-Id")
        if not user_id:
            return None
        return Session(user_id=user_id)


class ChainedSessionProvider:
    """First provider that resolves a session wins."""

    def __init__(self, providers: List[SessionProvider]):
        self.providers = providers

    def get_session(self, request: Request) -> Optional[Session]:
        for provider in self.providers:
            session = provider.get_session(request)
            if session is not None:
                return session
        return None


_provider_override: Optional[SessionProvider] = None


def build_default_provider() -> SessionProvider:
    is_prod = (settings.ENV or "").lower() == "production"
    providers: List[SessionProvider] = []
    if settings.AUTH_SECRET:
        providers.append(JwtSessionProvider())
    if not is_prod:
        providers.append(DevSessionProvider())
    return ChainedSessionProvider(providers)


def set_session_provider(provider: Optional[SessionProvider]) -> None:
    """Swap the provider (tests, alternative identity backends). None restores the default."""
    global _provider_override
    _provider_override = provider


def get_session_provider() -> SessionProvider:
    return _provider_override or build_default_provider()


def get_session(request: Request) -> Optional[Session]:
    """FastAPI dependency: the current session, or None."""
    return get_session_provider().get_session(request)


def require_session(request: Request) -> Session:
    """FastAPI dependency: the current session, 401 without one."""
    session = get_session(request)
    if session is None:
        raise UnauthorizedError("Unauthorized")
    return session
