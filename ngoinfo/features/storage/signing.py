"""
Signed URLs for proposal exports.

A token is HMAC-SHA256 over "bucket/path:expires" keyed with
STORAGE_SIGNING_SECRET. Links carry the expiry and token as query
parameters; verification recomputes the token and checks the clock.
"""

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote, urlencode

from ngoinfo.core.config import DEV_STORAGE_SIGNING_SECRET, settings
from ngoinfo.core.logging import log_event

DEFAULT_EXPIRES_IN = 60
EXPORT_EXPIRES_IN = 300


def _epoch(now: Optional[datetime]) -> int:
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return int(current.timestamp())


def sign(bucket: str, path: str, expires: int, secret: Optional[str] = None) -> str:
    secret = secret or settings.STORAGE_SIGNING_SECRET
    if secret == DEV_STORAGE_SIGNING_SECRET and (settings.ENV or "").lower() == "production":
        raise RuntimeError("STORAGE_SIGNING_SECRET is not configured")
    key = secret.encode("utf-8")
    message = f"{bucket}/{path}:{expires}".encode("utf-8")
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def create_signed_url(
    bucket: str,
    path: str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    now: Optional[datetime] = None,
    base_url: Optional[str] = None,
) -> str:
    if expires_in <= 0:
        raise ValueError("expires_in must be positive")
    expires = _epoch(now) + expires_in
    token = sign(bucket, path, expires)
    target = base_url or f"{settings.SITE_URL}/storage/{quote(bucket)}/{quote(path)}"
    log_event("debug", "storage.signed_url_created", extra={"bucket": bucket, "path": path, "expires_in": expires_in})
    return f"{target}?{urlencode({'expires': expires, 'token': token})}"


def verify_signed_url(bucket: str, path: str, expires: int, token: str, now: Optional[datetime] = None) -> bool:
    if not token:
        return False
    expected = sign(bucket, path, expires)
    if not hmac.compare_digest(expected, token):
        return False
    return _epoch(now) < int(expires)


def proposal_export_path(user_id: str, proposal_id: str) -> str:
    return f"{user_id}/{proposal_id}.docx"


def create_proposal_export_url(
    user_id: str,
    proposal_id: str,
    expires_in: int = EXPORT_EXPIRES_IN,
    now: Optional[datetime] = None,
) -> str:
    return create_signed_url(
        settings.EXPORTS_BUCKET,
        proposal_export_path(user_id, proposal_id),
        expires_in=expires_in,
        now=now,
        base_url=f"{settings.SITE_URL}/api/proposals/export/{quote(proposal_id)}",
    )


def verify_proposal_export(user_id: str, proposal_id: str, expires: int, token: str, now: Optional[datetime] = None) -> bool:
    return verify_signed_url(settings.EXPORTS_BUCKET, proposal_export_path(user_id, proposal_id), expires, token, now=now)
