"""
Health and diagnostics routes.

Lightweight endpoints for operational monitoring; nothing here exposes
secrets.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ngoinfo.core.config import settings
from ngoinfo.core.database import check_connection, missing_tables
from ngoinfo.core.flags import compute_flags, get_enabled_flags
from ngoinfo.features.billing.service import billing_enabled

logger = logging.getLogger("ngoinfo")

router = APIRouter(prefix="/api/health", tags=["health"])
root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz():
    """Readiness check: DB connectivity + required tables."""
    if not check_connection():
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    missing = missing_tables()
    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

    return {"status": "ok"}


@router.get("")
def health_summary():
    return {
        "ok": True,
        "env": settings.ENV,
        "billing_enabled": billing_enabled(),
        "flags": get_enabled_flags(compute_flags(settings)),
        "computed_at": datetime.now(timezone.utc).isoformat(),
    }
