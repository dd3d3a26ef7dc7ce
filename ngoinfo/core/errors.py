"""Error normalization and handlers."""

import logging
import builtins
from typing import Any, Dict, List, Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from ngoinfo.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id

    def extra_payload(self) -> Dict[str, Any]:
        return {}


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, *, details: Optional[List[Dict[str, str]]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.details = details or []

    def extra_payload(self) -> Dict[str, Any]:
        return {"details": self.details} if self.details else {}


class NotFoundError(AppError, ValueError):
    code = "not_found"
    status_code = 404


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class QuotaExceededError(AppError):
    """Raised when the caller has no generation left on their plan."""
    code = "quota_exceeded"
    status_code = 402

    def __init__(self, message: str = "Quota exceeded", *, quota: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.quota = quota

    def extra_payload(self) -> Dict[str, Any]:
        return {"requiresPayment": True, "quota": self.quota}


class RateLimitError(AppError):
    code = "rate_limited"
    status_code = 429

    def __init__(self, message: str = "Too many requests", *, retry_after: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class BillingDisabledError(AppError):
    code = "billing_disabled"
    status_code = 503


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "request_id": request_id},
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid)
    payload.update(exc.extra_payload())
    logger = logging.getLogger("ngoinfo")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "status": exc.status_code, "fields": {"error_message": exc.message}},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    if isinstance(exc, RateLimitError) and exc.retry_after is not None:
        response.headers["Retry-After"] = str(exc.retry_after)
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("ngoinfo")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "header", "cookie")]
    return ".".join(parts) or "body"


async def request_validation_handler(request: Request, exc: RequestValidationError):
    rid = _extract_request_id(request)
    details = [{"field": _field_name(err.get("loc", ())), "message": err.get("msg", "invalid")} for err in exc.errors()]
    payload = _error_payload("validation_error", "Invalid request", rid)
    payload["details"] = details
    logger = logging.getLogger("ngoinfo")
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400})
    response = JSONResponse(status_code=400, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("ngoinfo")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
