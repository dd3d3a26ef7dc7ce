import logging
import time
from typing import Callable, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ngoinfo.core.errors import RateLimitError, app_error_handler
from ngoinfo.core.logging import get_request_id
from ngoinfo.core.metrics import ratelimit_block_total, normalize_path
from ngoinfo.core.ratelimit import FixedWindowLimiter, RateLimitConfig

logger = logging.getLogger("ngoinfo")

EXEMPT_PREFIXES: Tuple[str, ...] = ("/healthz", "/readyz", "/api/health", "/metrics", "/api/stripe/webhook")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP fixed window limiting. Log-only when the config is not enforcing."""

    def __init__(self, app, *, config: RateLimitConfig, time_fn: Optional[Callable[[], float]] = None):
        super().__init__(app)
        self.config = config
        self.limiter = FixedWindowLimiter(config.max_requests, config.window_seconds, time_fn or time.monotonic)

    def _client_key(self, request: Request) -> str:
        if self.config.trust_forwarded_for:
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
                if hops:
                    return hops[-1]
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path.startswith(EXEMPT_PREFIXES):
            return await call_next(request)

        ip = self._client_key(request)
        decision = self.limiter.check(ip)

        if not decision.allowed:
            ratelimit_block_total.inc(labels={"scope": normalize_path(path)})
            if self.config.enabled:
                logger.warning(f"[guard:ratelimit] {path} - IP {ip} exceeded limit ({decision.limit})")
                rid = getattr(request.state, "request_id", None) or get_request_id()
                response = await app_error_handler(
                    request,
                    RateLimitError("Too many requests", retry_after=decision.retry_after, request_id=rid),
                )
                response.headers["X-RateLimit-Limit"] = str(decision.limit)
                response.headers["X-RateLimit-Remaining"] = "0"
                return response
            logger.info(f"[guard:ratelimit] {path} - IP {ip} over limit, throttling disabled in development")

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
