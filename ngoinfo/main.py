import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Load env from the project root before settings are built
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(os.path.dirname(package_dir), ".env"))

from ngoinfo.core.config import settings, validate_config  # noqa: E402
from ngoinfo.core.database import create_all_tables  # noqa: E402
from ngoinfo.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from ngoinfo.core.flags import log_flags  # noqa: E402
from ngoinfo.core.logging import configure_logging  # noqa: E402
from ngoinfo.core.middleware.metrics import MetricsMiddleware  # noqa: E402
from ngoinfo.core.middleware.ratelimit import RateLimitMiddleware  # noqa: E402
from ngoinfo.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from ngoinfo.core.ratelimit import build_rate_limit_config  # noqa: E402
from ngoinfo.api import (  # noqa: E402
    auth,
    billing,
    health,
    metrics,
    opportunities,
    profile,
    proposals,
    sandbox,
    stripe_webhook,
)

configure_logging(settings.ENV, verbose=settings.VERBOSE_LOGGING or settings.DEBUG_ENABLED)
validate_config(strict=settings.CONFIG_STRICT)
log_flags()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("ngoinfo")
    logger.info("Starting NGOInfo backend...")
    app.state.startup_time = time.time()
    create_all_tables()
    try:
        yield
    finally:
        logger.info("Stopping NGOInfo backend...")


app = FastAPI(title="NGOInfo - Backend", lifespan=lifespan)

# Middlewares (last added runs first)
app.add_middleware(RateLimitMiddleware, config=build_rate_limit_config(settings))
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.SITE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(auth.router)
app.include_router(proposals.router)
app.include_router(stripe_webhook.router)
app.include_router(billing.router)
app.include_router(opportunities.router)
app.include_router(profile.router)
app.include_router(health.router)
app.include_router(health.root_router)
app.include_router(metrics.router)
app.include_router(sandbox.router)
