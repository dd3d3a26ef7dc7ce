import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict, ValidationError, field_validator
from typing import Optional

# Local-only signing key; never acceptable in production
DEV_STORAGE_SIGNING_SECRET = "dev-storage-secret"

# An unrecognised ENV resolves to the most restrictive mode
FALLBACK_ENV = "production"


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"  # development | test | production
    CONFIG_STRICT: bool = False

    # Public URLs
    SITE_URL: str = "http://localhost:3000"
    API_BASE_URL: str = "https://reqagent-dev.railway.app"
    API_TIMEOUT_MS: int = 15000

    # Database
    DATABASE_URL: Optional[str] = None

    # Auth
    AUTH_SECRET: Optional[str] = None
    SESSION_TTL_SECONDS: int = 7 * 24 * 3600

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_PUBLISHABLE_KEY: Optional[str] = None
    STRIPE_PRICE_STARTER: Optional[str] = None
    STRIPE_PRICE_GROWTH: Optional[str] = None
    STRIPE_PRICE_IMPACT_PLUS: Optional[str] = None

    # Storage (proposal exports)
    STORAGE_SIGNING_SECRET: str = DEV_STORAGE_SIGNING_SECRET
    EXPORTS_BUCKET: str = "exports"

    # Feature flags
    USE_MSW: bool = False
    ENABLE_BRANDING_PREVIEW: bool = False
    DEBUG_ENABLED: bool = False
    TELEMETRY_ENABLED: bool = True
    VERBOSE_LOGGING: bool = False

    # Guards (rate limiting)
    GUARDS_ENABLED: bool = False
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_MAX_REQUESTS: int = 30
    TRUST_FORWARDED_FOR: bool = False  # only behind a proxy that appends the client IP

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("ENV")
    @classmethod
    def _known_env(cls, value: str) -> str:
        normalized = (value or "").lower()
        if normalized not in {"development", "test", "production"}:
            raise ValueError("ENV must be development, test or production")
        return normalized

    @field_validator("SITE_URL", "API_BASE_URL")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("API_TIMEOUT_MS", "RATE_LIMIT_WINDOW_SECONDS", "RATE_LIMIT_MAX_REQUESTS", "SESSION_TTL_SECONDS")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value


def load_settings(logger: Optional[logging.Logger] = None, **overrides) -> Settings:
    """Build settings from the environment without ever failing the boot.

    Keys that fail validation are reported (names only) and replaced by
    their defaults, except ENV, which falls back to production.
    """
    log = logger or logging.getLogger("ngoinfo")
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        invalid = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        log.warning(f"[config] Invalid environment values for {', '.join(invalid)}; using defaults")
        defaults = {
            name: Settings.model_fields[name].default
            for name in invalid
            if name in Settings.model_fields
        }
        if "ENV" in invalid:
            log.warning(f"[config] Unrecognised ENV, falling back to {FALLBACK_ENV}")
            defaults["ENV"] = FALLBACK_ENV
        defaults.update({k: v for k, v in overrides.items() if k not in invalid})
        try:
            return Settings(**defaults)
        except ValidationError:
            log.warning("[config] Environment validation failed, using defaults")
            return Settings.model_construct(ENV=FALLBACK_ENV)


settings = load_settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate configuration needed in production.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("ngoinfo")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
        "AUTH_SECRET",
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
        "STORAGE_SIGNING_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if (cfg.ENV or "").lower() == "production" and cfg.STORAGE_SIGNING_SECRET == DEV_STORAGE_SIGNING_SECRET:
        missing.append("STORAGE_SIGNING_SECRET")
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True
