"""Feature flags derived from settings.

Computed once at import; tests build their own with compute_flags().
"""

import logging
from dataclasses import asdict, dataclass
from typing import List

from ngoinfo.core.config import Settings, settings

logger = logging.getLogger("ngoinfo")


@dataclass(frozen=True)
class FeatureFlags:
    USE_MSW: bool = False
    ENABLE_BRANDING_PREVIEW: bool = False
    DEBUG_ENABLED: bool = False
    TELEMETRY_ENABLED: bool = True  # opt-out
    VERBOSE_LOGGING: bool = False
    IS_DEV: bool = True
    IS_PROD: bool = False


def compute_flags(settings_obj: Settings) -> FeatureFlags:
    env = (settings_obj.ENV or "development").lower()
    return FeatureFlags(
        USE_MSW=settings_obj.USE_MSW is True,
        ENABLE_BRANDING_PREVIEW=settings_obj.ENABLE_BRANDING_PREVIEW is True,
        DEBUG_ENABLED=settings_obj.DEBUG_ENABLED is True,
        TELEMETRY_ENABLED=settings_obj.TELEMETRY_ENABLED is not False,
        VERBOSE_LOGGING=settings_obj.VERBOSE_LOGGING is True,
        IS_DEV=env == "development",
        IS_PROD=env == "production",
    )


flags = compute_flags(settings)


def is_flag_enabled(name: str, flags_obj: FeatureFlags = None) -> bool:
    return getattr(flags_obj or flags, name, False) is True


def get_enabled_flags(flags_obj: FeatureFlags = None) -> List[str]:
    return [name for name, value in asdict(flags_obj or flags).items() if value is True]


def log_flags(flags_obj: FeatureFlags = None) -> None:
    current = flags_obj or flags
    if current.IS_DEV:
        logger.info(f"[flags] Feature flags initialized: {asdict(current)}")
