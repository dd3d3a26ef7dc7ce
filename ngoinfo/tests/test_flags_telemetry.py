"""
Feature flags and event tracking.
"""
from unittest.mock import Mock

from ngoinfo.core import telemetry
from ngoinfo.core.config import Settings, settings
from ngoinfo.core.flags import FeatureFlags, compute_flags, get_enabled_flags, is_flag_enabled
from ngoinfo.core.metrics import telemetry_events_total
from ngoinfo.core.telemetry import clear_events, recent_events, support_id, track


def test_compute_flags_production():
    flags = compute_flags(Settings(ENV="production", USE_MSW=True, TELEMETRY_ENABLED=False))

    assert flags.IS_PROD is True
    assert flags.IS_DEV is False
    assert flags.USE_MSW is True
    assert flags.TELEMETRY_ENABLED is False


def test_compute_flags_development_defaults():
    flags = compute_flags(Settings(ENV="development", USE_MSW=False, TELEMETRY_ENABLED=True))

    assert flags.IS_DEV is True
    assert flags.ENABLE_BRANDING_PREVIEW is False
    assert flags.TELEMETRY_ENABLED is True


def test_enabled_flags_and_lookup():
    flags = FeatureFlags(USE_MSW=True, DEBUG_ENABLED=True, TELEMETRY_ENABLED=False, IS_DEV=False)

    assert get_enabled_flags(flags) == ["USE_MSW", "DEBUG_ENABLED"]
    assert is_flag_enabled("USE_MSW", flags) is True
    assert is_flag_enabled("VERBOSE_LOGGING", flags) is False
    assert is_flag_enabled("NOT_A_FLAG", flags) is False


def test_track_records_event_and_counter():
    track("profile:completed", {"sectors": ["Health"]}, user_id="user_alice")

    events = recent_events()
    assert events[-1]["name"] == "profile:completed"
    assert events[-1]["payload"] == {"sectors": ["Health"]}
    assert telemetry_events_total.value({"event": "profile:completed"}) == 1


def test_track_is_noop_when_disabled(monkeypatch):
    monkeypatch.setattr(settings, "TELEMETRY_ENABLED", False)

    track("auth:logout", {})

    assert recent_events() == []
    assert telemetry_events_total.value({"event": "auth:logout"}) == 0


def test_track_never_raises(monkeypatch):
    broken = Mock()
    broken.inc.side_effect = RuntimeError("counter unavailable")
    monkeypatch.setattr(telemetry, "telemetry_events_total", broken)

    track("auth:login_success", {"method": "dev"})

    assert recent_events() == []


def test_recent_events_are_bounded():
    for index in range(telemetry.MAX_RECENT_EVENTS + 10):
        track("profile:updated", {"index": index})

    events = recent_events()
    assert len(events) == telemetry.MAX_RECENT_EVENTS
    assert events[0]["payload"]["index"] == 10
    clear_events()
    assert recent_events() == []


def test_support_id_shape():
    ids = {support_id() for _ in range(20)}

    assert all(len(i) == 8 and i.isalnum() and i.lower() == i for i in ids)
    assert len(ids) > 1
