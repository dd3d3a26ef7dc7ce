"""
Event tracking.

Events are named category:action (monetisation:trial_started,
profile:completed, auth:logout). Each tracked event becomes a structured log
line and a counter increment. Tracking never fails the caller.
"""

import secrets
import string
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from ngoinfo.core.config import settings
from ngoinfo.core.logging import log_event
from ngoinfo.core.metrics import telemetry_events_total

MAX_RECENT_EVENTS = 50

_recent: Deque[Dict[str, Any]] = deque(maxlen=MAX_RECENT_EVENTS)
_lock = threading.Lock()

_SUPPORT_ALPHABET = string.ascii_lowercase + string.digits


def telemetry_enabled() -> bool:
    return settings.TELEMETRY_ENABLED is not False


def support_id() -> str:
    """Short random id users can quote to support."""
    return "".join(secrets.choice(_SUPPORT_ALPHABET) for _ in range(8))


def track(event_name: str, payload: Optional[Dict[str, Any]] = None, *, user_id: Optional[str] = None) -> None:
    if not telemetry_enabled():
        return
    try:
        event = {
            "name": event_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": dict(payload or {}),
        }
        log_event(
            "info",
            "telemetry.track",
            user_id=user_id,
            event_type=event_name,
            extra=event["payload"],
        )
        telemetry_events_total.inc(labels={"event": event_name})
        with _lock:
            _recent.append(event)
    except Exception as exc:
        log_event("warning", "telemetry.failed", event_type=event_name, extra={"error": exc})


def recent_events() -> List[Dict[str, Any]]:
    with _lock:
        return list(_recent)


def clear_events() -> None:
    with _lock:
        _recent.clear()
