# ngoinfo/conftest.py
import hashlib
import hmac
import json
import os
import tempfile
import time
from pathlib import Path

import pytest

# Settings are read once at import, so the environment is fixed up first.
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="ngoinfo-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB_DIR / 'ngoinfo.db'}"
os.environ["ENV"] = "test"
os.environ["USE_MSW"] = "true"
os.environ["AUTH_SECRET"] = "test-auth-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_ngoinfo"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_ngoinfo"
os.environ["STORAGE_SIGNING_SECRET"] = "test-storage-secret"
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "100000"
os.environ["TELEMETRY_ENABLED"] = "true"

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    """Create all database tables once per test session."""
    from ngoinfo.core.database import create_all_tables
    create_all_tables()
    yield


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """Every test starts from empty tables."""
    from ngoinfo.core.database import reset_database
    reset_database()
    yield


@pytest.fixture(scope="function", autouse=True)
def reset_process_state():
    """Counters, recorded telemetry and session overrides are process-wide."""
    from ngoinfo.core.metrics import METRICS
    from ngoinfo.core.telemetry import clear_events
    from ngoinfo.features.auth.session import set_session_provider

    METRICS.reset()
    clear_events()
    set_session_provider(None)
    yield
    set_session_provider(None)


@pytest.fixture
def app():
    from ngoinfo.main import app as fastapi_app
    return fastapi_app


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def user_headers():
    """Headers that authenticate as the given user through the dev session provider."""
    def _headers(user_id: str = "user_alice") -> dict:
        return {"X-User-Id": user_id}
    return _headers


def _sign_stripe_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header the stripe library accepts."""
    ts = int(timestamp if timestamp is not None else time.time())
    signed = f"{ts}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


@pytest.fixture
def stripe_signature():
    return _sign_stripe_payload


@pytest.fixture
def stripe_event():
    """Factory for a serialized Stripe event and its signature header."""
    def _event(event_type: str, obj: dict, event_id: str = "evt_test_1", created: int = 1760000000):
        payload = json.dumps({
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": created,
            "data": {"object": obj},
        })
        return payload, _sign_stripe_payload(payload)
    return _event
