"""
Fixed-window rate limiting, limiter and middleware.
"""
from types import SimpleNamespace

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ngoinfo.core.metrics import ratelimit_block_total
from ngoinfo.core.middleware.ratelimit import RateLimitMiddleware
from ngoinfo.core.ratelimit import FixedWindowLimiter, RateLimitConfig, build_rate_limit_config


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


def _app(config: RateLimitConfig, clock: FakeClock) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, config=config, time_fn=clock)

    @app.get("/api/opportunities")
    def opportunities():
        return {"ok": True}

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return app


def test_limiter_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    limiter = FixedWindowLimiter(3, 60, time_fn=clock)

    decisions = [limiter.check("1.2.3.4") for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]
    assert decisions[-1].retry_after == 60


def test_limiter_window_resets():
    clock = FakeClock()
    limiter = FixedWindowLimiter(1, 60, time_fn=clock)

    assert limiter.allow("ip") is True
    assert limiter.allow("ip") is False
    clock.now += 59
    assert limiter.check("ip").retry_after == 1
    clock.now += 1
    assert limiter.allow("ip") is True


def test_limiter_keys_are_independent():
    limiter = FixedWindowLimiter(1, 60, time_fn=FakeClock())

    assert limiter.allow("a") is True
    assert limiter.allow("b") is True
    assert limiter.allow("a") is False


@pytest.mark.parametrize("env,guards,enabled", [
    ("development", False, False),
    ("development", True, True),
    ("test", False, True),
    ("production", False, True),
])
def test_build_config_enforcement(env, guards, enabled):
    cfg = build_rate_limit_config(SimpleNamespace(
        ENV=env,
        GUARDS_ENABLED=guards,
        RATE_LIMIT_WINDOW_SECONDS=30,
        RATE_LIMIT_MAX_REQUESTS=5,
    ))
    assert cfg.enabled is enabled
    assert cfg.window_seconds == 30
    assert cfg.max_requests == 5


def test_middleware_blocks_with_429_and_headers():
    client = TestClient(_app(RateLimitConfig(enabled=True, window_seconds=60, max_requests=2), FakeClock()))

    first = client.get("/api/opportunities")
    second = client.get("/api/opportunities")
    third = client.get("/api/opportunities")

    assert first.headers["X-RateLimit-Limit"] == "2"
    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert second.headers["X-RateLimit-Remaining"] == "0"
    assert third.status_code == 429
    assert third.json()["error"]["code"] == "rate_limited"
    assert third.headers["Retry-After"] == "60"
    assert ratelimit_block_total.value({"scope": "/api/opportunities"}) == 1


def test_middleware_log_only_when_not_enforcing():
    client = TestClient(_app(RateLimitConfig(enabled=False, window_seconds=60, max_requests=1), FakeClock()))

    client.get("/api/opportunities")
    response = client.get("/api/opportunities")

    assert response.status_code == 200
    assert ratelimit_block_total.value({"scope": "/api/opportunities"}) == 1


def test_middleware_exempts_health():
    client = TestClient(_app(RateLimitConfig(enabled=True, window_seconds=60, max_requests=1), FakeClock()))

    statuses = [client.get("/healthz").status_code for _ in range(5)]

    assert statuses == [200] * 5


def test_limiter_evicts_expired_windows():
    clock = FakeClock()
    limiter = FixedWindowLimiter(5, 60, time_fn=clock)

    for i in range(100):
        limiter.check(f"10.0.0.{i}")
    assert len(limiter.windows) == 100

    clock.now += 60
    limiter.check("10.0.1.1")

    assert list(limiter.windows) == ["10.0.1.1"]


def test_build_config_trusts_forwarded_for_only_when_configured():
    base = dict(ENV="production", GUARDS_ENABLED=False, RATE_LIMIT_WINDOW_SECONDS=60, RATE_LIMIT_MAX_REQUESTS=5)

    assert build_rate_limit_config(SimpleNamespace(**base)).trust_forwarded_for is False
    assert build_rate_limit_config(SimpleNamespace(TRUST_FORWARDED_FOR=True, **base)).trust_forwarded_for is True


def test_middleware_ignores_forwarded_for_by_default():
    client = TestClient(_app(RateLimitConfig(enabled=True, window_seconds=60, max_requests=1), FakeClock()))

    first = client.get("/api/opportunities", headers={"x-forwarded-for": "10.0.0.1"})
    rotated = client.get("/api/opportunities", headers={"x-forwarded-for": "10.0.0.2"})

    assert [first.status_code, rotated.status_code] == [200, 429]


def test_middleware_keys_on_proxy_appended_hop_when_trusted():
    config = RateLimitConfig(enabled=True, window_seconds=60, max_requests=1, trust_forwarded_for=True)
    client = TestClient(_app(config, FakeClock()))

    a = client.get("/api/opportunities", headers={"x-forwarded-for": "10.0.0.1"})
    b = client.get("/api/opportunities", headers={"x-forwarded-for": "10.0.0.2"})
    # a spoofed leading entry does not change the key the proxy appended
    a_spoofed = client.get("/api/opportunities", headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1"})

    assert [a.status_code, b.status_code, a_spoofed.status_code] == [200, 200, 429]
