"""
Session resolution and auth routes.
"""
from types import SimpleNamespace

import jwt
import pytest

from ngoinfo.core.config import load_settings, settings
from ngoinfo.core.errors import UnauthorizedError
from ngoinfo.core.telemetry import recent_events
from ngoinfo.features.auth.session import (
    ChainedSessionProvider,
    DevSessionProvider,
    JwtSessionProvider,
    Session,
    build_default_provider,
    issue_token,
    require_session,
    set_session_provider,
    user_id_for_email,
)


def _request(headers=None, cookies=None):
    return SimpleNamespace(headers=headers or {}, cookies=cookies or {})


def test_user_id_for_email_is_stable_and_case_insensitive():
    assert user_id_for_email("Ada@Example.org") == user_id_for_email(" ada@example.org ")
    assert user_id_for_email("ada@example.org") != user_id_for_email("bob@example.org")
    assert user_id_for_email("ada@example.org").startswith("user_")


def test_jwt_provider_reads_bearer_token():
    token, expires_at = issue_token("user_alice", email="ada@example.org")

    session = JwtSessionProvider().get_session(_request(headers={"Authorization": f"Bearer {token}"}))

    assert session.user_id == "user_alice"
    assert session.email == "ada@example.org"
    assert session.expires_at is not None


def test_jwt_provider_reads_cookie():
    token, _ = issue_token("user_alice")
    session = JwtSessionProvider().get_session(_request(cookies={"ngo_session": token}))
    assert session.user_id == "user_alice"


def test_jwt_provider_rejects_expired_token():
    token, _ = issue_token("user_alice", ttl_seconds=-10)
    assert JwtSessionProvider().get_session(_request(headers={"Authorization": f"Bearer {token}"})) is None


def test_jwt_provider_rejects_foreign_signature():
    token = jwt.encode({"sub": "user_mallory"}, "not-our-secret", algorithm="HS256")
    assert JwtSessionProvider().get_session(_request(headers={"Authorization": f"Bearer {token}"})) is None


def test_jwt_provider_requires_subject():
    token = jwt.encode({"email": "x@example.org"}, settings.AUTH_SECRET, algorithm="HS256")
    assert JwtSessionProvider().get_session(_request(headers={"Authorization": f"Bearer {token}"})) is None


def test_issue_token_without_secret_fails(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_SECRET", None)
    with pytest.raises(RuntimeError):
        issue_token("user_alice")


def test_dev_provider_header_and_cookie():
    provider = DevSessionProvider()

    assert provider.get_session(_request(headers={"X-User-Id": "user_dev"})).user_id == "user_dev"
    assert provider.get_session(_request(cookies={"dev-session-token": "user_cookie"})).user_id == "user_cookie"
    assert provider.get_session(_request()) is None


def test_chained_provider_first_match_wins():
    class Fixed:
        def __init__(self, user_id):
            self.user_id = user_id

        def get_session(self, request):
            return Session(user_id=self.user_id) if self.user_id else None

    chain = ChainedSessionProvider([Fixed(None), Fixed("second"), Fixed("third")])
    assert chain.get_session(_request()).user_id == "second"


def test_production_ignores_dev_header(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "production")
    provider = build_default_provider()

    assert provider.get_session(_request(headers={"X-User-Id": "user_spoof"})) is None


def test_misspelled_env_does_not_enable_dev_sessions(monkeypatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setattr(settings, "ENV", load_settings().ENV)

    provider = build_default_provider()

    assert provider.get_session(_request(headers={"X-User-Id": "user_spoof"})) is None
    assert provider.get_session(_request(cookies={"dev-session-token": "user_spoof"})) is None


def test_require_session_raises_without_session():
    with pytest.raises(UnauthorizedError):
        require_session(_request())


def test_session_provider_override(client):
    class Always:
        def get_session(self, request):
            return Session(user_id="user_override")

    set_session_provider(Always())

    body = client.get("/api/auth/session").json()
    assert body["authenticated"] is True
    assert body["user_id"] == "user_override"


def test_session_route_anonymous(client):
    assert client.get("/api/auth/session").json() == {
        "authenticated": False,
        "user_id": None,
        "email": None,
        "expires_at": None,
    }


def test_login_issues_token_and_cookie(client):
    response = client.post("/api/auth/login", json={"email": "Ada@Example.org", "password": "pw"})

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "ada@example.org"
    assert body["user_id"] == user_id_for_email("ada@example.org")
    assert body["token"]
    assert "ngo_session" in response.cookies
    assert "auth:login_success" in [e["name"] for e in recent_events()]

    bearer = client.get("/api/auth/session", headers={"Authorization": f"Bearer {body['token']}"}).json()
    assert bearer["authenticated"] is True
    assert bearer["user_id"] == body["user_id"]


def test_login_cookie_authenticates_following_requests(client):
    client.post("/api/auth/login", json={"email": "ada@example.org", "password": "pw"})

    response = client.get("/api/quota")

    assert response.status_code == 200
    assert response.json()["plan_id"] == "trial"


def test_logout_clears_session(client):
    client.post("/api/auth/login", json={"email": "ada@example.org", "password": "pw"})

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert client.get("/api/auth/session").json()["authenticated"] is False
    assert "auth:logout" in [e["name"] for e in recent_events()]


def test_login_without_auth_secret_uses_dev_cookie(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_SECRET", None)

    response = client.post("/api/auth/login", json={"email": "ada@example.org", "password": "pw"})

    assert response.status_code == 200
    assert response.json()["token"] is None
    assert response.cookies["dev-session-token"] == user_id_for_email("ada@example.org")


@pytest.mark.parametrize("payload", [
    {"email": "ada@example.org"},
    {"email": "not-an-email", "password": "pw"},
    {"email": "ada@example.org", "password": ""},
])
def test_login_validation(client, payload):
    response = client.post("/api/auth/login", json=payload)
    assert response.status_code == 400
