"""
Signed export URLs.
"""
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from ngoinfo.core.config import DEV_STORAGE_SIGNING_SECRET, settings
from ngoinfo.features.storage.signing import (
    create_proposal_export_url,
    create_signed_url,
    proposal_export_path,
    sign,
    verify_proposal_export,
    verify_signed_url,
)

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def test_signed_url_roundtrip():
    url = create_signed_url("exports", "user_a/prop_1.docx", expires_in=60, now=NOW)
    q = _query(url)

    assert int(q["expires"]) == int(NOW.timestamp()) + 60
    assert verify_signed_url("exports", "user_a/prop_1.docx", int(q["expires"]), q["token"], now=NOW) is True


def test_signature_is_bound_to_bucket_and_path():
    q = _query(create_signed_url("exports", "user_a/prop_1.docx", now=NOW))
    expires, token = int(q["expires"]), q["token"]

    assert verify_signed_url("exports", "user_b/prop_1.docx", expires, token, now=NOW) is False
    assert verify_signed_url("other", "user_a/prop_1.docx", expires, token, now=NOW) is False
    assert verify_signed_url("exports", "user_a/prop_1.docx", expires + 1, token, now=NOW) is False


def test_signed_url_expires():
    q = _query(create_signed_url("exports", "p.docx", expires_in=60, now=NOW))
    expires, token = int(q["expires"]), q["token"]

    assert verify_signed_url("exports", "p.docx", expires, token, now=NOW + timedelta(seconds=59)) is True
    assert verify_signed_url("exports", "p.docx", expires, token, now=NOW + timedelta(seconds=60)) is False


def test_empty_token_is_rejected():
    assert verify_signed_url("exports", "p.docx", 9999999999, "", now=NOW) is False


def test_non_positive_expiry_is_rejected():
    with pytest.raises(ValueError):
        create_signed_url("exports", "p.docx", expires_in=0)


def test_sign_depends_on_secret():
    assert sign("exports", "p.docx", 100, secret="a") != sign("exports", "p.docx", 100, secret="b")


def test_dev_signing_key_refused_in_production(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "production")
    monkeypatch.setattr(settings, "STORAGE_SIGNING_SECRET", DEV_STORAGE_SIGNING_SECRET)

    with pytest.raises(RuntimeError, match="STORAGE_SIGNING_SECRET"):
        create_signed_url("exports", "p.docx", now=NOW)


def test_dev_signing_key_allowed_outside_production(monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_SIGNING_SECRET", DEV_STORAGE_SIGNING_SECRET)

    url = create_signed_url("exports", "p.docx", now=NOW)

    assert verify_signed_url("exports", "p.docx", int(_query(url)["expires"]), _query(url)["token"], now=NOW)


def test_proposal_export_url():
    url = create_proposal_export_url("user_a", "prop_1", now=NOW)
    parts = urlsplit(url)
    q = _query(url)

    assert proposal_export_path("user_a", "prop_1") == "user_a/prop_1.docx"
    assert parts.path == "/api/proposals/export/prop_1"
    assert int(q["expires"]) == int(NOW.timestamp()) + 300
    assert verify_proposal_export("user_a", "prop_1", int(q["expires"]), q["token"], now=NOW) is True
    assert verify_proposal_export("user_b", "prop_1", int(q["expires"]), q["token"], now=NOW) is False
