"""
Funding opportunities: local catalog, ReqAgent client and routes.
"""
from datetime import datetime, timezone

import httpx
import pytest

from ngoinfo.core.config import settings
from ngoinfo.features.opportunities.catalog import (
    OPPORTUNITIES,
    filter_opportunities,
    get_opportunity_by_id,
    list_regions,
    list_sectors,
)
from ngoinfo.features.opportunities.client import ReqAgentClient, ReqAgentError, get_reqagent_client

NOW = datetime(2025, 10, 20, tzinfo=timezone.utc)
REMOTE = {
    "id": "fo_1",
    "title": "Remote Grant",
    "donor": "Remote Donor",
    "deadline": "2026-01-01",
    "url": "https://reqagent.test/fo_1",
    "unexpected": "ignored",
}


def _client(handler) -> ReqAgentClient:
    return ReqAgentClient(base_url="https://reqagent.test", timeout_ms=500, transport=httpx.MockTransport(handler))


@pytest.fixture
def remote_mode(app, monkeypatch):
    """Detail lookups hit the (mocked) ReqAgent API."""
    monkeypatch.setattr(settings, "USE_MSW", False)

    def _install(handler):
        app.dependency_overrides[get_reqagent_client] = lambda: _client(handler)

    yield _install
    app.dependency_overrides.pop(get_reqagent_client, None)


def test_catalog_lookup():
    assert len(OPPORTUNITIES) == 6
    assert get_opportunity_by_id("opp-003").donor == "Malala Fund"
    assert get_opportunity_by_id("opp-999") is None


def test_regions_and_sectors():
    assert "East Africa" in list_regions()
    assert list_regions() == sorted(list_regions())
    assert "Health" in list_sectors()


def test_filter_all_disables_filters():
    assert len(filter_opportunities(region="all", sector="all")) == 6
    assert len(filter_opportunities()) == 6


def test_filter_by_region_and_sector():
    east = filter_opportunities(region="East Africa")
    assert {o.id for o in east} == {"opp-001", "opp-004", "opp-005"}

    education_east = filter_opportunities(region="East Africa", sector="Education")
    assert [o.id for o in education_east] == ["opp-005"]


def test_filter_search_is_case_insensitive_over_title_donor_and_sectors():
    assert [o.id for o in filter_opportunities(search="unhcr")] == ["opp-006"]
    assert [o.id for o in filter_opportunities(search="GIRLS")] == ["opp-003"]
    assert "opp-002" in [o.id for o in filter_opportunities(search="climate change")]


def test_filter_deadline_window():
    within_30 = filter_opportunities(deadline="next_30", now=NOW)
    assert {o.id for o in within_30} == {"opp-003", "opp-005"}

    within_90 = filter_opportunities(deadline="next_90", now=NOW)
    assert "opp-004" not in {o.id for o in within_90}
    assert len(within_90) == 5


def test_client_parses_opportunity():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        return httpx.Response(200, json=REMOTE)

    opportunity = _client(handler).get_funding_opportunity("fo_1")

    assert seen["path"] == "/opportunities/fo_1"
    assert opportunity.title == "Remote Grant"


def test_client_maps_http_errors():
    with pytest.raises(ReqAgentError) as exc_info:
        _client(lambda request: httpx.Response(404, text="missing")).get_funding_opportunity("x")
    assert exc_info.value.code == "HTTP_404"


def test_client_maps_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ReqAgentError) as exc_info:
        _client(handler).get_funding_opportunity("x")
    assert exc_info.value.code == "TIMEOUT"


def test_client_maps_network_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ReqAgentError) as exc_info:
        _client(handler).get_funding_opportunity("x")
    assert exc_info.value.code == "NETWORK"


def test_list_route(client):
    response = client.get("/api/opportunities", params={"region": "East Africa"})

    assert response.status_code == 200
    assert [o["id"] for o in response.json()] == ["opp-001", "opp-004", "opp-005"]


def test_list_route_rejects_unknown_deadline(client):
    response = client.get("/api/opportunities", params={"deadline": "next_7"})
    assert response.status_code == 400


def test_detail_route_local(client):
    response = client.get("/api/opportunities/opp-001")

    assert response.status_code == 200
    assert response.json()["title"] == "Community Health Initiative Grant"


def test_detail_route_local_unknown(client):
    assert client.get("/api/opportunities/opp-999").status_code == 404


def test_detail_route_remote(client, remote_mode):
    remote_mode(lambda request: httpx.Response(200, json=REMOTE))

    response = client.get("/api/opportunities/fo_1")

    assert response.status_code == 200
    assert response.json()["donor"] == "Remote Donor"


@pytest.mark.parametrize("handler_result,status", [
    ("timeout", 504),
    (404, 404),
    (500, 502),
])
def test_detail_route_remote_errors(client, remote_mode, handler_result, status):
    def handler(request):
        if handler_result == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(handler_result, text="upstream")

    remote_mode(handler)

    assert client.get("/api/opportunities/fo_1").status_code == status
