"""
End-to-end tests of the HTTP surface with dependencies swapped for test doubles.
"""

import httpx
import pytest
import pytest_asyncio  # type: ignore

from adapters.meta.oauth import MetaOAuthAdapter
from adapters.supabase.auth import AuthenticatedUser
from config.settings import MetaOAuthSettings
from core.infrastructure.http_client import NO_RETRY
from core.services.campaign_orchestrator import CampaignOrchestrator
from core.services.campaign_status_service import CampaignStatusService
from core.services.connection_manager import ConnectionManager
from dependencies.services import (
    get_auth_adapter,
    get_campaign_orchestrator,
    get_campaign_status_service,
    get_connection_manager,
)
from exceptions.custom_exceptions import UnauthorizedException
from main import create_app
from tests.conftest import NOW

AUTH = {"Authorization": "Bearer user-token"}


class FakeAuthAdapter:
    async def verify_token(self, access_token: str) -> AuthenticatedUser:
        if access_token == "admin-token":
            return AuthenticatedUser(user_id="admin-1", is_admin=True)
        if access_token:
            return AuthenticatedUser(user_id="user-1")
        raise UnauthorizedException("Missing authorization header")


@pytest.fixture
def app(connection_manager, campaign_repository, gateway_factory, meta_settings):
    app = create_app()
    app.dependency_overrides[get_auth_adapter] = lambda: FakeAuthAdapter()
    app.dependency_overrides[get_connection_manager] = lambda: connection_manager
    app.dependency_overrides[get_campaign_orchestrator] = lambda: CampaignOrchestrator(
        connection_manager,
        campaign_repository,
        gateway_factory,
        meta_settings=meta_settings,
        clock=lambda: NOW,
    )
    app.dependency_overrides[get_campaign_status_service] = lambda: CampaignStatusService(
        connection_manager, campaign_repository, gateway_factory, clock=lambda: NOW
    )
    return app


@pytest_asyncio.fixture
async def api(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _submission(**settings):
    return {
        "projectId": "project-1",
        "campaignName": "Spring Launch",
        "settings": {"dailyBudget": 20, "landingPageUrl": "https://mealkits.example.com", **settings},
        "ads": [
            {
                "id": "ad-1",
                "headline": "Dinner sorted",
                "primaryText": "Fresh ingredients delivered weekly.",
                "imageUrl": "https://scontent.fbcdn.net/ad-1.png",
            }
        ],
        "businessIdea": {"description": "Meal kits", "valueProposition": "Dinner in 20 minutes"},
        "targetAudience": {"demographics": "Parents 30-45 in Canada", "painPoints": ["cooking"]},
    }


@pytest.mark.asyncio
async def test_create_campaign(api, make_connection):
    await make_connection()

    response = await api.post("/api/ads/meta/campaigns", json=_submission(), headers=AUTH)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["error"] is None
    assert body["data"]["campaignId"].startswith("cmp_")
    assert body["data"]["ads"][0]["creativeId"] == "ad-1"
    assert body["data"]["state"] == "DONE"
    assert response.headers["x-request-id"]


@pytest.mark.asyncio
async def test_create_campaign_remote_failure_reports_stage(api, make_connection, graph):
    await make_connection()
    graph.fail("campaigns", "Ad account is disabled")

    response = await api.post("/api/ads/meta/campaigns", json=_submission(), headers=AUTH)

    assert response.status_code == 502
    assert response.json() == {
        "success": False,
        "data": None,
        "error": "Ad account is disabled",
        "stage": "campaign",
    }


@pytest.mark.asyncio
async def test_create_campaign_requires_auth(api):
    response = await api.post("/api/ads/meta/campaigns", json=_submission())

    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_create_campaign_not_connected(api):
    response = await api.post("/api/ads/meta/campaigns", json=_submission(), headers=AUTH)

    assert response.status_code == 409
    assert "connect" in response.json()["error"].lower()


@pytest.mark.asyncio
async def test_invalid_budget_is_a_validation_error(api):
    response = await api.post(
        "/api/ads/meta/campaigns", json=_submission(dailyBudget=0), headers=AUTH
    )

    assert response.status_code == 422
    assert response.json()["details"]


@pytest.mark.asyncio
async def test_activate_and_deactivate(api, make_connection, graph):
    await make_connection()
    created = (
        await api.post("/api/ads/meta/campaigns", json=_submission(), headers=AUTH)
    ).json()["data"]
    record_id = created["databaseId"]

    response = await api.post(f"/api/ads/meta/campaigns/{record_id}/activate", headers=AUTH)

    assert response.status_code == 200
    record = response.json()["data"]
    assert record["status"] == "active"
    assert record["campaign_data"]["is_activated"] is True
    status_calls = [
        (path, body) for method, path, body in graph.requests if body.get("status") and len(body) == 1
    ]
    assert (f"/{created['campaignId']}", {"status": "ACTIVE"}) in status_calls
    assert (f"/{created['adsetId']}", {"status": "ACTIVE"}) in status_calls
    assert (f"/{created['ads'][0]['adId']}", {"status": "ACTIVE"}) in status_calls

    response = await api.post(f"/api/ads/meta/campaigns/{record_id}/deactivate", headers=AUTH)
    assert response.json()["data"]["status"] == "paused"

    response = await api.get(f"/api/ads/meta/campaigns/{record_id}", headers=AUTH)
    assert response.json()["data"]["campaign_data"]["deactivation_date"]


@pytest.mark.asyncio
async def test_activation_failure_reports_stage(api, make_connection, graph):
    await make_connection()
    created = (
        await api.post("/api/ads/meta/campaigns", json=_submission(), headers=AUTH)
    ).json()["data"]
    graph.fail(created["adsetId"], "Ad set is archived")

    response = await api.post(
        f"/api/ads/meta/campaigns/{created['databaseId']}/activate", headers=AUTH
    )

    assert response.status_code == 502
    assert response.json()["stage"] == "adset"


@pytest.mark.asyncio
async def test_unknown_campaign_is_404(api, make_connection):
    await make_connection()

    response = await api.get("/api/ads/meta/campaigns/missing", headers=AUTH)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_targeting_preview(api):
    response = await api.post(
        "/api/ads/meta/targeting/preview",
        json={"demographics": "Women 25-34 in Australia", "painPoints": ["fashion"]},
        headers=AUTH,
    )

    data = response.json()["data"]
    assert data["age_min"] == 25
    assert data["genders"] == [2]
    assert data["geo_locations"] == {"countries": ["AU"]}


@pytest.mark.asyncio
async def test_connection_status_hides_token(api, make_connection):
    await make_connection()

    response = await api.get("/api/ads/meta/connection", headers=AUTH)

    data = response.json()["data"]
    assert data["connected"] is True
    assert data["isValid"] is True
    assert data["selectedAdAccountId"] == "111"
    assert "fb-token" not in response.text


@pytest.mark.asyncio
async def test_missing_oauth_config_detail_only_for_admins(
    app, api, connection_repository, http_client, meta_settings
):
    manager = ConnectionManager(
        connection_repository,
        MetaOAuthAdapter(http_client, MetaOAuthSettings(), meta_settings, retry_policy=NO_RETRY),
    )
    app.dependency_overrides[get_connection_manager] = lambda: manager

    response = await api.get("/api/ads/meta/connection/authorize", headers=AUTH)
    assert response.status_code == 500
    assert response.json()["error"] == "Service temporarily unavailable, please try again later"
    assert "missingKeys" not in response.json()

    response = await api.get(
        "/api/ads/meta/connection/authorize", headers={"Authorization": "Bearer admin-token"}
    )
    assert response.json()["missingKeys"] == ["FACEBOOK_APP_ID", "FACEBOOK_REDIRECT_URI"]


@pytest.mark.asyncio
async def test_health(api):
    response = await api.get("/health")

    assert response.json()["status"] == "ok"
