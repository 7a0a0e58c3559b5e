import json

import httpx
import pytest

from adapters.meta.client import MetaClient
from adapters.meta.exceptions import MetaAPIError
from adapters.meta.gateway import MetaAdsGateway
from adapters.meta.images import is_platform_hosted
from adapters.meta.models import CampaignObjective, CampaignPayload, RemoteStatus
from core.infrastructure.http_client import NO_RETRY, RetryPolicy


def _client(handler, retry_policy=NO_RETRY) -> MetaClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MetaClient("tok-1", http_client, base_url="https://graph.test", retry_policy=retry_policy)


@pytest.mark.asyncio
async def test_token_sent_as_query_parameter():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json={"id": "cmp_1"})

    gateway = MetaAdsGateway(_client(handler))
    campaign_id = await gateway.campaigns.create(
        "act_42",
        CampaignPayload(name="Spring", objective=CampaignObjective.OUTCOME_AWARENESS),
    )

    assert campaign_id == "cmp_1"
    assert seen[0].url.path == "/act_42/campaigns"
    assert seen[0].url.params["access_token"] == "tok-1"
    assert "authorization" not in seen[0].headers
    assert json.loads(seen[0].content)["objective"] == "OUTCOME_AWARENESS"


@pytest.mark.asyncio
async def test_error_envelope_raises_with_user_message():
    def handler(request):
        return httpx.Response(
            400,
            json={
                "error": {
                    "message": "Invalid parameter",
                    "error_user_msg": "Budget is too low",
                    "code": 100,
                }
            },
        )

    with pytest.raises(MetaAPIError) as exc:
        await _client(handler).post("/act_1/adsets", json={})

    assert exc.value.message == "Budget is too low"
    assert exc.value.status_code == 400
    assert exc.value.code == 100


@pytest.mark.asyncio
async def test_error_body_with_success_status_still_raises():
    def handler(request):
        return httpx.Response(200, json={"error": "Session has expired"})

    with pytest.raises(MetaAPIError) as exc:
        await _client(handler).get("/me")

    assert exc.value.message == "Session has expired"
    assert exc.value.code is None


@pytest.mark.asyncio
async def test_non_json_response_raises():
    def handler(request):
        return httpx.Response(502, text="Bad gateway")

    with pytest.raises(MetaAPIError) as exc:
        await _client(handler).get("/me")

    assert exc.value.status_code == 502
    assert "Bad gateway" in exc.value.message


@pytest.mark.asyncio
async def test_retryable_status_is_retried():
    responses = iter(
        [
            httpx.Response(503, json={"error": {"message": "busy"}}),
            httpx.Response(200, json={"id": "as_9"}),
        ]
    )

    def handler(request):
        return next(responses)

    client = _client(handler, RetryPolicy(max_attempts=2, base_delay=0, jitter_ratio=0))

    assert await client.post("/act_1/adsets", json={}) == {"id": "as_9"}


@pytest.mark.asyncio
async def test_missing_id_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"success": True})

    gateway = MetaAdsGateway(_client(handler))
    with pytest.raises(MetaAPIError, match="no id for campaign"):
        await gateway.campaigns.create(
            "1", CampaignPayload(name="x", objective=CampaignObjective.OUTCOME_TRAFFIC)
        )


@pytest.mark.asyncio
async def test_status_update_posts_to_object():
    seen = []

    def handler(request):
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"success": True})

    gateway = MetaAdsGateway(_client(handler))
    await gateway.adsets.update_status("as_5", RemoteStatus.ACTIVE)

    assert seen == [("/as_5", {"status": "ACTIVE"})]


@pytest.mark.asyncio
async def test_image_upload_from_url_returns_hash():
    uploads = []

    def handler(request: httpx.Request):
        if request.url.host == "cdn.example.com":
            return httpx.Response(200, content=b"image-bytes")
        uploads.append(json.loads(request.content))
        return httpx.Response(200, json={"images": {"bytes": {"hash": "h123"}}})

    gateway = MetaAdsGateway(_client(handler))
    image_hash = await gateway.images.upload_from_url("act_1", "https://cdn.example.com/a.png")

    assert image_hash == "h123"
    assert uploads == [{"bytes": "aW1hZ2UtYnl0ZXM="}]


@pytest.mark.asyncio
async def test_image_download_failure_raises():
    def handler(request):
        return httpx.Response(404, text="gone")

    gateway = MetaAdsGateway(_client(handler))
    with pytest.raises(MetaAPIError, match="Could not download image"):
        await gateway.images.upload_from_url("1", "https://cdn.example.com/missing.png")


def test_is_platform_hosted():
    hosts = ("fbcdn.net", "facebook.com")

    assert is_platform_hosted("https://scontent.xx.fbcdn.net/v/t1.png", hosts)
    assert not is_platform_hosted("https://notfacebook.com/a.png", hosts)
    assert not is_platform_hosted("https://images.example.com/a.png", hosts)
