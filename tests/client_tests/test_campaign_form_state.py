import asyncio
import json

import httpx
import pytest

from client.api_client import CampaignApiClient, CampaignApiError
from client.campaign_form import (
    CampaignFormStateManager,
    FormTab,
    NotificationLevel,
    WizardView,
)
from client.status_poller import CampaignStatusPoller
from core.models.campaign import AdVariant


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def notify(self, level, title, message):
        self.messages.append((level, title, message))


class FakeBackend:
    """Stands in for the campaign API over httpx.MockTransport."""

    def __init__(self, result=None, status_code=201, gate: asyncio.Event | None = None):
        self.result = result or {
            "success": True,
            "campaignId": "cmp_1",
            "databaseId": "rec-1",
            "ads": [{"creativeId": "ad-1"}, {"creativeId": "ad-2"}],
            "failedAds": [],
        }
        self.status_code = status_code
        self.gate = gate
        self.submissions = []
        self.statuses = ["draft", "draft", "active"]
        self.retries = []
        self.retry_result = {"ads": [{"creativeId": "ad-2"}], "failedAds": []}

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path.endswith("/campaigns"):
            self.submissions.append(json.loads(request.content))
            if self.gate is not None:
                await self.gate.wait()
            if self.status_code >= 400:
                return httpx.Response(
                    self.status_code,
                    json={"success": False, "data": None, "error": "Ad account is disabled", "stage": "campaign"},
                )
            return httpx.Response(self.status_code, json={"success": True, "data": self.result, "error": None})
        if request.method == "GET":
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return httpx.Response(200, json={"success": True, "data": {"id": "rec-1", "status": status}})
        if path.endswith("/retry-ads"):
            self.retries.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "data": self.retry_result})
        if path.endswith("/activate"):
            return httpx.Response(200, json={"success": True, "data": {"id": "rec-1", "status": "active"}})
        return httpx.Response(404, json={"success": False, "error": "not found"})


def _ads(count: int) -> list[AdVariant]:
    return [
        AdVariant(id=f"ad-{i}", headline=f"Headline {i}", imageUrl=f"https://img.test/{i}.png")
        for i in range(1, count + 1)
    ]


def _manager(backend: FakeBackend, ads_count: int = 7):
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(backend), base_url="https://api.test"
    )
    notifier = RecordingNotifier()
    manager = CampaignFormStateManager(
        CampaignApiClient(http_client, lambda: "user-token"),
        notifier,
        project_id="project-1",
        available_ads=_ads(ads_count),
        poll_interval=0,
    )
    return manager, notifier


def _fill(manager: CampaignFormStateManager) -> None:
    manager.choose_mode("manual")
    manager.update_fields(campaignName="Spring Launch", dailyBudget=25)
    for ad_id in ("ad-1", "ad-2"):
        manager.toggle_ad(ad_id, True)


def test_sixth_selection_is_rejected_and_notified():
    manager, notifier = _manager(FakeBackend())
    for i in range(1, 6):
        assert manager.toggle_ad(f"ad-{i}", True) is True

    assert manager.toggle_ad("ad-6", True) is False
    assert manager.selected_ad_ids == ["ad-1", "ad-2", "ad-3", "ad-4", "ad-5"]
    assert notifier.messages[-1][0] is NotificationLevel.WARNING

    manager.toggle_ad("ad-3", False)
    assert manager.toggle_ad("ad-6", True) is True


def test_select_all_truncates_to_limit():
    manager, notifier = _manager(FakeBackend())

    manager.select_all()

    assert manager.selected_ad_ids == ["ad-1", "ad-2", "ad-3", "ad-4", "ad-5"]
    assert notifier.messages[-1][1] == "Selection limited"
    manager.clear_selection()
    assert manager.selected_ad_ids == []


def test_details_survive_tab_switch():
    manager, _ = _manager(FakeBackend())
    manager.choose_mode()
    manager.update_fields(campaignName="Spring Launch", dailyBudget=40)

    manager.switch_tab(FormTab.ADS)
    # The ads tab remounting the details form must not wipe the values
    manager.form_values["campaignName"] = ""
    manager.switch_tab(FormTab.DETAILS)

    assert manager.form_values["campaignName"] == "Spring Launch"
    assert manager.form_values["dailyBudget"] == 40


def test_update_fields_rejects_unknown_keys():
    manager, _ = _manager(FakeBackend())

    with pytest.raises(KeyError):
        manager.update_fields(budget=10)


@pytest.mark.asyncio
async def test_submit_moves_to_status_view():
    backend = FakeBackend()
    manager, notifier = _manager(backend)
    _fill(manager)

    data = await manager.submit()

    assert data["campaignId"] == "cmp_1"
    assert manager.view is WizardView.STATUS
    assert manager.record_id == "rec-1"
    assert notifier.messages[-1][0] is NotificationLevel.SUCCESS
    submission = backend.submissions[0]
    assert submission["campaignName"] == "Spring Launch"
    assert submission["settings"]["dailyBudget"] == 25
    assert [a["id"] for a in submission["ads"]] == ["ad-1", "ad-2"]


@pytest.mark.asyncio
async def test_double_submit_dispatches_once():
    gate = asyncio.Event()
    backend = FakeBackend(gate=gate)
    manager, _ = _manager(backend)
    _fill(manager)

    first = asyncio.create_task(manager.submit())
    await asyncio.sleep(0.01)
    assert manager.is_submitting is True

    second = await manager.submit()
    gate.set()
    await first

    assert second is None
    assert len(backend.submissions) == 1
    assert manager.is_submitting is False


@pytest.mark.asyncio
async def test_partial_failure_warns_with_creative_ids():
    backend = FakeBackend(
        result={
            "success": True,
            "campaignId": "cmp_1",
            "databaseId": "rec-1",
            "ads": [{"creativeId": "ad-1"}],
            "failedAds": [{"creativeId": "ad-2", "stage": "creative", "reason": "Image too small"}],
        }
    )
    manager, notifier = _manager(backend)
    _fill(manager)

    await manager.submit()

    level, title, message = notifier.messages[-1]
    assert level is NotificationLevel.WARNING
    assert "ad-1" in message
    assert "ad-2 (Image too small)" in message


@pytest.mark.asyncio
async def test_failed_submission_notifies_and_stays_on_form():
    manager, notifier = _manager(FakeBackend(status_code=502))
    _fill(manager)

    assert await manager.submit() is None

    assert manager.view is WizardView.FORM
    assert notifier.messages[-1] == (
        NotificationLevel.ERROR,
        "Campaign creation failed",
        "Ad account is disabled",
    )
    assert manager.is_submitting is False


@pytest.mark.asyncio
async def test_invalid_form_is_not_sent():
    backend = FakeBackend()
    manager, notifier = _manager(backend)
    manager.choose_mode()

    assert await manager.submit() is None
    assert backend.submissions == []
    assert "Campaign name is required" in notifier.messages[-1][2]


@pytest.mark.asyncio
async def test_api_error_exposes_stage():
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(FakeBackend(status_code=502)), base_url="https://api.test"
    )
    api = CampaignApiClient(http_client, lambda: "t")

    with pytest.raises(CampaignApiError) as exc:
        await api.create_campaign({})

    assert exc.value.status_code == 502
    assert exc.value.stage == "campaign"


@pytest.mark.asyncio
async def test_status_polling_stops_on_terminal_status():
    manager, _ = _manager(FakeBackend())
    _fill(manager)
    await manager.submit()

    poller = manager.start_status_polling()
    await asyncio.wait_for(poller.wait(), timeout=1)

    assert manager.campaign_status == "active"
    assert poller.running is False
    await manager.close()


@pytest.mark.asyncio
async def test_close_cancels_polling():
    calls = []

    async def fetch():
        calls.append(1)
        return {"status": "draft"}

    poller = CampaignStatusPoller(fetch, interval=0.01)
    poller.start()
    await asyncio.sleep(0.05)
    assert poller.running is True

    await poller.close()
    seen = len(calls)
    await asyncio.sleep(0.05)

    assert poller.running is False
    assert len(calls) == seen


@pytest.mark.asyncio
async def test_poller_gives_up_after_repeated_failures():
    async def fetch():
        raise httpx.ConnectError("offline")

    poller = CampaignStatusPoller(fetch, interval=0, max_failures=2)
    poller.start()
    await asyncio.wait_for(poller.wait(), timeout=1)

    assert poller.last_status is None


@pytest.mark.asyncio
async def test_activate_updates_status():
    manager, notifier = _manager(FakeBackend())
    _fill(manager)
    await manager.submit()

    assert await manager.activate() is True
    assert manager.campaign_status == "active"
    assert notifier.messages[-1][1] == "Campaign activated"


def _offline_manager():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="https://api.test")
    notifier = RecordingNotifier()
    manager = CampaignFormStateManager(
        CampaignApiClient(http_client, lambda: "user-token"),
        notifier,
        project_id="project-1",
        available_ads=_ads(3),
    )
    return manager, notifier


@pytest.mark.asyncio
async def test_unreachable_backend_notifies_on_submit():
    manager, notifier = _offline_manager()
    _fill(manager)

    assert await manager.submit() is None

    level, title, message = notifier.messages[-1]
    assert (level, title) == (NotificationLevel.ERROR, "Campaign creation failed")
    assert "Could not reach the campaign service" in message
    assert manager.is_submitting is False
    assert manager.view is WizardView.FORM


@pytest.mark.asyncio
async def test_unreachable_backend_notifies_on_activate():
    manager, notifier = _offline_manager()
    manager.record_id = "rec-1"

    assert await manager.activate() is False
    assert notifier.messages[-1][:2] == (NotificationLevel.ERROR, "Activation failed")


@pytest.mark.asyncio
async def test_retry_failed_republishes_only_failed_creatives():
    backend = FakeBackend(
        result={
            "success": True,
            "campaignId": "cmp_1",
            "databaseId": "rec-1",
            "ads": [{"creativeId": "ad-1"}],
            "failedAds": [{"creativeId": "ad-2", "stage": "ad", "reason": "Temporary issue"}],
        }
    )
    manager, notifier = _manager(backend)
    _fill(manager)
    await manager.submit()

    await manager.retry_failed()

    assert [a["id"] for a in backend.retries[0]["ads"]] == ["ad-2"]
    assert [a["creativeId"] for a in manager.result["ads"]] == ["ad-1", "ad-2"]
    assert manager.result["failedAds"] == []
    assert notifier.messages[-1][0] is NotificationLevel.SUCCESS


@pytest.mark.asyncio
async def test_retry_failed_without_failures_sends_nothing():
    backend = FakeBackend()
    manager, notifier = _manager(backend)
    _fill(manager)
    await manager.submit()

    assert await manager.retry_failed() is None
    assert backend.retries == []
    assert notifier.messages[-1][1] == "Nothing to retry"
