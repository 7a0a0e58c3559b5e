"""State holder for the campaign wizard (mode selection, form tabs, status).

The manager owns no UI. Views read its attributes and call its methods;
user-facing messages go through a ``Notifier``.
"""

import copy
from enum import Enum
from typing import Any, Optional, Protocol

import structlog

from client.api_client import CampaignApiClient, CampaignApiError
from client.status_poller import CampaignStatusPoller
from config.settings import DEFAULT_MAX_CREATIVES
from core.models.campaign import AdVariant, BusinessIdea, TargetAudience

logger = structlog.get_logger(__name__)


class WizardView(str, Enum):
    MODE_SELECTION = "mode-selection"
    FORM = "form"
    STATUS = "status"


class FormTab(str, Enum):
    DETAILS = "details"
    ADS = "ads"


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notifier(Protocol):
    def notify(self, level: NotificationLevel, title: str, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that only logs; used when no UI is attached."""

    def notify(self, level: NotificationLevel, title: str, message: str) -> None:
        logger.info("wizard_notification", level=level.value, title=title, message=message)


DEFAULT_FORM_VALUES: dict[str, Any] = {
    "campaignName": "",
    "dailyBudget": 10,
    "startDate": None,
    "endDate": None,
    "ageMin": None,
    "ageMax": None,
    "genders": [],
    "interests": [],
    "objective": None,
    "launchMode": "review",
    "landingPageUrl": None,
}


class CampaignFormStateManager:
    def __init__(
        self,
        api: CampaignApiClient,
        notifier: Optional[Notifier] = None,
        *,
        project_id: Optional[str] = None,
        business_idea: Optional[BusinessIdea] = None,
        target_audience: Optional[TargetAudience] = None,
        available_ads: Optional[list[AdVariant]] = None,
        max_selection: int = DEFAULT_MAX_CREATIVES,
        poll_interval: float = 1.0,
    ):
        self.api = api
        self.notifier = notifier or LoggingNotifier()
        self.project_id = project_id
        self.business_idea = business_idea or BusinessIdea()
        self.target_audience = target_audience or TargetAudience()
        self.available_ads = {ad.id: ad for ad in available_ads or []}
        self.max_selection = max_selection
        self.poll_interval = poll_interval

        self.view = WizardView.MODE_SELECTION
        self.mode: Optional[str] = None
        self.tab = FormTab.DETAILS
        self.form_values: dict[str, Any] = copy.deepcopy(DEFAULT_FORM_VALUES)
        self.details_cache: Optional[dict[str, Any]] = None
        self.selected_ad_ids: list[str] = []
        self.is_submitting = False

        self.result: Optional[dict[str, Any]] = None
        self.campaign_id: Optional[str] = None
        self.record_id: Optional[str] = None
        self.campaign_status: Optional[str] = None
        self._poller: Optional[CampaignStatusPoller] = None

    # -- navigation ---------------------------------------------------------

    def choose_mode(self, mode: str = "manual") -> None:
        self.mode = mode
        self.view = WizardView.FORM
        self.tab = FormTab.DETAILS

    def update_fields(self, **values: Any) -> None:
        unknown = set(values) - set(DEFAULT_FORM_VALUES)
        if unknown:
            raise KeyError(f"Unknown form fields: {sorted(unknown)}")
        self.form_values.update(values)

    def switch_tab(self, tab: FormTab) -> None:
        if tab == self.tab:
            return
        if self.tab is FormTab.DETAILS:
            # The details form may remount; keep what the user typed
            self.details_cache = copy.deepcopy(self.form_values)
        if tab is FormTab.DETAILS and self.details_cache is not None:
            self.form_values = copy.deepcopy(self.details_cache)
        self.tab = tab

    # -- ad selection -------------------------------------------------------

    def toggle_ad(self, ad_id: str, selected: bool) -> bool:
        """Select or unselect one ad. Returns False when the change is rejected."""
        if not selected:
            if ad_id in self.selected_ad_ids:
                self.selected_ad_ids = [i for i in self.selected_ad_ids if i != ad_id]
            return True
        if ad_id in self.selected_ad_ids:
            return True
        if len(self.selected_ad_ids) >= self.max_selection:
            self.notifier.notify(
                NotificationLevel.WARNING,
                "Selection limit reached",
                f"You can select up to {self.max_selection} ads per campaign.",
            )
            return False
        self.selected_ad_ids = [*self.selected_ad_ids, ad_id]
        return True

    def select_all(self, ad_ids: Optional[list[str]] = None) -> None:
        ids = list(dict.fromkeys(ad_ids if ad_ids is not None else self.available_ads))
        if len(ids) > self.max_selection:
            self.notifier.notify(
                NotificationLevel.INFO,
                "Selection limited",
                f"Only the first {self.max_selection} ads were selected.",
            )
        self.selected_ad_ids = ids[: self.max_selection]

    def clear_selection(self) -> None:
        self.selected_ad_ids = []

    # -- submission ---------------------------------------------------------

    def validate(self) -> list[str]:
        errors = []
        values = self.form_values
        if not (values.get("campaignName") or "").strip():
            errors.append("Campaign name is required")
        budget = values.get("dailyBudget")
        if not isinstance(budget, (int, float)) or budget <= 0:
            errors.append("Daily budget must be greater than zero")
        if not self.selected_ad_ids:
            errors.append("Select at least one ad")
        missing = [i for i in self.selected_ad_ids if i not in self.available_ads]
        if missing:
            errors.append(f"Selected ads are no longer available: {', '.join(missing)}")
        return errors

    def build_submission(self) -> dict[str, Any]:
        values = self.form_values
        settings = {
            "dailyBudget": values["dailyBudget"],
            "startDate": values.get("startDate"),
            "endDate": values.get("endDate"),
            "ageMin": values.get("ageMin"),
            "ageMax": values.get("ageMax"),
            "genders": list(values.get("genders") or []),
            "interests": list(values.get("interests") or []),
            "objective": values.get("objective"),
            "launchMode": values.get("launchMode") or "review",
            "landingPageUrl": values.get("landingPageUrl"),
        }
        return {
            "projectId": self.project_id,
            "campaignName": values["campaignName"].strip(),
            "settings": settings,
            "ads": [
                self.available_ads[i].model_dump(mode="json") for i in self.selected_ad_ids
            ],
            "businessIdea": self.business_idea.model_dump(mode="json", by_alias=True),
            "targetAudience": self.target_audience.model_dump(mode="json", by_alias=True),
        }

    async def submit(self) -> Optional[dict[str, Any]]:
        if self.is_submitting:
            logger.info("campaign_submit_ignored", reason="submission already in flight")
            return None
        if self.tab is FormTab.DETAILS:
            self.details_cache = copy.deepcopy(self.form_values)
        elif self.details_cache is not None:
            self.form_values = copy.deepcopy(self.details_cache)

        errors = self.validate()
        if errors:
            self.notifier.notify(NotificationLevel.ERROR, "Cannot create campaign", "; ".join(errors))
            return None

        self.is_submitting = True
        try:
            data = await self.api.create_campaign(self.build_submission())
        except CampaignApiError as e:
            self.notifier.notify(NotificationLevel.ERROR, "Campaign creation failed", e.message)
            return None
        finally:
            self.is_submitting = False

        self.result = data
        self.campaign_id = data.get("campaignId")
        self.record_id = data.get("databaseId")
        self._announce_result(data)
        self.view = WizardView.STATUS
        return data

    def _announce_result(self, data: dict[str, Any]) -> None:
        failed = data.get("failedAds") or []
        succeeded = [a.get("creativeId") for a in data.get("ads") or []]
        if not failed:
            self.notifier.notify(
                NotificationLevel.SUCCESS,
                "Campaign created",
                f"Campaign {self.campaign_id} created with {len(succeeded)} ads.",
            )
            return
        failed_ids = ", ".join(f"{f.get('creativeId')} ({f.get('reason')})" for f in failed)
        self.notifier.notify(
            NotificationLevel.WARNING,
            "Campaign partially created",
            f"Created: {', '.join(succeeded) or 'none'}. Failed: {failed_ids}.",
        )

    async def retry_failed(self) -> Optional[dict[str, Any]]:
        """Re-publish the creatives that failed in the last result under the same ad set."""
        if self.is_submitting:
            logger.info("campaign_retry_ignored", reason="submission already in flight")
            return None
        failed_ids = [f.get("creativeId") for f in (self.result or {}).get("failedAds") or []]
        ads = [self.available_ads[i] for i in failed_ids if i in self.available_ads]
        if self.record_id is None or not ads:
            self.notifier.notify(
                NotificationLevel.INFO, "Nothing to retry", "No failed ads to publish again."
            )
            return None

        self.is_submitting = True
        try:
            data = await self.api.retry_ads(
                self.record_id,
                [ad.model_dump(mode="json") for ad in ads],
                self.form_values.get("landingPageUrl"),
            )
        except CampaignApiError as e:
            self.notifier.notify(NotificationLevel.ERROR, "Retry failed", e.message)
            return None
        finally:
            self.is_submitting = False

        recovered = data.get("ads") or []
        self.result = {
            **self.result,
            "ads": [*(self.result.get("ads") or []), *recovered],
            "failedAds": data.get("failedAds") or [],
        }
        self._announce_result(self.result)
        return data

    # -- status view --------------------------------------------------------

    def start_status_polling(self) -> CampaignStatusPoller:
        if self.record_id is None:
            raise RuntimeError("No campaign to poll")
        if self._poller is not None and self._poller.running:
            return self._poller
        record_id = self.record_id

        def on_update(record: dict[str, Any]) -> bool:
            self.campaign_status = record.get("status")
            return False

        self._poller = CampaignStatusPoller(
            lambda: self.api.get_campaign(record_id),
            on_update=on_update,
            interval=self.poll_interval,
        )
        self._poller.start()
        return self._poller

    async def activate(self) -> bool:
        if self.record_id is None:
            self.notifier.notify(NotificationLevel.ERROR, "Nothing to activate", "Create a campaign first.")
            return False
        try:
            record = await self.api.activate_campaign(self.record_id)
        except CampaignApiError as e:
            self.notifier.notify(NotificationLevel.ERROR, "Activation failed", e.message)
            return False
        self.campaign_status = record.get("status", "active")
        self.notifier.notify(NotificationLevel.SUCCESS, "Campaign activated", "Your ads are now running.")
        return True

    async def close(self) -> None:
        """Release background work; call when the wizard view unmounts."""
        if self._poller is not None:
            await self._poller.close()
            self._poller = None
