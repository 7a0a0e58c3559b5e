"""Publishes one wizard submission to Facebook.

Order of remote calls: campaign, then ad set, then for every selected
creative an image upload (unless already on the Facebook CDN), an ad
creative and an ad. Creatives are processed concurrently and a failure in
one never cancels the others. Campaign and ad set failures end the
submission before anything is written locally.

There is no remote idempotency. Re-running a submission creates duplicate
campaigns, so only the per-creative steps are offered for retry
(``retry_failed_ads``).
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, TypeVar

import httpx
import structlog

from adapters.meta.exceptions import MetaAPIError
from adapters.meta.gateway import MetaAdsGateway, MetaGatewayFactory
from adapters.meta.images import is_platform_hosted
from adapters.meta.models import AdPayload, RemoteStatus
from config.settings import DEFAULT_MAX_CREATIVES, MetaApiSettings
from core.models.campaign import (
    ORCHESTRATOR_DEFAULT_OBJECTIVE,
    AdCampaign,
    AdResult,
    AdVariant,
    BusinessIdea,
    CampaignSubmissionRequest,
    FailedAd,
    MappingProfile,
    OrchestrationResult,
    OrchestrationState,
    RecordStatus,
    StateTransition,
)
from core.repositories.campaign_repository import CampaignRepository
from core.services.ad_creative_mapper import AdCreativeMapper, normalize_objective
from core.services.connection_manager import ConnectionManager
from core.services.targeting_transformer import TargetingTransformer
from exceptions.custom_exceptions import (
    BusinessValidationException,
    DatabaseException,
    NotFoundException,
    PerCreativeFailure,
    RemoteCreateFailed,
    UnauthorizedException,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

STAGE_CAMPAIGN = "campaign"
STAGE_ADSET = "adset"
STAGE_IMAGE = "image_upload"
STAGE_CREATIVE = "creative"
STAGE_AD = "ad"

DEFAULT_COUNTRIES = ["US"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _reason(exc: Exception) -> str:
    if isinstance(exc, MetaAPIError):
        return exc.message
    return str(exc) or exc.__class__.__name__


@dataclass(frozen=True)
class FailurePolicy:
    """Which failures end a submission and how wide the creative fan-out runs."""

    abort_stages: frozenset[str] = frozenset({STAGE_CAMPAIGN, STAGE_ADSET})
    isolate_item_failures: bool = True
    max_items: int = DEFAULT_MAX_CREATIVES
    max_concurrency: int = DEFAULT_MAX_CREATIVES

    def __post_init__(self):
        # Later steps need the campaign and ad set ids
        missing = {STAGE_CAMPAIGN, STAGE_ADSET} - set(self.abort_stages)
        if missing:
            raise ValueError(f"abort_stages must include {sorted(missing)}")
        if self.max_items < 1 or self.max_concurrency < 1:
            raise ValueError("max_items and max_concurrency must be positive")


@dataclass
class _Run:
    """Mutable bookkeeping for one orchestration call."""

    clock: Callable[[], datetime]
    history: List[StateTransition] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    state: OrchestrationState = OrchestrationState.INIT

    def enter(
        self,
        state: OrchestrationState,
        creative_id: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        # Per-creative states do not move the overall state
        if creative_id is None:
            self.state = state
        self.history.append(
            StateTransition(state=state, at=self.clock(), creative_id=creative_id, detail=detail)
        )
        logger.info(
            "orchestration_state",
            state=state.value,
            creative_id=creative_id,
            detail=detail,
        )


@dataclass(frozen=True)
class _CreativeJob:
    gateway: MetaAdsGateway
    ad_account_id: str
    page_id: str
    adset_id: str
    campaign_name: str
    business_idea: BusinessIdea
    landing_page_url: Optional[str]
    ad_status: RemoteStatus


class CampaignOrchestrator:
    def __init__(
        self,
        connections: ConnectionManager,
        campaigns: CampaignRepository,
        gateway_factory: MetaGatewayFactory,
        meta_settings: Optional[MetaApiSettings] = None,
        mapper: Optional[AdCreativeMapper] = None,
        targeting: Optional[TargetingTransformer] = None,
        failure_policy: Optional[FailurePolicy] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.connections = connections
        self.campaigns = campaigns
        self.gateway_factory = gateway_factory
        self.meta_settings = meta_settings or MetaApiSettings()
        self.targeting = targeting or TargetingTransformer()
        self.mapper = mapper or AdCreativeMapper(self.targeting)
        self.failure_policy = failure_policy or FailurePolicy()
        self.clock = clock

    async def submit(
        self, user_id: str, request: CampaignSubmissionRequest
    ) -> OrchestrationResult:
        run = _Run(clock=self.clock)
        run.enter(OrchestrationState.INIT)

        if not user_id:
            raise UnauthorizedException()
        creatives = self._check_selection(request.ads)

        connection = await self.connections.require_valid_connection(user_id)
        ad_account_id = connection.resolve_ad_account_id()
        if not ad_account_id:
            raise BusinessValidationException(
                "Select a Facebook ad account before creating a campaign"
            )
        page_id = connection.resolve_page_id()
        if not page_id:
            raise BusinessValidationException(
                "No Facebook page is available for this connection"
            )

        settings = request.settings
        objective = normalize_objective(settings.objective, ORCHESTRATOR_DEFAULT_OBJECTIVE)
        profile = MappingProfile.for_launch(settings.launch_mode, objective)
        targeting = self.targeting.transform(
            request.target_audience.demographics,
            request.target_audience.pain_points,
            overrides=settings.targeting_overrides(),
            default_countries=DEFAULT_COUNTRIES,
        )
        campaign_payload = self.mapper.build_campaign_payload(request.campaign_name, profile)
        gateway = self.gateway_factory(connection.access_token)

        log = logger.bind(user_id=user_id, ad_account_id=ad_account_id)
        campaign_id: Optional[str] = None
        try:
            campaign_id = await self._create_stage(
                STAGE_CAMPAIGN,
                lambda: gateway.campaigns.create(ad_account_id, campaign_payload),
            )
            run.enter(OrchestrationState.CAMPAIGN_CREATED, detail=campaign_id)

            adset_payload = self.mapper.build_adset_payload(
                f"{request.campaign_name} - Ad Set",
                settings.daily_budget,
                targeting,
                profile,
                campaign_id=campaign_id,
                start_date=settings.start_date,
                end_date=settings.end_date,
            )
            try:
                adset_id = await self._create_stage(
                    STAGE_ADSET,
                    lambda: gateway.adsets.create(ad_account_id, adset_payload),
                )
            except RemoteCreateFailed:
                # Not rolled back; the paused campaign stays on the account
                log.warning("remote_campaign_orphaned", campaign_id=campaign_id)
                raise
            run.enter(OrchestrationState.ADSET_CREATED, detail=adset_id)
        except RemoteCreateFailed as e:
            return self._failed(run, e, campaign_id=campaign_id)

        job = _CreativeJob(
            gateway=gateway,
            ad_account_id=ad_account_id,
            page_id=page_id,
            adset_id=adset_id,
            campaign_name=request.campaign_name,
            business_idea=request.business_idea,
            landing_page_url=settings.landing_page_url,
            ad_status=profile.initial_status,
        )
        ads, failed_ads = await self._publish_creatives(run, job, creatives)

        if failed_ads and not self.failure_policy.isolate_item_failures:
            first = failed_ads[0]
            return self._failed(
                run,
                RemoteCreateFailed(first.stage, first.reason),
                campaign_id=campaign_id,
                adset_id=adset_id,
                ads=ads,
                failed_ads=failed_ads,
            )

        campaign_data = {
            "request": request.model_dump(mode="json", by_alias=True),
            "payloads": {
                "campaign": campaign_payload.to_graph(),
                "adSet": adset_payload.to_graph(),
            },
            "results": self._results_snapshot(ads, failed_ads),
            "objective": objective.value,
            "launchMode": settings.launch_mode.value,
        }
        try:
            record = await self.campaigns.create(
                user_id=user_id,
                project_id=request.project_id,
                name=request.campaign_name,
                status=settings.launch_mode.record_status,
                platform_campaign_id=campaign_id,
                platform_ad_set_id=adset_id,
                platform_ad_ids=[a.ad_id for a in ads],
                campaign_data=campaign_data,
                image_url=self._cover_image(creatives, ads),
            )
        except DatabaseException:
            log.error(
                "campaign_persist_failed",
                campaign_id=campaign_id,
                adset_id=adset_id,
                ad_ids=[a.ad_id for a in ads],
            )
            run.enter(OrchestrationState.ERROR, detail="persist")
            raise
        run.enter(OrchestrationState.PERSISTED, detail=record.id)
        run.enter(OrchestrationState.DONE)

        log.info(
            "campaign_published",
            campaign_id=campaign_id,
            adset_id=adset_id,
            record_id=record.id,
            ads=len(ads),
            failed_ads=len(failed_ads),
        )
        return OrchestrationResult(
            success=True,
            campaign_id=campaign_id,
            adset_id=adset_id,
            ads=ads,
            failed_ads=failed_ads,
            database_id=record.id,
            state=run.state,
            state_history=run.history,
            warnings=run.warnings,
        )

    async def retry_failed_ads(
        self,
        user_id: str,
        record_id: str,
        creatives: List[AdVariant],
        landing_page_url: Optional[str] = None,
    ) -> OrchestrationResult:
        """Re-run image/creative/ad creation for ``creatives`` under the stored ad set."""
        run = _Run(clock=self.clock)
        run.enter(OrchestrationState.INIT, detail=f"retry:{record_id}")
        if not user_id:
            raise UnauthorizedException()
        creatives = self._check_selection(creatives)

        record = await self.campaigns.get(record_id, user_id)
        if record is None:
            raise NotFoundException("Campaign not found")
        if not record.platform_ad_set_id:
            raise BusinessValidationException("Campaign has no ad set to attach ads to")
        self._check_retryable(record, creatives)

        connection = await self.connections.require_valid_connection(user_id)
        ad_account_id = connection.resolve_ad_account_id()
        page_id = connection.resolve_page_id()
        if not ad_account_id or not page_id:
            raise BusinessValidationException(
                "Select a Facebook ad account and page before retrying ads"
            )
        run.enter(OrchestrationState.ADSET_CREATED, detail=record.platform_ad_set_id)

        stored_request = record.campaign_data.get("request") or {}
        job = _CreativeJob(
            gateway=self.gateway_factory(connection.access_token),
            ad_account_id=ad_account_id,
            page_id=page_id,
            adset_id=record.platform_ad_set_id,
            campaign_name=record.name,
            business_idea=BusinessIdea.model_validate(stored_request.get("businessIdea") or {}),
            landing_page_url=landing_page_url
            or (stored_request.get("settings") or {}).get("landingPageUrl"),
            ad_status=RemoteStatus.ACTIVE
            if record.status == RecordStatus.ACTIVE
            else RemoteStatus.PAUSED,
        )
        ads, failed_ads = await self._publish_creatives(run, job, creatives)

        retries = list(record.campaign_data.get("retries") or [])
        retries.append(
            {"at": self.clock().isoformat(), **self._results_snapshot(ads, failed_ads)}
        )
        await self.campaigns.update(
            record.id,
            user_id,
            add_ad_ids=[a.ad_id for a in ads],
            campaign_data_patch={"retries": retries},
        )
        run.enter(OrchestrationState.PERSISTED, detail=record.id)
        run.enter(OrchestrationState.DONE)

        return OrchestrationResult(
            success=True,
            campaign_id=record.platform_campaign_id,
            adset_id=record.platform_ad_set_id,
            ads=ads,
            failed_ads=failed_ads,
            database_id=record.id,
            state=run.state,
            state_history=run.history,
            warnings=run.warnings,
        )

    @staticmethod
    def _pending_failures(campaign_data: dict[str, Any]) -> set[str]:
        """Creative ids whose last publish attempt failed and never succeeded since."""
        pending: set[str] = set()
        snapshots = [campaign_data.get("results") or {}, *(campaign_data.get("retries") or [])]
        for snapshot in snapshots:
            pending -= {a.get("creativeId") for a in snapshot.get("ads") or []}
            pending |= {f.get("creativeId") for f in snapshot.get("failedAds") or []}
        pending.discard(None)
        return pending

    def _check_retryable(self, record: AdCampaign, creatives: List[AdVariant]) -> None:
        pending = self._pending_failures(record.campaign_data)
        not_failed = [c.id for c in creatives if c.id not in pending]
        if not_failed:
            raise BusinessValidationException(
                f"Only failed ads can be retried: {', '.join(not_failed)}"
            )
        limit = self.failure_policy.max_items
        if len(record.platform_ad_ids) + len(creatives) > limit:
            raise BusinessValidationException(
                f"You can publish at most {limit} ads in one campaign"
            )

    def _check_selection(self, creatives: List[AdVariant]) -> List[AdVariant]:
        unique: dict[str, AdVariant] = {}
        for creative in creatives:
            unique.setdefault(creative.id, creative)
        selected = list(unique.values())
        if not selected:
            raise BusinessValidationException("Select at least one ad to publish")
        limit = self.failure_policy.max_items
        if len(selected) > limit:
            raise BusinessValidationException(
                f"You can publish at most {limit} ads in one campaign"
            )
        return selected

    async def _create_stage(self, stage: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except MetaAPIError as e:
            raise RemoteCreateFailed(stage, e.message)
        except httpx.HTTPError as e:
            raise RemoteCreateFailed(stage, f"Could not reach Facebook: {_reason(e)}")

    def _failed(
        self,
        run: _Run,
        error: RemoteCreateFailed,
        **fields: Any,
    ) -> OrchestrationResult:
        run.enter(OrchestrationState.ERROR, detail=f"{error.stage}: {error.message}")
        logger.warning(
            "campaign_submission_aborted", stage=error.stage, error=error.message
        )
        return OrchestrationResult(
            success=False,
            error=error.message,
            failed_stage=error.stage,
            state=run.state,
            state_history=run.history,
            warnings=run.warnings,
            **fields,
        )

    async def _publish_creatives(
        self, run: _Run, job: _CreativeJob, creatives: List[AdVariant]
    ) -> tuple[List[AdResult], List[FailedAd]]:
        semaphore = asyncio.Semaphore(self.failure_policy.max_concurrency)

        async def bounded(creative: AdVariant) -> AdResult:
            async with semaphore:
                return await self._publish_creative(run, job, creative)

        outcomes = await asyncio.gather(
            *(bounded(c) for c in creatives), return_exceptions=True
        )

        ads: List[AdResult] = []
        failed: List[FailedAd] = []
        for creative, outcome in zip(creatives, outcomes):
            if isinstance(outcome, PerCreativeFailure):
                failed.append(
                    FailedAd(creative_id=outcome.creative_id, stage=outcome.stage, reason=outcome.reason)
                )
            elif isinstance(outcome, Exception):
                logger.error(
                    "creative_publish_crashed",
                    creative_id=creative.id,
                    error=_reason(outcome),
                    exc_info=outcome,
                )
                failed.append(
                    FailedAd(creative_id=creative.id, stage="unknown", reason=_reason(outcome))
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                ads.append(outcome)
        return ads, failed

    async def _publish_creative(
        self, run: _Run, job: _CreativeJob, creative: AdVariant
    ) -> AdResult:
        stage = STAGE_IMAGE
        try:
            image_hash = None
            if creative.image_url and not is_platform_hosted(
                creative.image_url, self.meta_settings.platform_image_hosts
            ):
                image_hash = await job.gateway.images.upload_from_url(
                    job.ad_account_id, creative.image_url
                )
                run.enter(OrchestrationState.IMAGE_UPLOADED, creative_id=creative.id)

            stage = STAGE_CREATIVE
            payload, warnings = self.mapper.build_creative_payload(
                creative,
                job.business_idea,
                job.landing_page_url,
                page_id=job.page_id,
                image_hash=image_hash,
                name=f"{job.campaign_name} - Creative {creative.id}",
            )
            run.warnings.extend(f"{creative.id}: {w}" for w in warnings)
            creative_id = await job.gateway.creatives.create(job.ad_account_id, payload)
            run.enter(OrchestrationState.CREATIVE_CREATED, creative_id=creative.id, detail=creative_id)

            stage = STAGE_AD
            ad_id = await job.gateway.ads.create(
                job.ad_account_id,
                AdPayload(
                    name=f"{job.campaign_name} - Ad {creative.id}",
                    adset_id=job.adset_id,
                    creative_id=creative_id,
                    status=job.ad_status.value,
                ),
            )
            run.enter(OrchestrationState.AD_CREATED, creative_id=creative.id, detail=ad_id)
        except (MetaAPIError, httpx.HTTPError, ValueError) as e:
            reason = _reason(e)
            run.enter(OrchestrationState.ERROR, creative_id=creative.id, detail=f"{stage}: {reason}")
            logger.warning(
                "creative_publish_failed", creative_id=creative.id, stage=stage, reason=reason
            )
            raise PerCreativeFailure(creative.id, stage, reason)

        return AdResult(
            creative_id=creative.id,
            ad_id=ad_id,
            platform_creative_id=creative_id,
            image_hash=image_hash,
        )

    @staticmethod
    def _results_snapshot(ads: List[AdResult], failed_ads: List[FailedAd]) -> dict[str, Any]:
        return {
            "ads": [a.model_dump(mode="json", by_alias=True) for a in ads],
            "failedAds": [f.model_dump(mode="json", by_alias=True) for f in failed_ads],
        }

    @staticmethod
    def _cover_image(creatives: List[AdVariant], ads: List[AdResult]) -> Optional[str]:
        published = {a.creative_id for a in ads}
        ordered = [c for c in creatives if c.id in published] + creatives
        return next((c.image_url for c in ordered if c.image_url), None)
