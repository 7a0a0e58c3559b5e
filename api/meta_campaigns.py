from fastapi import APIRouter, Depends, status

from adapters.supabase.auth import AuthenticatedUser
from core.models.campaign import (
    PREVIEW_PROFILE,
    CampaignSubmissionRequest,
    PreviewRequest,
    RetryAdsRequest,
    TargetingPreviewRequest,
)
from core.services.ad_creative_mapper import AdCreativeMapper
from core.services.campaign_orchestrator import CampaignOrchestrator
from core.services.campaign_status_service import CampaignStatusService
from core.services.targeting_transformer import TargetingTransformer
from dependencies.auth import get_current_user
from dependencies.services import (
    get_ad_creative_mapper,
    get_campaign_orchestrator,
    get_campaign_status_service,
    get_targeting_transformer,
)
from utils.response_helpers import error_response, success_response

router = APIRouter(prefix="/api/ads/meta", tags=["meta-campaigns"])


@router.post("/campaigns", status_code=status.HTTP_201_CREATED)
async def create_campaign(
    submission: CampaignSubmissionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: CampaignOrchestrator = Depends(get_campaign_orchestrator),
):
    result = await orchestrator.submit(user.user_id, submission)
    if not result.success:
        return error_response(
            result.error or "Campaign creation failed",
            status_code=status.HTTP_502_BAD_GATEWAY,
            extra={"stage": result.failed_stage},
        )
    return success_response(result.to_response(), status_code=status.HTTP_201_CREATED)


@router.get("/campaigns/{record_id}")
async def get_campaign(
    record_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: CampaignStatusService = Depends(get_campaign_status_service),
):
    record = await service.get(user.user_id, record_id)
    return success_response(record.model_dump(mode="json"))


@router.post("/campaigns/{record_id}/activate")
async def activate_campaign(
    record_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: CampaignStatusService = Depends(get_campaign_status_service),
):
    record = await service.activate(user.user_id, record_id)
    return success_response(record.model_dump(mode="json"))


@router.post("/campaigns/{record_id}/deactivate")
async def deactivate_campaign(
    record_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    service: CampaignStatusService = Depends(get_campaign_status_service),
):
    record = await service.deactivate(user.user_id, record_id)
    return success_response(record.model_dump(mode="json"))


@router.post("/campaigns/{record_id}/retry-ads")
async def retry_failed_ads(
    record_id: str,
    retry: RetryAdsRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    orchestrator: CampaignOrchestrator = Depends(get_campaign_orchestrator),
):
    result = await orchestrator.retry_failed_ads(
        user.user_id, record_id, retry.ads, retry.landing_page_url
    )
    return success_response(result.to_response())


@router.post("/preview")
async def preview_campaign(
    preview: PreviewRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    mapper: AdCreativeMapper = Depends(get_ad_creative_mapper),
):
    mapped = mapper.map_to_facebook_format(
        preview.business_idea,
        preview.target_audience,
        preview.ad_variant,
        preview.budget_usd,
        preview.landing_page_url,
        profile=PREVIEW_PROFILE,
    )
    return success_response(mapped.to_dict())


@router.post("/targeting/preview")
async def preview_targeting(
    preview: TargetingPreviewRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    targeting: TargetingTransformer = Depends(get_targeting_transformer),
):
    spec = targeting.transform(
        preview.demographics,
        preview.pain_points,
        overrides=preview.overrides,
        default_countries=None,
    )
    return success_response(spec.to_graph())
