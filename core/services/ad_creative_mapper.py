from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

import structlog

from adapters.meta.models import (
    AdSetPayload,
    BillingEvent,
    CallToAction,
    CallToActionSpec,
    CampaignObjective,
    CampaignPayload,
    CreativePayload,
    LinkData,
    ObjectStorySpec,
    OptimizationGoal,
    TargetingSpec,
)
from core.models.campaign import (
    PREVIEW_PROFILE,
    AdVariant,
    BusinessIdea,
    FacebookAdSettings,
    MappingProfile,
    TargetAudience,
)
from core.services.targeting_transformer import TargetingTransformer

logger = structlog.get_logger(__name__)

HEADLINE_MAX_LENGTH = 40
MESSAGE_MAX_LENGTH = 125
NAME_PREFIX_LENGTH = 40

CTA_LABELS: dict[str, CallToAction] = {
    "learn more": CallToAction.LEARN_MORE,
    "shop now": CallToAction.SHOP_NOW,
    "sign up": CallToAction.SIGN_UP,
    "book now": CallToAction.BOOK_NOW,
    "contact us": CallToAction.CONTACT_US,
    "download": CallToAction.DOWNLOAD,
    "get offer": CallToAction.GET_OFFER,
    "get quote": CallToAction.GET_QUOTE,
    "subscribe": CallToAction.SUBSCRIBE,
    "apply now": CallToAction.APPLY_NOW,
    "order now": CallToAction.ORDER_NOW,
    "watch more": CallToAction.WATCH_MORE,
    "see menu": CallToAction.SEE_MENU,
    "buy now": CallToAction.SHOP_NOW,
    "get started": CallToAction.SIGN_UP,
}

OBJECTIVE_ALIASES: dict[str, CampaignObjective] = {
    "awareness": CampaignObjective.OUTCOME_AWARENESS,
    "brand_awareness": CampaignObjective.OUTCOME_AWARENESS,
    "reach": CampaignObjective.OUTCOME_AWARENESS,
    "traffic": CampaignObjective.OUTCOME_TRAFFIC,
    "link_clicks": CampaignObjective.OUTCOME_TRAFFIC,
    "engagement": CampaignObjective.OUTCOME_ENGAGEMENT,
    "leads": CampaignObjective.OUTCOME_LEADS,
    "lead_generation": CampaignObjective.OUTCOME_LEADS,
    "sales": CampaignObjective.OUTCOME_SALES,
    "conversions": CampaignObjective.CONVERSIONS,
}

# objective -> (optimization_goal, billing_event) for the ad set
ADSET_OPTIMIZATION: dict[CampaignObjective, tuple[OptimizationGoal, BillingEvent]] = {
    CampaignObjective.OUTCOME_AWARENESS: (OptimizationGoal.REACH, BillingEvent.IMPRESSIONS),
    CampaignObjective.OUTCOME_TRAFFIC: (OptimizationGoal.LINK_CLICKS, BillingEvent.IMPRESSIONS),
    CampaignObjective.OUTCOME_ENGAGEMENT: (OptimizationGoal.POST_ENGAGEMENT, BillingEvent.IMPRESSIONS),
    CampaignObjective.OUTCOME_LEADS: (OptimizationGoal.LEAD_GENERATION, BillingEvent.IMPRESSIONS),
    CampaignObjective.OUTCOME_SALES: (OptimizationGoal.OFFSITE_CONVERSIONS, BillingEvent.IMPRESSIONS),
    CampaignObjective.CONVERSIONS: (OptimizationGoal.OFFSITE_CONVERSIONS, BillingEvent.IMPRESSIONS),
}


def budget_to_cents(budget_usd: float) -> int:
    return int((Decimal(str(budget_usd)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_objective(
    value: Optional[str], default: CampaignObjective
) -> CampaignObjective:
    if not value:
        return default
    key = value.strip()
    if key.upper() in CampaignObjective.__members__:
        return CampaignObjective[key.upper()]
    objective = OBJECTIVE_ALIASES.get(key.lower().replace(" ", "_"))
    if objective is None:
        logger.warning("unknown_campaign_objective", objective=value, fallback=default.value)
        return default
    return objective


def resolve_call_to_action(value: Optional[str]) -> tuple[CallToAction, Optional[str]]:
    """Return the CTA enum for an enum value or friendly label, plus a warning if unknown."""
    if not value:
        return CallToAction.LEARN_MORE, None
    key = value.strip()
    normalized = key.upper().replace(" ", "_")
    if normalized in CallToAction.__members__:
        return CallToAction[normalized], None
    cta = CTA_LABELS.get(key.lower())
    if cta:
        return cta, None
    return CallToAction.LEARN_MORE, f"Unknown call to action '{value}', using LEARN_MORE"


def append_url_parameters(link: str, url_parameters: Optional[str]) -> str:
    params = (url_parameters or "").strip().lstrip("?&")
    if not params:
        return link
    separator = "&" if "?" in link else "?"
    return f"{link}{separator}{params}"


def _label(text: str, fallback: str) -> str:
    return (text or "").strip()[:NAME_PREFIX_LENGTH] or fallback


@dataclass
class MappedCampaign:
    campaign: CampaignPayload
    ad_set: AdSetPayload
    ad_creative: CreativePayload
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "campaign": self.campaign.to_graph(),
            "adSet": self.ad_set.to_graph(),
            "adCreative": self.ad_creative.to_graph(),
            "warnings": list(self.warnings),
        }


class AdCreativeMapper:
    """Builds Graph API payloads from wizard objects.

    Validation is lenient: problems are logged and returned as warnings and
    the payload is still produced. The ads API has the final say.
    """

    def __init__(self, targeting: Optional[TargetingTransformer] = None):
        self.targeting = targeting or TargetingTransformer()

    def map_to_facebook_format(
        self,
        business_idea: BusinessIdea,
        target_audience: TargetAudience,
        ad_variant: AdVariant,
        budget_usd: float,
        landing_page_url: str,
        profile: MappingProfile = PREVIEW_PROFILE,
        default_countries: Optional[List[str]] = None,
    ) -> MappedCampaign:
        label = _label(business_idea.description, "Business")
        targeting = self.targeting.transform(
            target_audience.demographics,
            target_audience.pain_points,
            default_countries=default_countries if default_countries is not None else ["US"],
        )
        campaign = self.build_campaign_payload(f"Campaign for {label}", profile)
        ad_set = self.build_adset_payload(
            f"Ad Set for {label}", budget_usd, targeting, profile
        )
        creative, warnings = self.build_creative_payload(
            ad_variant,
            business_idea,
            landing_page_url,
            name=f"Creative for {label}",
        )
        return MappedCampaign(campaign, ad_set, creative, warnings)

    def build_campaign_payload(self, name: str, profile: MappingProfile) -> CampaignPayload:
        return CampaignPayload(
            name=name,
            objective=profile.objective,
            status=profile.initial_status,
        )

    def build_adset_payload(
        self,
        name: str,
        budget_usd: float,
        targeting: TargetingSpec,
        profile: MappingProfile,
        *,
        campaign_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> AdSetPayload:
        goal, billing = ADSET_OPTIMIZATION.get(
            profile.objective, (OptimizationGoal.REACH, BillingEvent.IMPRESSIONS)
        )
        return AdSetPayload(
            name=name,
            campaign_id=campaign_id,
            daily_budget=budget_to_cents(budget_usd),
            targeting=targeting,
            optimization_goal=goal,
            billing_event=billing,
            status=profile.initial_status,
            start_time=start_date.isoformat() if start_date else None,
            end_time=end_date.isoformat() if end_date else None,
        )

    def build_creative_payload(
        self,
        ad_variant: AdVariant,
        business_idea: BusinessIdea,
        landing_page_url: Optional[str],
        *,
        page_id: Optional[str] = None,
        image_hash: Optional[str] = None,
        name: Optional[str] = None,
    ) -> tuple[CreativePayload, List[str]]:
        settings = ad_variant.fb_ad_settings or FacebookAdSettings()
        warnings: List[str] = []

        headline = ad_variant.headline or business_idea.description
        message = ad_variant.description or business_idea.value_proposition
        link = append_url_parameters(
            settings.website_url or landing_page_url or "", settings.url_parameters
        )
        cta, cta_warning = resolve_call_to_action(
            settings.call_to_action or ad_variant.call_to_action
        )

        if cta_warning:
            warnings.append(cta_warning)
        if not headline:
            warnings.append("Headline is required")
        elif len(headline) > HEADLINE_MAX_LENGTH:
            warnings.append(
                f"Headline is {len(headline)} characters, limit is {HEADLINE_MAX_LENGTH}"
            )
        if not message:
            warnings.append("Primary text is empty")
        elif len(message) > MESSAGE_MAX_LENGTH:
            warnings.append(
                f"Primary text is {len(message)} characters, limit is {MESSAGE_MAX_LENGTH}"
            )
        if not image_hash and not ad_variant.image_url:
            warnings.append("Image is required (url or hash)")
        if not link:
            warnings.append("Destination link is missing")

        for warning in warnings:
            logger.warning("creative_validation_warning", creative_id=ad_variant.id, issue=warning)

        link_data = LinkData(
            link=link,
            message=message or "",
            name=headline or "",
            description=business_idea.value_proposition or None,
            caption=settings.visible_link or None,
            image_hash=image_hash,
            picture=None if image_hash else ad_variant.image_url,
            call_to_action=CallToActionSpec(type=cta, value={"link": link} if link else None),
        )
        payload = CreativePayload(
            name=name or f"Creative {ad_variant.id}",
            object_story_spec=ObjectStorySpec(page_id=page_id, link_data=link_data),
        )
        return payload, warnings
