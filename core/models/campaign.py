from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from adapters.meta.models import CampaignObjective, RemoteStatus
from core.models.loose_json import parse_loose_object


class _WizardModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RecordStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"


class LaunchMode(str, Enum):
    """REVIEW creates everything paused; LAUNCH starts spending immediately."""

    REVIEW = "review"
    LAUNCH = "launch"

    @property
    def remote_status(self) -> RemoteStatus:
        return RemoteStatus.ACTIVE if self is LaunchMode.LAUNCH else RemoteStatus.PAUSED

    @property
    def record_status(self) -> RecordStatus:
        return RecordStatus.ACTIVE if self is LaunchMode.LAUNCH else RecordStatus.DRAFT


@dataclass(frozen=True)
class MappingProfile:
    objective: CampaignObjective
    initial_status: RemoteStatus

    @classmethod
    def for_launch(cls, mode: LaunchMode, objective: CampaignObjective) -> "MappingProfile":
        return cls(objective=objective, initial_status=mode.remote_status)


# Preview/transform path: humans review before any spend
PREVIEW_PROFILE = MappingProfile(CampaignObjective.CONVERSIONS, RemoteStatus.PAUSED)
ORCHESTRATOR_DEFAULT_OBJECTIVE = CampaignObjective.OUTCOME_AWARENESS


class BusinessIdea(_WizardModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    description: str = ""
    value_proposition: str = Field(default="", alias="valueProposition")


class TargetAudience(_WizardModel):
    name: str = ""
    demographics: str = ""
    pain_points: List[str] = Field(default_factory=list, alias="painPoints")
    interests: Optional[List[str]] = None
    core_message: str = Field(default="", alias="coreMessage")
    marketing_angle: str = Field(default="", alias="marketingAngle")
    messaging_approach: str = Field(default="", alias="messagingApproach")
    marketing_channels: List[str] = Field(default_factory=list, alias="marketingChannels")


class AdSize(_WizardModel):
    width: int = 0
    height: int = 0
    label: str = ""


class FacebookAdSettings(_WizardModel):
    website_url: Optional[str] = None
    visible_link: Optional[str] = None
    call_to_action: Optional[str] = None
    language: Optional[str] = None
    url_parameters: Optional[str] = None
    browser_addons: Optional[str] = None


class AdVariant(_WizardModel):
    """A generated creative. Orchestration reads it and never mutates it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    headline: str = ""
    description: str = Field(
        default="",
        validation_alias=AliasChoices("description", "primaryText", "primary_text"),
    )
    image_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("imageUrl", "image_url")
    )
    platform: str = "facebook"
    size: Optional[AdSize] = None
    fb_ad_settings: Optional[FacebookAdSettings] = None
    call_to_action: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("callToAction", "call_to_action")
    )

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return str(value) if value is not None else value

    @field_validator("size", mode="before")
    @classmethod
    def _decode_size(cls, value):
        return parse_loose_object(value, AdSize, "size")

    @field_validator("fb_ad_settings", mode="before")
    @classmethod
    def _decode_ad_settings(cls, value):
        return parse_loose_object(value, FacebookAdSettings, "fb_ad_settings")


def apply_ad_settings(
    creatives: List[AdVariant], settings: FacebookAdSettings
) -> List[AdVariant]:
    """Return copies of ``creatives`` all carrying ``settings``."""
    return [c.model_copy(update={"fb_ad_settings": settings}) for c in creatives]


class TargetingOverrides(_WizardModel):
    age_min: Optional[int] = Field(default=None, alias="ageMin")
    age_max: Optional[int] = Field(default=None, alias="ageMax")
    genders: Optional[List[str]] = None
    interests: Optional[List[str]] = None
    countries: Optional[List[str]] = None


class CampaignSettingsInput(_WizardModel):
    daily_budget: float = Field(..., gt=0, alias="dailyBudget")
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    age_min: Optional[int] = Field(default=None, alias="ageMin")
    age_max: Optional[int] = Field(default=None, alias="ageMax")
    genders: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
    objective: Optional[str] = None
    launch_mode: LaunchMode = Field(default=LaunchMode.REVIEW, alias="launchMode")
    landing_page_url: Optional[str] = Field(default=None, alias="landingPageUrl")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _date_only(cls, value):
        # Clients send full ISO timestamps from date pickers
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self

    def targeting_overrides(self) -> TargetingOverrides:
        return TargetingOverrides(
            age_min=self.age_min,
            age_max=self.age_max,
            genders=self.genders or None,
            interests=self.interests or None,
            countries=self.countries or None,
        )


class CampaignSubmissionRequest(_WizardModel):
    project_id: Optional[str] = Field(default=None, alias="projectId")
    campaign_name: str = Field(..., min_length=1, alias="campaignName")
    settings: CampaignSettingsInput
    ads: List[AdVariant] = Field(default_factory=list)
    business_idea: BusinessIdea = Field(default_factory=BusinessIdea, alias="businessIdea")
    target_audience: TargetAudience = Field(
        default_factory=TargetAudience, alias="targetAudience"
    )


class RetryAdsRequest(_WizardModel):
    ads: List[AdVariant]
    landing_page_url: Optional[str] = Field(default=None, alias="landingPageUrl")


class PreviewRequest(_WizardModel):
    business_idea: BusinessIdea = Field(alias="businessIdea")
    target_audience: TargetAudience = Field(alias="targetAudience")
    ad_variant: AdVariant = Field(alias="adVariant")
    budget_usd: float = Field(..., gt=0, alias="budgetUsd")
    landing_page_url: str = Field(..., alias="landingPageUrl")


class TargetingPreviewRequest(_WizardModel):
    demographics: str = ""
    pain_points: List[str] = Field(default_factory=list, alias="painPoints")
    overrides: Optional[TargetingOverrides] = None


class OrchestrationState(str, Enum):
    INIT = "INIT"
    CAMPAIGN_CREATED = "CAMPAIGN_CREATED"
    ADSET_CREATED = "ADSET_CREATED"
    IMAGE_UPLOADED = "IMAGE_UPLOADED"
    CREATIVE_CREATED = "CREATIVE_CREATED"
    AD_CREATED = "AD_CREATED"
    PERSISTED = "PERSISTED"
    DONE = "DONE"
    ERROR = "ERROR"


class StateTransition(_WizardModel):
    state: OrchestrationState
    at: datetime
    creative_id: Optional[str] = Field(default=None, alias="creativeId")
    detail: Optional[str] = None


class AdResult(_WizardModel):
    creative_id: str = Field(alias="creativeId")
    ad_id: str = Field(alias="adId")
    platform_creative_id: str = Field(alias="platformCreativeId")
    image_hash: Optional[str] = Field(default=None, alias="imageHash")


class FailedAd(_WizardModel):
    creative_id: str = Field(alias="creativeId")
    stage: str
    reason: str


class OrchestrationResult(_WizardModel):
    success: bool
    campaign_id: Optional[str] = Field(default=None, alias="campaignId")
    adset_id: Optional[str] = Field(default=None, alias="adsetId")
    ads: List[AdResult] = Field(default_factory=list)
    failed_ads: List[FailedAd] = Field(default_factory=list, alias="failedAds")
    database_id: Optional[str] = Field(default=None, alias="databaseId")
    state: OrchestrationState = OrchestrationState.INIT
    state_history: List[StateTransition] = Field(default_factory=list, alias="stateHistory")
    error: Optional[str] = None
    failed_stage: Optional[str] = Field(default=None, alias="stage")
    warnings: List[str] = Field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class AdCampaign(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: Optional[str] = None
    user_id: str
    platform: str = "facebook"
    name: str
    status: RecordStatus = RecordStatus.DRAFT
    platform_campaign_id: str
    platform_ad_set_id: Optional[str] = None
    platform_ad_ids: List[str] = Field(default_factory=list)
    campaign_data: dict[str, Any] = Field(default_factory=dict)
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, value):
        # Rows written by older flows used intermediate progress states
        if isinstance(value, str) and value not in {s.value for s in RecordStatus}:
            return RecordStatus.DRAFT
        return value

    @field_validator("platform_ad_ids", mode="before")
    @classmethod
    def _ad_ids(cls, value):
        return [str(v) for v in value] if isinstance(value, list) else []

    @field_validator("campaign_data", mode="before")
    @classmethod
    def _campaign_data(cls, value):
        return value if isinstance(value, dict) else {}
