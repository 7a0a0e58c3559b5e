from .campaign_model import (
    CampaignObjective,
    RemoteStatus,
    CampaignPayload,
)
from .adset_model import (
    ALL_GENDERS,
    GENDER_FEMALE,
    GENDER_MALE,
    BillingEvent,
    GeoLocations,
    Interest,
    OptimizationGoal,
    TargetingSpec,
    AdSetPayload,
)
from .creative_model import (
    CallToAction,
    CallToActionSpec,
    LinkData,
    ObjectStorySpec,
    CreativePayload,
    AdPayload,
)

__all__ = [
    "CampaignObjective",
    "RemoteStatus",
    "CampaignPayload",
    "ALL_GENDERS",
    "GENDER_FEMALE",
    "GENDER_MALE",
    "BillingEvent",
    "GeoLocations",
    "Interest",
    "OptimizationGoal",
    "TargetingSpec",
    "AdSetPayload",
    "CallToAction",
    "CallToActionSpec",
    "LinkData",
    "ObjectStorySpec",
    "CreativePayload",
    "AdPayload",
]
