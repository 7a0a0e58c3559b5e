from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from adapters.meta.models.campaign_model import RemoteStatus

GENDER_MALE = 1
GENDER_FEMALE = 2
ALL_GENDERS = [GENDER_MALE, GENDER_FEMALE]


class OptimizationGoal(str, Enum):
    REACH = "REACH"
    IMPRESSIONS = "IMPRESSIONS"
    LINK_CLICKS = "LINK_CLICKS"
    LANDING_PAGE_VIEWS = "LANDING_PAGE_VIEWS"
    OFFSITE_CONVERSIONS = "OFFSITE_CONVERSIONS"
    LEAD_GENERATION = "LEAD_GENERATION"
    POST_ENGAGEMENT = "POST_ENGAGEMENT"


class BillingEvent(str, Enum):
    IMPRESSIONS = "IMPRESSIONS"
    LINK_CLICKS = "LINK_CLICKS"


class Interest(BaseModel):
    id: str
    name: str


class GeoLocations(BaseModel):
    countries: List[str] = Field(default_factory=list)


class TargetingSpec(BaseModel):
    age_min: int = Field(default=18, ge=18, le=65)
    age_max: int = Field(default=65, ge=18, le=65)
    genders: List[int] = Field(default_factory=lambda: list(ALL_GENDERS))
    geo_locations: Optional[GeoLocations] = None
    interests: List[Interest] = Field(default_factory=list)

    def to_graph(self) -> dict[str, Any]:
        """Targeting dict in the shape the ad set endpoint expects."""
        targeting: dict[str, Any] = {
            "age_min": self.age_min,
            "age_max": self.age_max,
            "genders": list(self.genders),
        }
        if self.geo_locations and self.geo_locations.countries:
            targeting["geo_locations"] = {"countries": list(self.geo_locations.countries)}
        if self.interests:
            targeting["flexible_spec"] = [
                {"interests": [i.model_dump() for i in self.interests]}
            ]
        return targeting


class AdSetPayload(BaseModel):
    name: str
    daily_budget: int
    targeting: TargetingSpec
    optimization_goal: OptimizationGoal = OptimizationGoal.REACH
    billing_event: BillingEvent = BillingEvent.IMPRESSIONS
    bid_strategy: str = "LOWEST_COST_WITHOUT_CAP"
    status: RemoteStatus = RemoteStatus.PAUSED
    campaign_id: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    def to_graph(self) -> dict[str, Any]:
        body = self.model_dump(mode="json", exclude={"targeting"}, exclude_none=True)
        body["targeting"] = self.targeting.to_graph()
        return body
