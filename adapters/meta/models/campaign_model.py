from enum import Enum
from typing import Any, List

from pydantic import BaseModel, Field


class CampaignObjective(str, Enum):
    OUTCOME_AWARENESS = "OUTCOME_AWARENESS"
    OUTCOME_TRAFFIC = "OUTCOME_TRAFFIC"
    OUTCOME_ENGAGEMENT = "OUTCOME_ENGAGEMENT"
    OUTCOME_LEADS = "OUTCOME_LEADS"
    OUTCOME_SALES = "OUTCOME_SALES"
    # Legacy objective still accepted by older ad accounts
    CONVERSIONS = "CONVERSIONS"


class RemoteStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class CampaignPayload(BaseModel):
    name: str
    objective: CampaignObjective
    status: RemoteStatus = RemoteStatus.PAUSED
    special_ad_categories: List[str] = Field(default_factory=list)

    def to_graph(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
