from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class CallToAction(str, Enum):
    APPLY_NOW = "APPLY_NOW"
    BOOK_NOW = "BOOK_NOW"
    BUY_TICKETS = "BUY_TICKETS"
    CONTACT_US = "CONTACT_US"
    DOWNLOAD = "DOWNLOAD"
    GET_OFFER = "GET_OFFER"
    GET_QUOTE = "GET_QUOTE"
    LEARN_MORE = "LEARN_MORE"
    ORDER_NOW = "ORDER_NOW"
    SEE_MENU = "SEE_MENU"
    SHOP_NOW = "SHOP_NOW"
    SIGN_UP = "SIGN_UP"
    SUBSCRIBE = "SUBSCRIBE"
    WATCH_MORE = "WATCH_MORE"


class CallToActionSpec(BaseModel):
    type: CallToAction = CallToAction.LEARN_MORE
    value: Optional[dict[str, str]] = None


class LinkData(BaseModel):
    link: str
    message: str
    name: str
    description: Optional[str] = None
    caption: Optional[str] = None
    image_hash: Optional[str] = None
    picture: Optional[str] = Field(
        default=None, description="Direct image URL, used when no hash was uploaded"
    )
    call_to_action: CallToActionSpec = Field(default_factory=CallToActionSpec)


class ObjectStorySpec(BaseModel):
    page_id: Optional[str] = None
    link_data: LinkData


class CreativePayload(BaseModel):
    name: str
    object_story_spec: ObjectStorySpec

    def to_graph(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class AdPayload(BaseModel):
    name: str
    adset_id: str
    creative_id: str
    status: str = "PAUSED"

    def to_graph(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "adset_id": self.adset_id,
            "creative": {"creative_id": self.creative_id},
            "status": self.status,
        }
