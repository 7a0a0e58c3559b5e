from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models.loose_json import parse_loose_list, parse_loose_object

FACEBOOK = "facebook"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (as SQLite returns them) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AdAccount(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    account_id: Optional[str] = None
    name: Optional[str] = None
    account_status: Optional[int] = None
    currency: Optional[str] = None

    @field_validator("id", "account_id", mode="before")
    @classmethod
    def _as_str(cls, value):
        return str(value) if value is not None else value

    def matches(self, ad_account_id: str) -> bool:
        wanted = ad_account_id.removeprefix("act_")
        return wanted in {self.id.removeprefix("act_"), self.account_id}


class FacebookPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    category: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _as_str(cls, value):
        return str(value) if value is not None else value


class ConnectionMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ad_accounts: List[AdAccount] = Field(default_factory=list)
    pages: List[FacebookPage] = Field(default_factory=list)
    selected_page_id: Optional[str] = None
    facebook_user_id: Optional[str] = None
    last_fetched: Optional[datetime] = None

    @field_validator("ad_accounts", mode="before")
    @classmethod
    def _accounts(cls, value):
        return parse_loose_list(value, AdAccount, "metadata.ad_accounts")

    @field_validator("pages", mode="before")
    @classmethod
    def _pages(cls, value):
        return parse_loose_list(value, FacebookPage, "metadata.pages")

    def find_ad_account(self, ad_account_id: str) -> Optional[AdAccount]:
        return next((a for a in self.ad_accounts if a.matches(ad_account_id)), None)

    def find_page(self, page_id: str) -> Optional[FacebookPage]:
        return next((p for p in self.pages if p.id == str(page_id)), None)


class PlatformConnection(BaseModel):
    id: Optional[str] = None
    user_id: str
    platform: str = FACEBOOK
    access_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    account_id: Optional[str] = None
    selected_ad_account_id: Optional[str] = None
    metadata: ConnectionMetadata = Field(default_factory=ConnectionMetadata)

    @field_validator("token_expires_at", mode="after")
    @classmethod
    def _utc(cls, value):
        return as_utc(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata(cls, value):
        return parse_loose_object(value, ConnectionMetadata, "metadata") or ConnectionMetadata()

    def resolve_ad_account_id(self) -> Optional[str]:
        account_id = self.selected_ad_account_id or self.account_id
        return account_id.removeprefix("act_") if account_id else None

    def resolve_page_id(self) -> Optional[str]:
        if self.metadata.selected_page_id:
            return self.metadata.selected_page_id
        if self.metadata.pages:
            return self.metadata.pages[0].id
        return None

    def to_public(self, is_valid: bool) -> dict[str, Any]:
        """Connection summary safe to return to the browser (no token)."""
        return {
            "platform": self.platform,
            "connected": bool(self.access_token),
            "isValid": is_valid,
            "tokenExpiresAt": self.token_expires_at.isoformat() if self.token_expires_at else None,
            "selectedAdAccountId": self.resolve_ad_account_id(),
            "selectedPageId": self.resolve_page_id(),
            "adAccounts": [a.model_dump() for a in self.metadata.ad_accounts],
            "pages": [p.model_dump() for p in self.metadata.pages],
        }


class SelectAdAccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ad_account_id: str = Field(..., min_length=1, alias="adAccountId")


class SelectPageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_id: str = Field(..., min_length=1, alias="pageId")
