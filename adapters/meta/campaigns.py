from typing import Any

from adapters.meta.base import MetaAdapter
from adapters.meta.models import CampaignPayload, RemoteStatus


class MetaCampaignAdapter(MetaAdapter):
    """Adapter for Meta Campaign operations."""

    async def create(self, ad_account_id: str, payload: CampaignPayload) -> str:
        """Create a campaign and return its remote id."""
        response = await self.client.post(
            self._account_path(ad_account_id, "campaigns"),
            json=payload.to_graph(),
        )
        return self._require_id(response, "campaign")

    async def update_status(self, campaign_id: str, status: RemoteStatus) -> dict[str, Any]:
        return await self.client.post(f"/{campaign_id}", json={"status": status.value})

    async def get(self, campaign_id: str, fields: list[str] | None = None) -> dict[str, Any]:
        params = {"fields": ",".join(fields)} if fields else None
        return await self.client.get(f"/{campaign_id}", params=params)
