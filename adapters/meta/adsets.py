from typing import Any

from adapters.meta.base import MetaAdapter
from adapters.meta.models import AdSetPayload, RemoteStatus


class MetaAdSetAdapter(MetaAdapter):
    async def create(self, ad_account_id: str, payload: AdSetPayload) -> str:
        if not payload.campaign_id:
            raise ValueError("campaign_id is required to create an ad set")
        response = await self.client.post(
            self._account_path(ad_account_id, "adsets"),
            json=payload.to_graph(),
        )
        return self._require_id(response, "ad set")

    async def update_status(self, adset_id: str, status: RemoteStatus) -> dict[str, Any]:
        return await self.client.post(f"/{adset_id}", json={"status": status.value})
