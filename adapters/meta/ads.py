from typing import Any

from adapters.meta.base import MetaAdapter
from adapters.meta.models import AdPayload, RemoteStatus


class MetaAdAdapter(MetaAdapter):
    async def create(self, ad_account_id: str, payload: AdPayload) -> str:
        response = await self.client.post(
            self._account_path(ad_account_id, "ads"),
            json=payload.to_graph(),
        )
        return self._require_id(response, "ad")

    async def update_status(self, ad_id: str, status: RemoteStatus) -> dict[str, Any]:
        return await self.client.post(f"/{ad_id}", json={"status": status.value})
