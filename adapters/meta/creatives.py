from adapters.meta.base import MetaAdapter
from adapters.meta.models import CreativePayload


class MetaCreativeAdapter(MetaAdapter):
    async def create(self, ad_account_id: str, payload: CreativePayload) -> str:
        link_data = payload.object_story_spec.link_data
        if not link_data.image_hash and not link_data.picture:
            raise ValueError("image_hash or picture is required to create Meta creative")
        if not payload.object_story_spec.page_id:
            raise ValueError("page_id is required to create Meta creative")

        response = await self.client.post(
            self._account_path(ad_account_id, "adcreatives"),
            json=payload.to_graph(),
        )
        return self._require_id(response, "ad creative")
