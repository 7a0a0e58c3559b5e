from typing import Any

from adapters.meta.client import MetaClient
from adapters.meta.exceptions import MetaAPIError


def normalize_ad_account_id(ad_account_id: str) -> str:
    """Strip act_ prefix if present to avoid duplication."""
    return str(ad_account_id).strip().removeprefix("act_")


class MetaAdapter:
    def __init__(self, client: MetaClient):
        self.client = client

    def _account_path(self, ad_account_id: str, edge: str) -> str:
        return f"/act_{normalize_ad_account_id(ad_account_id)}/{edge}"

    @staticmethod
    def _require_id(response: dict[str, Any], what: str) -> str:
        object_id = response.get("id")
        if not object_id:
            raise MetaAPIError(f"Meta API returned no id for {what}", 502, response)
        return str(object_id)
