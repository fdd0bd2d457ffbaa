import logging
from typing import Any, Dict, List, Optional

import httpx

from config import Settings
from errors import UpstreamError
from schemas import ItemId, VariantId

logger = logging.getLogger("stockscan.loyverse")


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.LOYVERSE_API_BASE,
        headers={
            "Authorization": f"Bearer {settings.LOYVERSE_TOKEN}",
            "Content-Type": "application/json",
        },
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


def variant_id_of(variant: Dict[str, Any]) -> Optional[VariantId]:
    # /variants answers with variant_id; some payloads only carry id
    raw = variant.get("variant_id") or variant.get("id")
    return VariantId(str(raw)) if raw else None


class LoyverseClient:
    """
    Thin async wrapper over the Loyverse REST endpoints the counter needs.

    Every non-2xx answer and every transport failure is raised as UpstreamError;
    nothing is retried here.
    """

    def __init__(self, http: httpx.AsyncClient, page_limit: int = 50):
        self.http = http
        self.page_limit = page_limit

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        logger.debug("%s %s params=%s", method, path, kwargs.get("params"))
        try:
            r = await self.http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise UpstreamError(f"Loyverse timeout on {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Loyverse connection failed on {method} {path}: {exc}") from exc

        if not r.is_success:
            body = r.text
            logger.error("Loyverse %s %s failed status=%s body=%s", method, path, r.status_code, body)
            raise UpstreamError(f"Loyverse {method} {path} failed", status=r.status_code, body=body)

        if not r.content:
            return {}
        try:
            data = r.json()
        except ValueError as exc:
            raise UpstreamError(f"Loyverse {method} {path} returned invalid JSON", status=r.status_code, body=r.text) from exc
        logger.debug("%s %s -> %s", method, path, r.status_code)
        return data if isinstance(data, dict) else {}

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("GET", path, params=params)

    # ---------- stores ----------

    async def list_stores(self) -> List[Dict[str, Any]]:
        data = await self._get("/stores")
        return list(data.get("stores") or [])

    async def first_store_id(self) -> Optional[str]:
        """Only one location is supported: the first store Loyverse lists."""
        stores = await self.list_stores()
        if not stores:
            return None
        store_id = stores[0].get("id")
        return str(store_id) if store_id else None

    # ---------- catalogue ----------

    async def variants_by_sku(self, sku: str) -> List[Dict[str, Any]]:
        data = await self._get("/variants", {"sku": sku, "limit": self.page_limit})
        return list(data.get("variants") or [])

    async def items_by_sku(self, sku: str) -> List[Dict[str, Any]]:
        data = await self._get("/items", {"sku": sku, "limit": self.page_limit})
        return list(data.get("items") or [])

    async def get_item(self, item_id: ItemId) -> Dict[str, Any]:
        return await self._get(f"/items/{item_id}")

    async def variants_by_item(self, item_id: ItemId) -> List[Dict[str, Any]]:
        data = await self._get("/variants", {"items_ids": item_id, "limit": self.page_limit})
        return list(data.get("variants") or [])

    # ---------- inventory ----------

    async def inventory_levels(self, store_id: str, item_id: ItemId) -> List[Dict[str, Any]]:
        data = await self._get("/inventory", {"store_ids": store_id, "item_ids": item_id})
        return list(data.get("inventory_levels") or [])

    async def set_inventory_level(self, variant_id: VariantId, store_id: str, stock_after: int) -> Dict[str, Any]:
        payload = {
            "inventory_levels": [
                {"variant_id": variant_id, "store_id": store_id, "stock_after": stock_after},
            ]
        }
        return await self._request("POST", "/inventory", json=payload)
