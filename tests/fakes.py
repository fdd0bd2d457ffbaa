import json
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx

from loyverse import LoyverseClient

API_BASE = "https://api.loyverse.test/v1.0"


class FakeLoyverse:
    """
    In-memory stand-in for the Loyverse endpoints the service calls.

    `fail` maps (method, path) to a status code returned instead of the
    normal answer; `broken` holds paths that raise a transport error.
    """

    def __init__(self):
        self.stores: List[Dict[str, Any]] = [{"id": "S1", "name": "Main"}]
        self.items: Dict[str, Dict[str, Any]] = {}
        self.variants: List[Dict[str, Any]] = []
        self.levels: List[Dict[str, Any]] = []
        self.fail: Dict[Tuple[str, str], int] = {}
        self.broken: Set[str] = set()
        self.rejected_variants: Set[str] = set()
        self.requests: List[httpx.Request] = []
        self.writes: List[Dict[str, Any]] = []

    # ---------- fixtures ----------

    def add_product(
        self,
        item_id: str,
        name: str,
        sku: str,
        variant_id: Optional[str] = "V1",
        in_stock: Optional[float] = None,
        category: Optional[str] = None,
        embed_variants: bool = True,
    ) -> None:
        item: Dict[str, Any] = {"id": item_id, "item_name": name, "variants": []}
        if category:
            item["category_name"] = category
        if variant_id:
            variant = {"variant_id": variant_id, "item_id": item_id, "sku": sku}
            self.variants.append(variant)
            if embed_variants:
                item["variants"].append(dict(variant))
        else:
            item["sku"] = sku
        self.items[item_id] = item
        if in_stock is not None:
            self.levels.append(
                {"variant_id": variant_id, "item_id": item_id, "store_id": self.stores[0]["id"], "in_stock": in_stock}
            )

    # ---------- plumbing ----------

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def client(self) -> LoyverseClient:
        http = httpx.AsyncClient(
            base_url=API_BASE,
            headers={"Authorization": "Bearer test-token"},
            transport=httpx.MockTransport(self.handler),
        )
        return LoyverseClient(http)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.replace("/v1.0", "", 1)
        if path in self.broken:
            raise httpx.ConnectError("connection refused", request=request)
        status = self.fail.get((request.method, path))
        if status:
            return httpx.Response(status, text=f"forced failure {status}")

        params = request.url.params
        if request.method == "GET" and path == "/stores":
            return httpx.Response(200, json={"stores": self.stores})
        if request.method == "GET" and path == "/variants":
            found = self.variants
            if "sku" in params:
                found = [v for v in found if v.get("sku") == params["sku"]]
            if "items_ids" in params:
                found = [v for v in found if v.get("item_id") == params["items_ids"]]
            return httpx.Response(200, json={"variants": found})
        if request.method == "GET" and path == "/items":
            sku = params.get("sku")
            found = [
                i
                for i in self.items.values()
                if i.get("sku") == sku or any(v.get("sku") == sku for v in i.get("variants", []))
            ]
            return httpx.Response(200, json={"items": found})
        if request.method == "GET" and path.startswith("/items/"):
            item = self.items.get(path.rsplit("/", 1)[-1])
            if item is None:
                return httpx.Response(404, json={"errors": [{"code": "NOT_FOUND"}]})
            return httpx.Response(200, json=item)
        if request.method == "GET" and path == "/inventory":
            found = [
                lv
                for lv in self.levels
                if lv["store_id"] == params.get("store_ids") and lv["item_id"] == params.get("item_ids")
            ]
            return httpx.Response(200, json={"inventory_levels": found})
        if request.method == "POST" and path == "/inventory":
            body = json.loads(request.content)
            if any(lv["variant_id"] in self.rejected_variants for lv in body["inventory_levels"]):
                return httpx.Response(400, text="variant rejected")
            self.writes.extend(body["inventory_levels"])
            return httpx.Response(200, json=body)
        return httpx.Response(404, text="no such route")
