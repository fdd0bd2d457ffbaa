"""
Scanned code -> Loyverse product resolution.

A scan is resolved by trying a fixed sequence of search strategies; the first
one that finds a product wins. Adding a new lookup (e.g. a barcode field
distinct from the SKU) means appending a strategy to DEFAULT_STRATEGIES.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

from errors import NotFound, UpstreamError
from loyverse import LoyverseClient, variant_id_of
from schemas import ItemId, ProductIdentity, ResolvedProduct, ScanCode, VariantId

logger = logging.getLogger("stockscan.resolver")

Strategy = Callable[[LoyverseClient, ScanCode], Awaitable[ResolvedProduct]]


@dataclass(frozen=True)
class StockReading:
    quantity: int
    known: bool


UNKNOWN_STOCK = StockReading(quantity=0, known=False)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


async def read_stock(
    client: LoyverseClient,
    item_id: ItemId,
    variant_id: Optional[VariantId] = None,
) -> StockReading:
    """
    Current on-hand quantity of an item at the first store.

    Missing store, missing inventory record, or any upstream failure read as
    UNKNOWN_STOCK (quantity 0, known=False) instead of failing the scan.
    """
    try:
        store_id = await client.first_store_id()
        if not store_id:
            logger.warning("no stores found, stock unknown for item=%s", item_id)
            return UNKNOWN_STOCK

        levels = await client.inventory_levels(store_id, item_id)
    except UpstreamError as exc:
        logger.warning("stock read failed for item=%s: %s", item_id, exc)
        return UNKNOWN_STOCK

    if not levels:
        logger.info("no inventory record for item=%s store=%s", item_id, store_id)
        return UNKNOWN_STOCK

    level = levels[0]
    if variant_id:
        for candidate in levels:
            if variant_id_of(candidate) == variant_id:
                level = candidate
                break

    try:
        in_stock = float(level.get("in_stock") or 0)
    except (TypeError, ValueError):
        logger.warning("unreadable in_stock %r for item=%s", level.get("in_stock"), item_id)
        return UNKNOWN_STOCK

    return StockReading(quantity=max(0, round_half_up(in_stock)), known=True)


async def _build_product(
    client: LoyverseClient,
    code: ScanCode,
    item: Dict[str, Any],
    variant_id: Optional[VariantId],
) -> ResolvedProduct:
    item_id = ItemId(str(item["id"]))
    stock = await read_stock(client, item_id, variant_id)
    return ResolvedProduct(
        identity=ProductIdentity(item_id=item_id, variant_id=variant_id),
        name=item.get("item_name") or item.get("name") or code,
        category=item.get("category_name") or "Unknown",
        remote_stock=stock.quantity,
        stock_known=stock.known,
    )


def _embedded_variant_id(item: Dict[str, Any], code: ScanCode) -> Optional[VariantId]:
    variants = item.get("variants") or []
    for v in variants:
        if v.get("sku") == code:
            vid = variant_id_of(v)
            if vid:
                return vid
    for v in variants:
        vid = variant_id_of(v)
        if vid:
            return vid
    return None


async def by_variant_sku(client: LoyverseClient, code: ScanCode) -> ResolvedProduct:
    variants = await client.variants_by_sku(code)
    if not variants:
        raise NotFound(code)

    variant = variants[0]
    variant_id = variant_id_of(variant)
    parent_id = variant.get("item_id")
    if not variant_id or not parent_id:
        logger.warning("variant match for %s lacks ids: %s", code, variant)
        raise NotFound(code)

    try:
        item = await client.get_item(ItemId(str(parent_id)))
    except UpstreamError as exc:
        logger.warning("parent item %s of variant %s not fetched: %s", parent_id, variant_id, exc)
        raise NotFound(code) from exc
    if not item.get("id"):
        raise NotFound(code)

    return await _build_product(client, code, item, variant_id)


async def by_item_sku(client: LoyverseClient, code: ScanCode) -> ResolvedProduct:
    items = await client.items_by_sku(code)
    if not items:
        raise NotFound(code)

    item = items[0]
    if not item.get("id"):
        raise NotFound(code)
    item_id = ItemId(str(item["id"]))

    variant_id = _embedded_variant_id(item, code)
    if variant_id is None:
        try:
            found = await client.variants_by_item(item_id)
        except UpstreamError as exc:
            logger.warning("variant lookup for item %s failed: %s", item_id, exc)
            found = []
        if found:
            variant_id = variant_id_of(found[0])

    if variant_id is None:
        logger.warning("item %s for code %s has no variant id; it cannot be synced", item_id, code)

    return await _build_product(client, code, item, variant_id)


DEFAULT_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("variant_sku", by_variant_sku),
    ("item_sku", by_item_sku),
)


class Resolver:
    def __init__(self, client: LoyverseClient, strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES):
        self.client = client
        self.strategies = tuple(strategies)

    async def resolve(self, code: ScanCode) -> ResolvedProduct:
        """
        Raises NotFound when every strategy misses, or the last UpstreamError
        seen when a search could not complete and nothing matched afterwards.
        """
        upstream: Optional[UpstreamError] = None
        for name, strategy in self.strategies:
            try:
                product = await strategy(self.client, code)
            except NotFound:
                logger.debug("strategy %s: no match for %s", name, code)
                continue
            except UpstreamError as exc:
                logger.warning("strategy %s failed for %s: %s", name, code, exc)
                upstream = exc
                continue
            logger.info("resolved %s via %s -> %s", code, name, product.name)
            return product

        if upstream is not None:
            raise upstream
        logger.info("product not found: %s", code)
        raise NotFound(code)
