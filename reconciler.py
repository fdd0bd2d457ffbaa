import asyncio
import logging
from typing import Optional, Protocol

from accumulator import Accumulator
from errors import MissingVariantIdentity, NothingToSync, StockScanError, UpstreamError
from loyverse import LoyverseClient
from schemas import BatchResult, ProductIdentity, SyncedItem, SyncFailure

logger = logging.getLogger("stockscan.sync")


class Pacer(Protocol):
    async def wait(self) -> None: ...


class NoPacer:
    async def wait(self) -> None:
        return None


class FixedDelayPacer:
    """Fixed dead time between two consecutive Loyverse writes (rate limit)."""

    def __init__(self, delay_seconds: float = 0.1):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.delay_seconds = delay_seconds

    async def wait(self) -> None:
        await asyncio.sleep(self.delay_seconds)


class Reconciler:
    """
    Pushes local counts to Loyverse as absolute stock levels (stock_after).
    """

    def __init__(self, client: LoyverseClient, accumulator: Accumulator, pacer: Optional[Pacer] = None):
        self.client = client
        self.accumulator = accumulator
        self.pacer = pacer if pacer is not None else FixedDelayPacer()

    async def _store_id(self) -> str:
        store_id = await self.client.first_store_id()
        if not store_id:
            raise UpstreamError("Loyverse returned no stores")
        return store_id

    async def set_remote_stock(self, identity: ProductIdentity, new_count: int, store_id: Optional[str] = None) -> None:
        if not identity.has_variant:
            raise MissingVariantIdentity()
        if store_id is None:
            store_id = await self._store_id()
        await self.client.set_inventory_level(identity.variant_id, store_id, new_count)

    async def sync_all(self) -> BatchResult:
        """
        One write per counted code, strictly sequential.

        Per-record failures are collected in the result; only an empty count
        (NothingToSync) or an unreachable store list fail the whole call.
        """
        records = self.accumulator.list_records()
        if not records:
            raise NothingToSync()

        logger.info("starting Loyverse inventory update for %d codes", len(records))
        store_id = await self._store_id()

        result = BatchResult()
        writes = 0
        for record in records:
            if record.counted_quantity <= 0:
                continue
            code = record.scan_code
            identity = record.product.identity

            if not identity.has_variant:
                logger.warning("skipping %s: missing variant identity (item %s)", code, identity.item_id)
                result.failed.append(SyncFailure(code=code, error=MissingVariantIdentity(code).message))
                continue

            if writes:
                await self.pacer.wait()
            writes += 1

            logger.info("updating %s: variant %s -> %d", code, identity.variant_id, record.counted_quantity)
            try:
                await self.set_remote_stock(identity, record.counted_quantity, store_id=store_id)
            except StockScanError as exc:
                logger.error("update failed for %s: %s", code, exc)
                result.failed.append(SyncFailure(code=code, error=exc.message))
                continue
            result.succeeded.append(SyncedItem(code=code, counted=record.counted_quantity))

        logger.info("update complete: %s", summary_message(result))
        return result


def summary_message(result: BatchResult) -> str:
    message = f"Updated {len(result.succeeded)} items"
    if result.failed:
        message += f", {len(result.failed)} errors"
    return message
