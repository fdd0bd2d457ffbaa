import logging
from typing import List

import httpx

from accumulator import Accumulator
from config import Settings
from loyverse import LoyverseClient
from reconciler import FixedDelayPacer, Reconciler
from resolver import Resolver
from schemas import BatchResult, ScanCode, ScanRecord, ScanSummary

logger = logging.getLogger("stockscan")


class CountingService:
    """Entry points the HTTP layer drives: scan, sync, reset, list."""

    def __init__(self, client: LoyverseClient, accumulator: Accumulator, reconciler: Reconciler):
        self.client = client
        self.accumulator = accumulator
        self.reconciler = reconciler

    async def scan(self, code: ScanCode) -> ScanSummary:
        logger.info("scanning barcode: %s", code)
        return await self.accumulator.record_scan(code)

    async def sync(self) -> BatchResult:
        return await self.reconciler.sync_all()

    def reset(self) -> None:
        self.accumulator.reset()

    def list(self) -> List[ScanRecord]:
        return self.accumulator.list_records()

    async def check_connection(self) -> int:
        """Number of stores visible with the configured token. Raises UpstreamError."""
        stores = await self.client.list_stores()
        logger.info("Loyverse reachable, %d store(s)", len(stores))
        return len(stores)


def build_service(http: httpx.AsyncClient, settings: Settings) -> CountingService:
    client = LoyverseClient(http, page_limit=settings.LOYVERSE_PAGE_LIMIT)
    accumulator = Accumulator(Resolver(client))
    reconciler = Reconciler(client, accumulator, FixedDelayPacer(settings.SYNC_DELAY_SECONDS))
    return CountingService(client, accumulator, reconciler)
