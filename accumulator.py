import asyncio
import datetime
import logging
from typing import Callable, Dict, List, Optional

from resolver import Resolver
from schemas import ScanCode, ScanRecord, ScanSummary

logger = logging.getLogger("stockscan.counts")


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Accumulator:
    """
    In-memory tally of scans per code since the last reset.

    Nothing is persisted; a restart starts from an empty count.
    """

    def __init__(self, resolver: Resolver, clock: Callable[[], datetime.datetime] = utc_now):
        self.resolver = resolver
        self.clock = clock
        self._records: Dict[ScanCode, ScanRecord] = {}
        self._locks: Dict[ScanCode, asyncio.Lock] = {}
        self._lock_users: Dict[ScanCode, int] = {}

    def __len__(self) -> int:
        return len(self._records)

    def _lock_for(self, code: ScanCode) -> asyncio.Lock:
        lock = self._locks.get(code)
        if lock is None:
            lock = self._locks[code] = asyncio.Lock()
        self._lock_users[code] = self._lock_users.get(code, 0) + 1
        return lock

    def _release_lock(self, code: ScanCode, locks: Dict[ScanCode, asyncio.Lock], users: Dict[ScanCode, int]) -> None:
        # locks only outlive their users for codes that have a record
        left = users.get(code, 0) - 1
        if left > 0:
            users[code] = left
            return
        users.pop(code, None)
        if code not in self._records or locks is not self._locks:
            locks.pop(code, None)

    async def record_scan(self, code: ScanCode) -> ScanSummary:
        """
        Resolve `code` and count one more scan of it.

        Resolver errors propagate as-is and leave the tally untouched.
        """
        locks, users = self._locks, self._lock_users
        lock = self._lock_for(code)
        try:
            async with lock:
                product = await self.resolver.resolve(code)

                # no await from here on: read, increment and store are one step
                previous = self._records.get(code)
                now = self.clock()
                if previous is not None and previous.last_scanned_at > now:
                    now = previous.last_scanned_at
                record = ScanRecord(
                    scan_code=code,
                    product=product,
                    counted_quantity=(previous.counted_quantity if previous else 0) + 1,
                    last_scanned_at=now,
                )
                self._records[code] = record
        finally:
            self._release_lock(code, locks, users)

        logger.info(
            "%s: local count %d, Loyverse stock %d%s",
            product.name,
            record.counted_quantity,
            product.remote_stock,
            "" if product.stock_known else " (unknown)",
        )
        return ScanSummary(
            product=product.name,
            code=code,
            counted=record.counted_quantity,
            current_stock=product.remote_stock,
            stock_known=product.stock_known,
            difference=record.counted_quantity - product.remote_stock,
        )

    def get(self, code: ScanCode) -> Optional[ScanRecord]:
        return self._records.get(code)

    def list_records(self) -> List[ScanRecord]:
        return list(self._records.values())

    def reset(self) -> None:
        # swap, don't clear: a reader holding the old mapping never sees it half-emptied
        self._records = {}
        self._locks = {}
        self._lock_users = {}
        logger.info("all counts reset")
