from typing import Optional


class StockScanError(Exception):
    """Base for every failure the counting core reports to its caller."""

    code = "STOCKSCAN_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(StockScanError):
    code = "PRODUCT_NOT_FOUND"
    status_code = 404

    def __init__(self, scan_code: str):
        super().__init__(f"Product not found: {scan_code}")
        self.scan_code = scan_code


class UpstreamError(StockScanError):
    """A Loyverse call failed in transport or answered with a non-2xx status."""

    code = "UPSTREAM_ERROR"
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        if status is not None:
            message = f"{message}: HTTP {status}"
        super().__init__(message)
        self.status = status
        self.body = body


class MissingVariantIdentity(StockScanError):
    code = "MISSING_VARIANT"
    status_code = 409

    def __init__(self, scan_code: Optional[str] = None):
        super().__init__("missing variant identity")
        self.scan_code = scan_code


class NothingToSync(StockScanError):
    code = "NOTHING_TO_SYNC"
    status_code = 409

    def __init__(self):
        super().__init__("No items to update")
