import datetime
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from errors import StockScanError, UpstreamError
from log_setup import setup_logging
from loyverse import build_http_client
from reconciler import summary_message
from schemas import ScanQuery, ScanResponse, ScannedItem
from service import CountingService, build_service

logger = logging.getLogger("stockscan")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    if not settings.LOYVERSE_TOKEN:
        logger.warning("LOYVERSE_TOKEN is not set; Loyverse calls will be rejected")
    http = build_http_client(settings)
    app.state.service = build_service(http, settings)
    logger.info("Scanner app running, Loyverse API at %s", settings.LOYVERSE_API_BASE)
    try:
        yield
    finally:
        await http.aclose()


app = FastAPI(title="StockScan API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=get_settings().CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service(request: Request) -> CountingService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not started")
    return service


@app.exception_handler(StockScanError)
async def _stockscan_exc(_req: Request, exc: StockScanError):
    content = {"success": False, "error": exc.message, "error_code": exc.code}
    if isinstance(exc, UpstreamError) and exc.body:
        content["details"] = exc.body
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(StarletteHTTPException)
async def _http_exc(_req: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})


@app.exception_handler(Exception)
async def _unhandled_exc(_req: Request, exc: Exception):
    logger.exception("UNHANDLED_EXC: %s", exc)
    return JSONResponse(status_code=500, content={"success": False, "error": "INTERNAL_ERROR"})


@app.get("/test")
async def test():
    return {
        "success": True,
        "message": "Server is working!",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }


@app.get("/test-loyverse")
async def test_loyverse(service: CountingService = Depends(get_service)):
    stores = await service.check_connection()
    return {"success": True, "message": "Loyverse API connected successfully!", "stores": stores}


@app.post("/scan", response_model=ScanResponse)
async def scan_product(payload: ScanQuery, service: CountingService = Depends(get_service)):
    code = payload.barcode.strip()
    if not code:
        raise HTTPException(status_code=400, detail="No barcode provided")

    summary = await service.scan(code)
    return ScanResponse(
        product=summary.product,
        barcode=summary.code,
        counted=summary.counted,
        currentStock=summary.current_stock,
        stockKnown=summary.stock_known,
        difference=summary.difference,
    )


@app.get("/items", response_model=List[ScannedItem])
async def items(service: CountingService = Depends(get_service)):
    return [
        ScannedItem(
            barcode=r.scan_code,
            product_name=r.product.name,
            category_name=r.product.category,
            item_id=r.product.identity.item_id,
            variant_id=r.product.identity.variant_id,
            stock=r.product.remote_stock,
            stock_known=r.product.stock_known,
            counted=r.counted_quantity,
            lastScanned=r.last_scanned_at,
        )
        for r in service.list()
    ]


@app.post("/update-loyverse")
async def update_loyverse(service: CountingService = Depends(get_service)):
    result = await service.sync()
    return {
        "success": True,
        "message": summary_message(result),
        "updates": len(result.succeeded),
        "errors": len(result.failed),
        "details": {
            "updates": [f"{s.code}: {s.counted}" for s in result.succeeded],
            "errors": [f.model_dump() for f in result.failed],
        },
    }


@app.post("/reset")
async def reset(service: CountingService = Depends(get_service)):
    service.reset()
    return {"success": True, "message": "All counts reset"}
