import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from shiptrack.config import settings
from shiptrack.errors import ShipmentError, ValidationError
from shiptrack.metrics import get_metrics_bytes, get_metrics_content_type
from shiptrack.redis_client import close_redis, get_redis
from shiptrack.routes import dashboard, shipments
from shiptrack.routes.envelope import fail
from shiptrack.seed import seed
from shiptrack.store import close_store, get_store

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = await get_store()
    if settings.seed_demo_data:
        await seed(store)
    await get_redis()
    logger.info("Shipment service started (store=%s)", settings.store_backend)
    yield
    await close_redis()
    await close_store()


app = FastAPI(title="Shipment Tracking", lifespan=lifespan)
app.include_router(shipments.router)
app.include_router(dashboard.router)


@app.exception_handler(ShipmentError)
async def shipment_error_handler(request: Request, exc: ShipmentError) -> JSONResponse:
    extra = {"field": exc.field} if isinstance(exc, ValidationError) else {}
    return fail(exc.http_status, exc.code, exc.message, **extra)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        messages.append(f"{'.'.join(loc)}: {err['msg']}" if loc else err["msg"])
    return fail(422, "ValidationError", messages)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(
        content=get_metrics_bytes(),
        media_type=get_metrics_content_type(),
    )
