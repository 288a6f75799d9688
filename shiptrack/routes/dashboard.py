from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from shiptrack.routes.envelope import get_service, ok
from shiptrack.service import ShipmentService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats")
async def dashboard_stats(service: ShipmentService = Depends(get_service)) -> JSONResponse:
    """Total shipments and a count per status."""
    return ok(await service.dashboard_counts())


@router.get("/customers")
async def customer_rollup(service: ShipmentService = Depends(get_service)) -> JSONResponse:
    """Per-customer shipment totals, active counts and latest shipment."""
    return ok(await service.customer_rollup())
