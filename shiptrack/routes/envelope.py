from typing import Any

from fastapi.responses import JSONResponse

from shiptrack.service import ShipmentService
from shiptrack.store import get_store


def ok(data: Any, status_code: int = 200) -> JSONResponse:
    """Success envelope: {success: true, data: ...}."""
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


def fail(status_code: int, error: str, message: str | list[str], **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message, **extra},
    )


async def get_service() -> ShipmentService:
    return ShipmentService(await get_store())
