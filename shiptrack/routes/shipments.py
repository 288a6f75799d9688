from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from shiptrack.models import (
    AddCheckpointBody,
    AddNoteBody,
    CreateShipmentBody,
    UpdateAmountBody,
    UpdateStatusBody,
)
from shiptrack.routes.envelope import get_service, ok
from shiptrack.service import ShipmentService
from shiptrack.shipment_state import ServiceType, Status

router = APIRouter(prefix="/shipments", tags=["shipments"])


@router.get("")
async def list_shipments(
    customer_id: str | None = Query(default=None, alias="customerId"),
    status: Status | None = Query(default=None),
    service_type: ServiceType | None = Query(default=None, alias="serviceType"),
    q: str | None = Query(default=None, max_length=100, description="Search tracking id, customer, email, phone"),
    service: ShipmentService = Depends(get_service),
) -> JSONResponse:
    shipments = await service.list_shipments(
        customer_id=customer_id, status=status, service_type=service_type, query=q
    )
    return ok([s.to_wire() for s in shipments])


@router.post("")
async def create_shipment(
    body: CreateShipmentBody,
    service: ShipmentService = Depends(get_service),
) -> JSONResponse:
    shipment = await service.create(body)
    return ok(shipment.to_wire(), status_code=201)


@router.get("/{shipment_id}")
async def get_shipment(shipment_id: str, service: ShipmentService = Depends(get_service)) -> JSONResponse:
    shipment = await service.get_shipment(shipment_id)
    return ok(shipment.to_wire())


@router.get("/{shipment_id}/transitions")
async def get_transitions(shipment_id: str, service: ShipmentService = Depends(get_service)) -> JSONResponse:
    """Legal next statuses for the shipment's current status."""
    current, allowed = await service.next_states(shipment_id)
    return ok({"status": current.value, "allowed": [s.value for s in allowed]})


@router.patch("/{shipment_id}/status")
async def update_status(
    shipment_id: str,
    body: UpdateStatusBody,
    service: ShipmentService = Depends(get_service),
) -> JSONResponse:
    """
    Move the shipment to `status`. Validated against the stored status at write time,
    so a request built from a stale view may be rejected with 409.
    """
    shipment = await service.update_status(
        shipment_id, body.status, admin_name=body.admin_name, note=body.note
    )
    return ok(shipment.to_wire())


@router.post("/{shipment_id}/checkpoints")
async def add_checkpoint(
    shipment_id: str,
    body: AddCheckpointBody,
    service: ShipmentService = Depends(get_service),
) -> JSONResponse:
    checkpoint = await service.add_checkpoint(
        shipment_id, body.location, body.description, admin_name=body.admin_name
    )
    return ok(checkpoint.to_wire(), status_code=201)


@router.post("/{shipment_id}/notes")
async def add_note(
    shipment_id: str,
    body: AddNoteBody,
    service: ShipmentService = Depends(get_service),
) -> JSONResponse:
    note = await service.add_note(shipment_id, body.text, admin_name=body.admin_name)
    return ok(note.to_wire(), status_code=201)


@router.api_route("/{shipment_id}/amount", methods=["PATCH", "PUT"])
async def update_amount(
    shipment_id: str,
    body: UpdateAmountBody,
    service: ShipmentService = Depends(get_service),
) -> JSONResponse:
    shipment = await service.update_amount(shipment_id, body.amount)
    return ok(shipment.to_wire())


@router.delete("/{shipment_id}")
async def delete_shipment(shipment_id: str, service: ShipmentService = Depends(get_service)) -> JSONResponse:
    await service.delete(shipment_id)
    return ok({"message": "Shipment deleted"})
