"""
Shipment aggregate and wire shapes. Python attributes are snake_case; the wire uses
camelCase aliases (trackingId, statusHistory, adminName, ...).
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shiptrack.shipment_state import ServiceType, Status


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class RecordModel(WireModel):
    """Append-only child records: immutable once created."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class CustomerPublic(WireModel):
    id: str
    name: str | None = None
    email: str
    phone: str | None = None


class StatusHistoryItem(RecordModel):
    id: str
    shipment_id: str
    status: Status
    timestamp: datetime
    admin_name: str | None = None
    note: str | None = None


class Checkpoint(RecordModel):
    id: str
    shipment_id: str
    location: str
    description: str
    timestamp: datetime
    admin_name: str | None = None


class Note(RecordModel):
    id: str
    shipment_id: str
    text: str
    timestamp: datetime
    admin_name: str | None = None


class Shipment(WireModel):
    id: str
    tracking_id: str
    customer_id: str
    customer: CustomerPublic | None = None
    service_type: ServiceType
    status: Status

    pickup_location: str
    destination_location: str

    package_type: str
    weight: str
    dimensions: str
    phone: str
    receiver_phone: str | None = None

    amount: int = 0

    created_at: datetime
    updated_at: datetime

    status_history: list[StatusHistoryItem] = Field(default_factory=list)
    checkpoints: list[Checkpoint] = Field(default_factory=list)
    notes: list[Note] = Field(default_factory=list)


# Request bodies


class CreateShipmentBody(WireModel):
    customer_id: str = Field(..., min_length=1)
    service_type: ServiceType
    pickup_location: str = Field(..., min_length=1)
    destination_location: str = Field(..., min_length=1)
    package_type: str = Field(..., min_length=1)
    weight: str = Field(..., min_length=1)
    dimensions: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    receiver_phone: str | None = None
    amount: Any = Field(default=0, description="Non-negative integer price")
    tracking_id: str | None = Field(default=None, description="Generated when omitted")


class UpdateStatusBody(WireModel):
    status: Status
    note: str | None = None
    admin_name: str | None = None


class AddCheckpointBody(WireModel):
    location: str
    description: str
    admin_name: str | None = None


class AddNoteBody(WireModel):
    text: str
    admin_name: str | None = None


class UpdateAmountBody(WireModel):
    # Validated by lifecycle.validate_amount so 3.5 / NaN / true are rejected, not coerced
    amount: Any


# Read models


class CustomerSummary(WireModel):
    key: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    total_shipments: int
    active_shipments: int
    last_shipment_id: str
    last_shipment_status: Status
    last_shipment_created: datetime


class CustomerStats(WireModel):
    total: int
    active: int
    delivered: int


class DashboardCounts(WireModel):
    total: int
    by_status: dict[Status, int]
