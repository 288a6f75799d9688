"""
Lifecycle mutations as pure functions of (current persisted shipment, proposed change).

Nothing here touches storage: the store loads the current shipment under its
per-shipment lock, calls one of these, and persists the result atomically.
Inputs are never mutated; updated shipments are returned as new objects.
"""
import math
import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Any

from shiptrack.config import settings
from shiptrack.errors import ValidationError
from shiptrack.models import (
    Checkpoint,
    CreateShipmentBody,
    CustomerPublic,
    Note,
    Shipment,
    StatusHistoryItem,
)
from shiptrack.shipment_state import INITIAL_STATUS, Status, check_transition

TRACKING_ID_PREFIX = "TRK"
_TRACKING_ALPHABET = string.ascii_uppercase + string.digits
# amounts are stored as BIGINT
MAX_AMOUNT = 2**63 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def generate_tracking_id() -> str:
    return TRACKING_ID_PREFIX + "".join(secrets.choice(_TRACKING_ALPHABET) for _ in range(10))


def require_text(field: str, value: Any, max_length: int) -> str:
    """Trimmed non-empty string or ValidationError."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{field} is required")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(field, f"{field} must be at most {max_length} characters")
    return value


def optional_text(field: str, value: Any, max_length: int) -> str | None:
    """Trimmed string, or None for missing/blank input."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be a string")
    value = value.strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValidationError(field, f"{field} must be at most {max_length} characters")
    return value


def validate_amount(value: Any) -> int:
    """
    Accept only non-negative integers. bool is an int subclass in Python and is rejected;
    so are floats, even integral ones, since the wire value must be a whole number.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("amount", "Amount must be a whole number")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError("amount", "Amount must be a finite number")
        raise ValidationError("amount", "Amount must be a whole number")
    if value < 0:
        raise ValidationError("amount", "Amount must be at least 0")
    if value > MAX_AMOUNT:
        raise ValidationError("amount", f"Amount must be at most {MAX_AMOUNT}")
    return value


def new_shipment(
    body: CreateShipmentBody,
    customer: CustomerPublic,
    now: datetime | None = None,
) -> Shipment:
    """Build a PENDING shipment whose history is seeded with the initial status."""
    now = now or utcnow()
    shipment_id = new_id()
    tracking_id = optional_text("trackingId", body.tracking_id, 64) or generate_tracking_id()
    seed = StatusHistoryItem(
        id=new_id(),
        shipment_id=shipment_id,
        status=INITIAL_STATUS,
        timestamp=now,
    )
    return Shipment(
        id=shipment_id,
        tracking_id=tracking_id,
        customer_id=customer.id,
        customer=customer,
        service_type=body.service_type,
        status=INITIAL_STATUS,
        pickup_location=require_text("pickupLocation", body.pickup_location, 255),
        destination_location=require_text("destinationLocation", body.destination_location, 255),
        package_type=require_text("packageType", body.package_type, 100),
        weight=require_text("weight", body.weight, 50),
        dimensions=require_text("dimensions", body.dimensions, 100),
        phone=require_text("phone", body.phone, 50),
        receiver_phone=optional_text("receiverPhone", body.receiver_phone, 50),
        amount=validate_amount(body.amount),
        created_at=now,
        updated_at=now,
        status_history=[seed],
    )


def apply_transition(
    shipment: Shipment,
    target: Status,
    admin_name: str | None = None,
    note: str | None = None,
    now: datetime | None = None,
) -> tuple[Shipment, StatusHistoryItem]:
    """
    Validate target against the shipment's current status and return the updated
    shipment plus the one history item the transition produced.
    """
    admin_name = optional_text("adminName", admin_name, settings.admin_name_max_length)
    note = optional_text("note", note, settings.note_max_length)
    check_transition(shipment.status, target)

    now = now or utcnow()
    item = StatusHistoryItem(
        id=new_id(),
        shipment_id=shipment.id,
        status=Status(target),
        timestamp=now,
        admin_name=admin_name,
        note=note,
    )
    updated = shipment.model_copy(update={
        "status": item.status,
        "updated_at": now,
        "status_history": [*shipment.status_history, item],
    })
    return updated, item


def build_checkpoint(
    shipment_id: str,
    location: Any,
    description: Any,
    admin_name: Any = None,
    now: datetime | None = None,
) -> Checkpoint:
    return Checkpoint(
        id=new_id(),
        shipment_id=shipment_id,
        location=require_text("location", location, settings.checkpoint_location_max_length),
        description=require_text("description", description, settings.checkpoint_description_max_length),
        timestamp=now or utcnow(),
        admin_name=optional_text("adminName", admin_name, settings.admin_name_max_length),
    )


def build_note(
    shipment_id: str,
    text: Any,
    admin_name: Any = None,
    now: datetime | None = None,
) -> Note:
    return Note(
        id=new_id(),
        shipment_id=shipment_id,
        text=require_text("text", text, settings.note_max_length),
        timestamp=now or utcnow(),
        admin_name=optional_text("adminName", admin_name, settings.admin_name_max_length),
    )


def append_checkpoint(shipment: Shipment, checkpoint: Checkpoint) -> Shipment:
    return shipment.model_copy(update={
        "checkpoints": [*shipment.checkpoints, checkpoint],
        "updated_at": checkpoint.timestamp,
    })


def append_note(shipment: Shipment, note: Note) -> Shipment:
    return shipment.model_copy(update={
        "notes": [*shipment.notes, note],
        "updated_at": note.timestamp,
    })


def apply_amount(shipment: Shipment, amount: Any, now: datetime | None = None) -> Shipment:
    """Set the price. Pricing is outside the audit trail: no history item."""
    return shipment.model_copy(update={
        "amount": validate_amount(amount),
        "updated_at": now or utcnow(),
    })
