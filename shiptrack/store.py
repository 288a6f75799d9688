"""
Shipment store: the persistence collaborator and per-shipment serialization point.
Backend: in-process (default) or Postgres when STORE_BACKEND=postgres.

Every mutating method loads the current persisted shipment under the shipment's
lock, applies a pure lifecycle function and persists the result in one step, so a
second conflicting request is validated against the first one's outcome.
"""
import asyncio
from typing import Any, Protocol

from shiptrack import lifecycle
from shiptrack.config import settings
from shiptrack.errors import NotFoundError, ValidationError
from shiptrack.models import Checkpoint, CreateShipmentBody, CustomerPublic, Note, Shipment
from shiptrack.shipment_state import Status


class ShipmentStore(Protocol):
    async def list_shipments(
        self, customer_id: str | None = None, status: Status | None = None
    ) -> list[Shipment]: ...

    async def get_shipment(self, shipment_id: str) -> Shipment: ...

    async def get_customer(self, customer_id: str) -> CustomerPublic: ...

    async def upsert_customer(self, customer: CustomerPublic) -> CustomerPublic: ...

    async def create_shipment(self, body: CreateShipmentBody) -> Shipment: ...

    async def update_status(
        self,
        shipment_id: str,
        target: Status,
        admin_name: str | None = None,
        note: str | None = None,
    ) -> Shipment: ...

    async def add_checkpoint(
        self, shipment_id: str, location: Any, description: Any, admin_name: Any = None
    ) -> Checkpoint: ...

    async def add_note(self, shipment_id: str, text: Any, admin_name: Any = None) -> Note: ...

    async def update_amount(self, shipment_id: str, amount: Any) -> Shipment: ...

    async def delete_shipment(self, shipment_id: str) -> None: ...

    async def close(self) -> None: ...


class MemoryShipmentStore:
    """In-process store. One asyncio.Lock per shipment id linearizes writes."""

    def __init__(self) -> None:
        self._customers: dict[str, CustomerPublic] = {}
        self._shipments: dict[str, Shipment] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, shipment_id: str) -> asyncio.Lock:
        return self._locks.setdefault(shipment_id, asyncio.Lock())

    def _current(self, shipment_id: str) -> Shipment:
        shipment = self._shipments.get(shipment_id)
        if shipment is None:
            raise NotFoundError("Shipment", shipment_id)
        return shipment

    async def list_shipments(
        self, customer_id: str | None = None, status: Status | None = None
    ) -> list[Shipment]:
        shipments = [
            s for s in self._shipments.values()
            if (customer_id is None or s.customer_id == customer_id)
            and (status is None or s.status == status)
        ]
        # newest first, same as the Postgres store
        return sorted(shipments, key=lambda s: s.created_at, reverse=True)

    async def get_shipment(self, shipment_id: str) -> Shipment:
        return self._current(shipment_id)

    async def get_customer(self, customer_id: str) -> CustomerPublic:
        customer = self._customers.get(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    async def upsert_customer(self, customer: CustomerPublic) -> CustomerPublic:
        self._customers[customer.id] = customer
        return customer

    async def create_shipment(self, body: CreateShipmentBody) -> Shipment:
        customer = await self.get_customer(body.customer_id)
        shipment = lifecycle.new_shipment(body, customer)
        if any(s.tracking_id == shipment.tracking_id for s in self._shipments.values()):
            raise ValidationError("trackingId", "Tracking ID already exists")
        self._shipments[shipment.id] = shipment
        return shipment

    async def update_status(
        self,
        shipment_id: str,
        target: Status,
        admin_name: str | None = None,
        note: str | None = None,
    ) -> Shipment:
        async with self._lock(shipment_id):
            updated, _ = lifecycle.apply_transition(
                self._current(shipment_id), target, admin_name=admin_name, note=note
            )
            self._shipments[shipment_id] = updated
            return updated

    async def add_checkpoint(
        self, shipment_id: str, location: Any, description: Any, admin_name: Any = None
    ) -> Checkpoint:
        async with self._lock(shipment_id):
            shipment = self._current(shipment_id)
            checkpoint = lifecycle.build_checkpoint(shipment_id, location, description, admin_name)
            self._shipments[shipment_id] = lifecycle.append_checkpoint(shipment, checkpoint)
            return checkpoint

    async def add_note(self, shipment_id: str, text: Any, admin_name: Any = None) -> Note:
        async with self._lock(shipment_id):
            shipment = self._current(shipment_id)
            note = lifecycle.build_note(shipment_id, text, admin_name)
            self._shipments[shipment_id] = lifecycle.append_note(shipment, note)
            return note

    async def update_amount(self, shipment_id: str, amount: Any) -> Shipment:
        async with self._lock(shipment_id):
            updated = lifecycle.apply_amount(self._current(shipment_id), amount)
            self._shipments[shipment_id] = updated
            return updated

    async def delete_shipment(self, shipment_id: str) -> None:
        async with self._lock(shipment_id):
            self._current(shipment_id)
            del self._shipments[shipment_id]
        self._locks.pop(shipment_id, None)

    async def close(self) -> None:
        return None


_store: ShipmentStore | None = None


async def get_store() -> ShipmentStore:
    global _store
    if _store is None:
        if settings.store_backend == "postgres":
            from shiptrack.db import PostgresShipmentStore, get_pool, init_schema

            pool = await get_pool()
            await init_schema(pool)
            _store = PostgresShipmentStore(pool)
        else:
            _store = MemoryShipmentStore()
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None
