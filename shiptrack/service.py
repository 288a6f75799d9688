"""
Application service over the shipment store: metrics, logging, read-model cache
invalidation, and cancellation shielding for dispatched writes.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from shiptrack import read_models
from shiptrack.errors import InvalidTransitionError
from shiptrack.metrics import (
    shipment_amount_updates_total,
    shipment_checkpoints_added_total,
    shipment_notes_added_total,
    shipment_transitions_rejected_total,
    shipment_transitions_total,
    shipments_created_total,
)
from shiptrack.models import Checkpoint, CreateShipmentBody, Note, Shipment
from shiptrack.redis_client import (
    CUSTOMER_ROLLUP_KEY,
    DASHBOARD_COUNTS_KEY,
    get_cached_json,
    invalidate_read_models,
    read_model_generation,
    set_cached_json,
)
from shiptrack.shipment_state import ServiceType, Status, allowed_next_states
from shiptrack.store import ShipmentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _dispatch(write: Awaitable[T]) -> T:
    """
    Run a write to completion even if the caller goes away: once dispatched, a
    mutation is not cancellable and is never rolled back.
    """
    task = asyncio.ensure_future(write)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        task.add_done_callback(_log_abandoned_write)
        raise


def _log_abandoned_write(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Abandoned write failed: %s: %s", type(exc).__name__, exc)


class ShipmentService:
    def __init__(self, store: ShipmentStore):
        self.store = store

    async def list_shipments(
        self,
        customer_id: str | None = None,
        status: Status | None = None,
        service_type: ServiceType | None = None,
        query: str | None = None,
    ) -> list[Shipment]:
        shipments = await self.store.list_shipments(customer_id=customer_id, status=status)
        return read_models.filter_shipments(shipments, query=query, service_type=service_type)

    async def get_shipment(self, shipment_id: str) -> Shipment:
        return await self.store.get_shipment(shipment_id)

    async def next_states(self, shipment_id: str) -> tuple[Status, list[Status]]:
        shipment = await self.store.get_shipment(shipment_id)
        return shipment.status, allowed_next_states(shipment.status)

    async def create(self, body: CreateShipmentBody) -> Shipment:
        async def write() -> Shipment:
            shipment = await self.store.create_shipment(body)
            await invalidate_read_models()
            return shipment

        shipment = await _dispatch(write())
        shipments_created_total.labels(service_type=shipment.service_type.value).inc()
        logger.info("Created shipment id=%s tracking_id=%s", shipment.id, shipment.tracking_id)
        return shipment

    async def update_status(
        self,
        shipment_id: str,
        target: Status,
        admin_name: str | None = None,
        note: str | None = None,
    ) -> Shipment:
        async def write() -> Shipment:
            updated = await self.store.update_status(shipment_id, target, admin_name=admin_name, note=note)
            await invalidate_read_models()
            return updated

        try:
            updated = await _dispatch(write())
        except InvalidTransitionError as e:
            shipment_transitions_rejected_total.labels(
                current_status=e.current_status or "",
                attempted_status=Status(target).value,
                reason=e.code,
            ).inc()
            logger.warning(
                "Rejected transition shipment_id=%s %s -> %s (%s)",
                shipment_id, e.current_status, Status(target).value, e.code,
            )
            raise

        previous = updated.status_history[-2].status if len(updated.status_history) > 1 else None
        shipment_transitions_total.labels(
            from_status=previous.value if previous else "",
            to_status=updated.status.value,
        ).inc()
        logger.info(
            "Shipment %s transitioned %s -> %s by %s",
            shipment_id, previous.value if previous else None, updated.status.value, admin_name or "-",
        )
        return updated

    async def add_checkpoint(
        self, shipment_id: str, location: Any, description: Any, admin_name: Any = None
    ) -> Checkpoint:
        async def write() -> Checkpoint:
            checkpoint = await self.store.add_checkpoint(shipment_id, location, description, admin_name)
            await invalidate_read_models()
            return checkpoint

        checkpoint = await _dispatch(write())
        shipment_checkpoints_added_total.inc()
        logger.info("Checkpoint added shipment_id=%s location=%s", shipment_id, checkpoint.location)
        return checkpoint

    async def add_note(self, shipment_id: str, text: Any, admin_name: Any = None) -> Note:
        async def write() -> Note:
            note = await self.store.add_note(shipment_id, text, admin_name)
            await invalidate_read_models()
            return note

        note = await _dispatch(write())
        shipment_notes_added_total.inc()
        logger.info("Note added shipment_id=%s", shipment_id)
        return note

    async def update_amount(self, shipment_id: str, amount: Any) -> Shipment:
        async def write() -> Shipment:
            updated = await self.store.update_amount(shipment_id, amount)
            await invalidate_read_models()
            return updated

        updated = await _dispatch(write())
        shipment_amount_updates_total.inc()
        logger.info("Amount updated shipment_id=%s amount=%d", shipment_id, updated.amount)
        return updated

    async def delete(self, shipment_id: str) -> None:
        async def write() -> None:
            await self.store.delete_shipment(shipment_id)
            await invalidate_read_models()

        await _dispatch(write())
        logger.info("Deleted shipment id=%s", shipment_id)

    async def _cached_projection(self, key: str, project: Callable[[list[Shipment]], dict]) -> dict:
        # Generation is read before listing: a write landing in between bumps it,
        # so this projection is stored under a key nobody reads again.
        generation = await read_model_generation()
        if generation is not None:
            cached = await get_cached_json(key, generation)
            if cached is not None:
                return cached
        value = project(await self.store.list_shipments())
        if generation is not None:
            await set_cached_json(key, generation, value)
        return value

    async def dashboard_counts(self) -> dict:
        return await self._cached_projection(
            DASHBOARD_COUNTS_KEY,
            lambda shipments: read_models.dashboard_counts(shipments).to_wire(),
        )

    async def customer_rollup(self) -> dict:
        def project(shipments: list[Shipment]) -> dict:
            rollup = read_models.customer_rollup(shipments)
            return {
                "stats": read_models.customer_stats(rollup).to_wire(),
                "customers": [c.to_wire() for c in rollup],
            }

        return await self._cached_projection(CUSTOMER_ROLLUP_KEY, project)
