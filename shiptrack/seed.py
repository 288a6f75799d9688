"""
Load demo customers and shipments into the configured store.
Run: python -m shiptrack.seed
"""
import asyncio
import logging
import sys

from shiptrack.models import CreateShipmentBody, CustomerPublic, Shipment
from shiptrack.shipment_state import ServiceType, Status
from shiptrack.store import ShipmentStore, close_store, get_store

logger = logging.getLogger(__name__)

DEMO_CUSTOMERS = [
    CustomerPublic(id="cust-ada", name="Ada Okafor", email="ada@example.com", phone="+2348010000001"),
    CustomerPublic(id="cust-bayo", name="Bayo Adeyemi", email="bayo@example.com", phone="+2348010000002"),
    CustomerPublic(id="cust-chi", name=None, email="chi@example.com", phone=None),
]

# (customer id, service type, pickup, destination, path of statuses after PENDING)
DEMO_SHIPMENTS = [
    ("cust-ada", ServiceType.ROAD, "Ikeja, Lagos", "Wuse, Abuja", []),
    ("cust-ada", ServiceType.AIR, "Lekki, Lagos", "GRA, Port Harcourt",
     [Status.QUOTED, Status.ACCEPTED, Status.PICKED_UP, Status.IN_TRANSIT]),
    ("cust-bayo", ServiceType.DOOR_TO_DOOR, "Bodija, Ibadan", "Yaba, Lagos",
     [Status.QUOTED, Status.ACCEPTED, Status.PICKED_UP, Status.IN_TRANSIT, Status.DELIVERED]),
    ("cust-chi", ServiceType.SEA, "Apapa, Lagos", "Onne, Rivers", [Status.QUOTED, Status.CANCELLED]),
]


async def seed(store: ShipmentStore) -> list[Shipment]:
    for customer in DEMO_CUSTOMERS:
        await store.upsert_customer(customer)

    created = []
    for customer_id, service_type, pickup, destination, path in DEMO_SHIPMENTS:
        shipment = await store.create_shipment(CreateShipmentBody(
            customer_id=customer_id,
            service_type=service_type,
            pickup_location=pickup,
            destination_location=destination,
            package_type="Carton",
            weight="12kg",
            dimensions="40x30x30cm",
            phone="+2348020000000",
            amount=25000,
        ))
        for status in path:
            shipment = await store.update_status(shipment.id, status, admin_name="seed")
            if status == Status.IN_TRANSIT:
                await store.add_checkpoint(shipment.id, pickup, "Departed origin hub", admin_name="seed")
                shipment = await store.get_shipment(shipment.id)
        created.append(shipment)
        logger.info("Seeded %s (%s, %s)", shipment.tracking_id, shipment.service_type.value, shipment.status.value)
    return created


async def main() -> None:
    store = await get_store()
    try:
        shipments = await seed(store)
        logger.info("Seeded %d customers, %d shipments", len(DEMO_CUSTOMERS), len(shipments))
    finally:
        await close_store()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stdout,
    )
    asyncio.run(main())
