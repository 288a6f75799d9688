"""
Shared fixtures: an in-process store seeded with one customer, and a TestClient whose
service dependency is bound to that store.
"""
import pytest
from fastapi.testclient import TestClient

from _helper import CUSTOMER
from shiptrack.main import app
from shiptrack.routes.envelope import get_service
from shiptrack.service import ShipmentService
from shiptrack.store import MemoryShipmentStore


@pytest.fixture
def store() -> MemoryShipmentStore:
    s = MemoryShipmentStore()
    s._customers[CUSTOMER.id] = CUSTOMER
    return s


@pytest.fixture
def client(store):
    app.dependency_overrides[get_service] = lambda: ShipmentService(store)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def create_payload() -> dict:
    return {
        "customerId": CUSTOMER.id,
        "serviceType": "DOOR_TO_DOOR",
        "pickupLocation": "Lekki, Lagos",
        "destinationLocation": "GRA, Port Harcourt",
        "packageType": "Envelope",
        "weight": "1kg",
        "dimensions": "30x20x2cm",
        "phone": "+2348030000000",
        "receiverPhone": "+2348040000000",
        "amount": 15000,
    }
