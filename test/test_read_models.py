from datetime import datetime, timedelta, timezone

from _helper import make_body
from shiptrack import lifecycle
from shiptrack.models import CustomerPublic
from shiptrack.read_models import (
    customer_key,
    customer_rollup,
    customer_stats,
    dashboard_counts,
    filter_shipments,
)
from shiptrack.shipment_state import ServiceType, Status

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def shipment_for(customer: CustomerPublic, status=Status.PENDING, created=T0, **overrides):
    s = lifecycle.new_shipment(make_body(customer_id=customer.id, **overrides), customer, now=created)
    return s.model_copy(update={"status": status})


ADA = CustomerPublic(id="c1", name="Ada", email="ada@example.com")
ADA_UPPER = CustomerPublic(id="c1b", name="Ada O.", email="ADA@Example.COM")
BAYO = CustomerPublic(id="c2", name="Bayo", email="bayo@example.com", phone="+234800")


def test_customer_key_is_case_insensitive():
    assert customer_key(shipment_for(ADA)) == customer_key(shipment_for(ADA_UPPER))


def test_customer_key_falls_back_to_name():
    nameless = CustomerPublic(id="c3", name="Chi", email="")
    assert customer_key(shipment_for(nameless)) == "chi"


def test_rollup_counts_total_and_active():
    shipments = [
        shipment_for(ADA, Status.PENDING, T0),
        shipment_for(ADA_UPPER, Status.DELIVERED, T0 + timedelta(days=1)),
        shipment_for(ADA, Status.IN_TRANSIT, T0 + timedelta(days=2)),
        shipment_for(ADA, Status.CANCELLED, T0 + timedelta(days=3)),
        shipment_for(BAYO, Status.QUOTED, T0),
    ]
    rollup = {c.key: c for c in customer_rollup(shipments)}
    ada = rollup["ada@example.com"]
    assert ada.total_shipments == 4
    assert ada.active_shipments == 2
    assert ada.last_shipment_id == shipments[3].id
    assert ada.last_shipment_status == Status.CANCELLED
    assert rollup["bayo@example.com"].total_shipments == 1


def test_rollup_ties_go_to_later_input():
    first = shipment_for(ADA, Status.PENDING, T0)
    second = shipment_for(ADA, Status.QUOTED, T0)
    (summary,) = customer_rollup([first, second])
    assert summary.last_shipment_id == second.id
    (summary,) = customer_rollup([second, first])
    assert summary.last_shipment_id == first.id


def test_rollup_sorted_newest_first():
    rollup = customer_rollup([
        shipment_for(ADA, created=T0),
        shipment_for(BAYO, created=T0 + timedelta(hours=1)),
    ])
    assert [c.key for c in rollup] == ["bayo@example.com", "ada@example.com"]


def test_customer_stats():
    rollup = customer_rollup([
        shipment_for(ADA, Status.DELIVERED),
        shipment_for(BAYO, Status.IN_TRANSIT),
    ])
    stats = customer_stats(rollup)
    assert (stats.total, stats.active, stats.delivered) == (2, 1, 1)


def test_dashboard_counts_includes_every_status():
    counts = dashboard_counts([
        shipment_for(ADA, Status.PENDING),
        shipment_for(ADA, Status.PENDING),
        shipment_for(BAYO, Status.DELIVERED),
    ])
    assert counts.total == 3
    assert counts.by_status[Status.PENDING] == 2
    assert counts.by_status[Status.DELIVERED] == 1
    assert counts.by_status[Status.IN_TRANSIT] == 0
    assert set(counts.by_status) == set(Status)
    assert counts.to_wire()["byStatus"]["IN_TRANSIT"] == 0


def test_dashboard_counts_empty():
    counts = dashboard_counts([])
    assert counts.total == 0
    assert sum(counts.by_status.values()) == 0


def test_filter_search_and_exact_filters():
    a = shipment_for(ADA, Status.PENDING)
    b = shipment_for(BAYO, Status.IN_TRANSIT, service_type=ServiceType.AIR)
    shipments = [a, b]
    assert filter_shipments(shipments, query="BAYO") == [b]
    assert filter_shipments(shipments, query=a.tracking_id.lower()) == [a]
    assert filter_shipments(shipments, status=Status.PENDING) == [a]
    assert filter_shipments(shipments, service_type=ServiceType.AIR) == [b]
    assert filter_shipments(shipments, customer_id="c1") == [a]
    assert filter_shipments(shipments, query="  ") == shipments
    assert filter_shipments(shipments, query="bayo", status=Status.PENDING) == []
