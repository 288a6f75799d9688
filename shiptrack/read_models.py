"""
Dashboard projections over a shipment collection. Pure and recomputed on demand;
the optional Redis cache in redis_client is invalidated by every write.
"""
from shiptrack.models import CustomerStats, CustomerSummary, DashboardCounts, Shipment
from shiptrack.shipment_state import ServiceType, Status, is_active


def customer_key(shipment: Shipment) -> str:
    """Lower-cased email, falling back to the customer name, then the customer id."""
    customer = shipment.customer
    email = customer.email if customer else None
    name = customer.name if customer else None
    return (email or name or shipment.customer_id).lower()


def customer_rollup(shipments: list[Shipment]) -> list[CustomerSummary]:
    """
    Group shipments per customer. The latest createdAt fills the last-shipment slot;
    on equal timestamps the later shipment in input order wins. Sorted by last
    created, newest first.
    """
    by_key: dict[str, CustomerSummary] = {}
    for s in shipments:
        key = customer_key(s)
        active = 1 if is_active(s.status) else 0
        existing = by_key.get(key)
        if existing is None:
            by_key[key] = CustomerSummary(
                key=key,
                name=s.customer.name if s.customer else None,
                email=s.customer.email if s.customer else None,
                phone=s.customer.phone if s.customer else None,
                total_shipments=1,
                active_shipments=active,
                last_shipment_id=s.id,
                last_shipment_status=s.status,
                last_shipment_created=s.created_at,
            )
            continue

        existing.total_shipments += 1
        existing.active_shipments += active
        if s.created_at >= existing.last_shipment_created:
            existing.last_shipment_id = s.id
            existing.last_shipment_status = s.status
            existing.last_shipment_created = s.created_at

    return sorted(by_key.values(), key=lambda c: c.last_shipment_created, reverse=True)


def customer_stats(rollup: list[CustomerSummary]) -> CustomerStats:
    return CustomerStats(
        total=len(rollup),
        active=sum(1 for c in rollup if c.active_shipments > 0),
        delivered=sum(1 for c in rollup if c.last_shipment_status == Status.DELIVERED),
    )


def dashboard_counts(shipments: list[Shipment]) -> DashboardCounts:
    by_status = {status: 0 for status in Status}
    total = 0
    for s in shipments:
        total += 1
        by_status[s.status] += 1
    return DashboardCounts(total=total, by_status=by_status)


def filter_shipments(
    shipments: list[Shipment],
    query: str | None = None,
    status: Status | None = None,
    service_type: ServiceType | None = None,
    customer_id: str | None = None,
) -> list[Shipment]:
    """Case-insensitive search over tracking id, customer name, email and phone."""
    q = (query or "").strip().lower()

    def matches(s: Shipment) -> bool:
        if status is not None and s.status != status:
            return False
        if service_type is not None and s.service_type != service_type:
            return False
        if customer_id is not None and s.customer_id != customer_id:
            return False
        if not q:
            return True
        fields = [s.tracking_id, s.phone]
        if s.customer:
            fields += [s.customer.name or "", s.customer.email]
        return any(q in f.lower() for f in fields)

    return [s for s in shipments if matches(s)]
