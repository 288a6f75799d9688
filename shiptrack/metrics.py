"""
Prometheus metrics: accepted/rejected status transitions, child-record appends, pricing updates.
"""
from prometheus_client import Counter, generate_latest

shipments_created_total = Counter(
    "shipments_created_total",
    "Total shipments created",
    ["service_type"],
)
shipment_transitions_total = Counter(
    "shipment_transitions_total",
    "Total accepted shipment status transitions",
    ["from_status", "to_status"],
)
shipment_transitions_rejected_total = Counter(
    "shipment_transitions_rejected_total",
    "Total status transitions rejected by the lifecycle state machine",
    ["current_status", "attempted_status", "reason"],
)
shipment_checkpoints_added_total = Counter(
    "shipment_checkpoints_added_total",
    "Total checkpoints appended to shipments",
)
shipment_notes_added_total = Counter(
    "shipment_notes_added_total",
    "Total internal notes appended to shipments",
)
shipment_amount_updates_total = Counter(
    "shipment_amount_updates_total",
    "Total shipment price updates",
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
