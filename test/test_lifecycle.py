from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from _helper import CUSTOMER, make_body
from shiptrack import lifecycle
from shiptrack.errors import InvalidTransitionError, SameStatusError, ValidationError
from shiptrack.shipment_state import Status

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def shipment():
    return lifecycle.new_shipment(make_body(), CUSTOMER, now=T0)


def test_new_shipment_seeds_history(shipment):
    assert shipment.status == Status.PENDING
    assert len(shipment.status_history) == 1
    assert shipment.status_history[0].status == Status.PENDING
    assert shipment.status_history[0].shipment_id == shipment.id
    assert shipment.tracking_id.startswith("TRK")
    assert len(shipment.tracking_id) == 13
    assert shipment.amount == 0
    assert shipment.created_at == shipment.updated_at == T0


def test_new_shipment_keeps_given_tracking_id():
    shipment = lifecycle.new_shipment(make_body(tracking_id=" TRK-CUSTOM "), CUSTOMER)
    assert shipment.tracking_id == "TRK-CUSTOM"


def test_new_shipment_rejects_bad_amount():
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.new_shipment(make_body(amount=-5), CUSTOMER)
    assert exc_info.value.field == "amount"


def test_transition_appends_exactly_one_history_item(shipment):
    t1 = T0 + timedelta(hours=1)
    updated, item = lifecycle.apply_transition(
        shipment, Status.QUOTED, admin_name="  Tunde ", note="Quote sent", now=t1
    )
    assert len(updated.status_history) == len(shipment.status_history) + 1
    assert updated.status_history[-1] == item
    assert item.status == updated.status == Status.QUOTED
    assert item.admin_name == "Tunde"
    assert item.note == "Quote sent"
    assert item.timestamp == t1
    assert updated.updated_at == t1


def test_transition_touches_only_status_history_and_updated_at(shipment):
    updated, _ = lifecycle.apply_transition(shipment, Status.CANCELLED)
    before = shipment.model_dump(exclude={"status", "status_history", "updated_at"})
    after = updated.model_dump(exclude={"status", "status_history", "updated_at"})
    assert before == after


def test_transition_does_not_mutate_input(shipment):
    lifecycle.apply_transition(shipment, Status.QUOTED)
    assert shipment.status == Status.PENDING
    assert len(shipment.status_history) == 1


def test_invalid_transition_produces_no_history(shipment):
    with pytest.raises(InvalidTransitionError):
        lifecycle.apply_transition(shipment, Status.DELIVERED)
    with pytest.raises(SameStatusError):
        lifecycle.apply_transition(shipment, Status.PENDING)
    assert len(shipment.status_history) == 1


def test_blank_actor_and_note_become_none(shipment):
    _, item = lifecycle.apply_transition(shipment, Status.QUOTED, admin_name="   ", note="")
    assert item.admin_name is None
    assert item.note is None


def test_overlong_note_rejected(shipment):
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.apply_transition(shipment, Status.QUOTED, note="x" * 1001)
    assert exc_info.value.field == "note"


def test_overlong_admin_name_rejected(shipment):
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.apply_transition(shipment, Status.QUOTED, admin_name="a" * 101)
    assert exc_info.value.field == "adminName"


def test_checkpoint_append_leaves_status_alone(shipment):
    checkpoint = lifecycle.build_checkpoint(shipment.id, " Lagos Hub ", "Sorted for final leg", "Ngozi")
    updated = lifecycle.append_checkpoint(shipment, checkpoint)
    assert checkpoint.location == "Lagos Hub"
    assert updated.checkpoints == [checkpoint]
    assert updated.status == shipment.status
    assert updated.status_history == shipment.status_history
    assert updated.notes == shipment.notes


@pytest.mark.parametrize("location,description,field", [
    ("", "Sorted", "location"),
    ("   ", "Sorted", "location"),
    ("Lagos Hub", "\t\n", "description"),
    (None, "Sorted", "location"),
])
def test_checkpoint_requires_fields(shipment, location, description, field):
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.build_checkpoint(shipment.id, location, description)
    assert exc_info.value.field == field


def test_notes_append_in_call_order(shipment):
    first = lifecycle.build_note(shipment.id, "Customer called")
    second = lifecycle.build_note(shipment.id, "Customer called")
    updated = lifecycle.append_note(lifecycle.append_note(shipment, first), second)
    assert [n.id for n in updated.notes] == [first.id, second.id]
    assert updated.status_history == shipment.status_history


def test_note_requires_text(shipment):
    with pytest.raises(ValidationError):
        lifecycle.build_note(shipment.id, "   ")


def test_records_are_immutable(shipment):
    note = lifecycle.build_note(shipment.id, "hello")
    with pytest.raises(PydanticValidationError):
        note.text = "changed"


@pytest.mark.parametrize("value", [-1, 3.5, float("nan"), float("inf"), 2.0, True, "10", None, 2**63, 10**19])
def test_amount_rejects(value):
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.validate_amount(value)
    assert exc_info.value.field == "amount"


@pytest.mark.parametrize("value", [0, 1, 250000, 10**12, 2**63 - 1])
def test_amount_accepts(value):
    assert lifecycle.validate_amount(value) == value


def test_amount_update_changes_only_amount_and_updated_at(shipment):
    t1 = T0 + timedelta(days=1)
    updated = lifecycle.apply_amount(shipment, 42000, now=t1)
    assert updated.amount == 42000
    assert updated.updated_at == t1
    assert updated.model_dump(exclude={"amount", "updated_at"}) == shipment.model_dump(
        exclude={"amount", "updated_at"}
    )
