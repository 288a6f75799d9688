import json

import pytest

from shiptrack.errors import InvalidTransitionError, SameStatusError
from shiptrack.shipment_state import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    ServiceType,
    Status,
    allowed_next_states,
    check_transition,
    is_active,
    is_terminal,
    is_valid_transition,
)

ALL_PAIRS = [(c, t) for c in Status for t in Status if c != t]


def test_table_covers_every_status():
    assert set(VALID_TRANSITIONS) == set(Status)


@pytest.mark.parametrize("current,target", ALL_PAIRS)
def test_check_transition_matches_table(current, target):
    if target in VALID_TRANSITIONS[current]:
        check_transition(current, target)
        assert is_valid_transition(current, target)
    else:
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition(current, target)
        assert not isinstance(exc_info.value, SameStatusError)
        assert exc_info.value.code == "InvalidTransition"
        assert exc_info.value.current_status == current.value
        assert exc_info.value.target_status == target.value


@pytest.mark.parametrize("status", list(Status))
def test_same_status_rejected(status):
    with pytest.raises(SameStatusError) as exc_info:
        check_transition(status, status)
    assert exc_info.value.code == "SameStatus"


@pytest.mark.parametrize("terminal", [Status.DELIVERED, Status.CANCELLED])
def test_terminal_statuses_have_no_outgoing_transitions(terminal):
    assert allowed_next_states(terminal) == []
    assert is_terminal(terminal)
    assert not is_active(terminal)
    for target in Status:
        with pytest.raises(InvalidTransitionError):
            check_transition(terminal, target)


def test_terminal_set():
    assert TERMINAL_STATUSES == {Status.DELIVERED, Status.CANCELLED}


def test_no_multi_hop():
    # PENDING -> ACCEPTED skips QUOTED
    with pytest.raises(InvalidTransitionError):
        check_transition(Status.PENDING, Status.ACCEPTED)
    with pytest.raises(InvalidTransitionError):
        check_transition(Status.QUOTED, Status.PICKED_UP)


def test_in_transit_cannot_be_cancelled():
    assert allowed_next_states(Status.IN_TRANSIT) == [Status.DELIVERED]


def test_allowed_next_states_order():
    assert allowed_next_states(Status.PENDING) == [Status.QUOTED, Status.CANCELLED]


def test_accepts_wire_tokens():
    assert is_valid_transition("PICKED_UP", "IN_TRANSIT")
    with pytest.raises(ValueError):
        check_transition("PENDING", "LOST")


def test_enum_tokens_round_trip():
    for status in Status:
        assert Status(json.loads(json.dumps(status.value))) is status
    assert ServiceType("DOOR_TO_DOOR").value == "DOOR_TO_DOOR"
    assert json.dumps(Status.IN_TRANSIT) == '"IN_TRANSIT"'
