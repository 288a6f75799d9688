"""
Shipment lifecycle state machine. The transition table is the single source of truth
for legal moves; the validator, the API and any UI listing next states all read it.
"""
from enum import Enum

from shiptrack.errors import InvalidTransitionError, SameStatusError


class Status(str, Enum):
    PENDING = "PENDING"
    QUOTED = "QUOTED"
    ACCEPTED = "ACCEPTED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class ServiceType(str, Enum):
    ROAD = "ROAD"
    AIR = "AIR"
    SEA = "SEA"
    DOOR_TO_DOOR = "DOOR_TO_DOOR"


INITIAL_STATUS = Status.PENDING

# Current status -> allowed next statuses
VALID_TRANSITIONS: dict[Status, tuple[Status, ...]] = {
    Status.PENDING: (Status.QUOTED, Status.CANCELLED),
    Status.QUOTED: (Status.ACCEPTED, Status.CANCELLED),
    Status.ACCEPTED: (Status.PICKED_UP, Status.CANCELLED),
    Status.PICKED_UP: (Status.IN_TRANSIT, Status.CANCELLED),
    Status.IN_TRANSIT: (Status.DELIVERED,),
    Status.DELIVERED: (),  # terminal
    Status.CANCELLED: (),  # terminal
}

TERMINAL_STATUSES = frozenset(s for s, nxt in VALID_TRANSITIONS.items() if not nxt)


def allowed_next_states(current: Status) -> list[Status]:
    return list(VALID_TRANSITIONS.get(Status(current), ()))


def is_valid_transition(current: Status, target: Status) -> bool:
    """True if target is directly reachable from current."""
    return Status(target) in VALID_TRANSITIONS.get(Status(current), ())


def is_terminal(status: Status) -> bool:
    return Status(status) in TERMINAL_STATUSES


def is_active(status: Status) -> bool:
    return not is_terminal(status)


def check_transition(current: Status, target: Status) -> None:
    """
    Raise SameStatusError if target == current, InvalidTransitionError if target is not
    a direct successor of current. Pure: no path search, no side effects.
    """
    current = Status(current)
    target = Status(target)
    if target == current:
        raise SameStatusError(current.value)
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(current_status=current.value, target_status=target.value)
