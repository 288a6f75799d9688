"""
Typed failures of the shipment service. Each carries a stable code (sent as `error`
in the response envelope) and the HTTP status it maps to.
"""


class ShipmentError(Exception):
    code = "ShipmentError"
    http_status = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ShipmentError):
    """Referenced shipment or customer id has no matching record."""
    code = "NotFound"
    http_status = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class InvalidTransitionError(ShipmentError):
    """Target status is not reachable from the current status."""
    code = "InvalidTransition"
    http_status = 409

    def __init__(self, current_status: str | None = None, target_status: str | None = None):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(f"Invalid status transition: {current_status} -> {target_status}")


class SameStatusError(InvalidTransitionError):
    """Target status equals the current status."""
    code = "SameStatus"

    def __init__(self, status: str | None = None):
        super().__init__(status, status)
        self.message = f"Shipment is already {status}"
        self.args = (self.message,)


class ValidationError(ShipmentError):
    """A single malformed field. `field` uses the wire (camelCase) name."""
    code = "ValidationError"
    http_status = 422

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class TransportError(ShipmentError):
    """The remote collaborator was unreachable or answered with a non-application error."""
    code = "TransportError"
    http_status = 502
