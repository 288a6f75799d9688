"""
Async client for the shipments REST API.

Successful bodies may arrive wrapped as {success, data}; the client unwraps `data`.
Failures are raised as the typed errors in shiptrack.errors. There are no retries:
each call is a single attempt.
"""
import logging
from typing import Any

import httpx

from shiptrack.config import settings
from shiptrack.errors import (
    InvalidTransitionError,
    NotFoundError,
    SameStatusError,
    ShipmentError,
    TransportError,
    ValidationError,
)
from shiptrack.models import Checkpoint, Note, Shipment
from shiptrack.shipment_state import Status

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Something went wrong"


def unwrap_envelope(payload: Any) -> Any:
    """Return payload["data"] for {success, data} envelopes, the payload itself otherwise."""
    if isinstance(payload, dict) and "success" in payload and "data" in payload:
        return payload["data"]
    return payload


def get_api_error_message(payload: Any, error: Exception | None = None) -> str:
    """
    Pick the human-readable message of an error response, in priority order:
    `message` string, first element of a `message` array, `error` string,
    the transport error's own text, then a generic fallback.
    """
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message
        if isinstance(message, list) and message:
            return str(message[0])
        err = payload.get("error")
        if isinstance(err, str) and err.strip():
            return err
    if error is not None and str(error).strip():
        return str(error)
    return DEFAULT_ERROR_MESSAGE


def _error_for(response: httpx.Response) -> ShipmentError:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    message = get_api_error_message(payload)
    code = payload.get("error") if isinstance(payload, dict) else None

    if response.status_code == 404:
        err: ShipmentError = NotFoundError("Shipment", str(response.request.url.path))
    elif response.status_code == 409:
        err = SameStatusError() if code == "SameStatus" else InvalidTransitionError()
    elif response.status_code in (400, 422):
        field = payload.get("field", "") if isinstance(payload, dict) else ""
        err = ValidationError(field, message)
    elif response.status_code >= 500:
        return TransportError(DEFAULT_ERROR_MESSAGE)
    else:
        err = ShipmentError(message)
    err.message = message
    err.args = (message,)
    return err


class ShipmentsApi:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout if timeout is not None else settings.api_timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "ShipmentsApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Request %s %s failed: %s", method, path, e)
            raise TransportError(get_api_error_message(None, e)) from e
        if response.is_error:
            raise _error_for(response)
        try:
            payload = response.json()
        except ValueError as e:
            logger.warning("Request %s %s returned a non-JSON body (%d)", method, path, response.status_code)
            raise TransportError(DEFAULT_ERROR_MESSAGE) from e
        return unwrap_envelope(payload)

    async def list_shipments(self, customer_id: str | None = None, status: Status | None = None) -> list[Shipment]:
        params = {}
        if customer_id:
            params["customerId"] = customer_id
        if status:
            params["status"] = Status(status).value
        data = await self._request("GET", "/shipments", params=params)
        return [Shipment.model_validate(s) for s in data]

    async def get_by_id(self, shipment_id: str) -> Shipment:
        return Shipment.model_validate(await self._request("GET", f"/shipments/{shipment_id}"))

    async def update_status(
        self,
        shipment_id: str,
        status: Status,
        note: str | None = None,
        admin_name: str | None = None,
    ) -> Shipment:
        body: dict[str, Any] = {"status": Status(status).value}
        if note is not None:
            body["note"] = note
        if admin_name is not None:
            body["adminName"] = admin_name
        data = await self._request("PATCH", f"/shipments/{shipment_id}/status", json=body)
        return Shipment.model_validate(data)

    async def add_checkpoint(
        self,
        shipment_id: str,
        location: str,
        description: str,
        admin_name: str | None = None,
    ) -> Checkpoint:
        body: dict[str, Any] = {"location": location, "description": description}
        if admin_name is not None:
            body["adminName"] = admin_name
        data = await self._request("POST", f"/shipments/{shipment_id}/checkpoints", json=body)
        return Checkpoint.model_validate(data)

    async def add_note(self, shipment_id: str, text: str, admin_name: str | None = None) -> Note:
        body: dict[str, Any] = {"text": text}
        if admin_name is not None:
            body["adminName"] = admin_name
        data = await self._request("POST", f"/shipments/{shipment_id}/notes", json=body)
        return Note.model_validate(data)

    async def update_amount(self, shipment_id: str, amount: int) -> Shipment:
        data = await self._request("PATCH", f"/shipments/{shipment_id}/amount", json={"amount": amount})
        return Shipment.model_validate(data)

    async def remove(self, shipment_id: str) -> dict:
        return await self._request("DELETE", f"/shipments/{shipment_id}")
