"""Client for the appointment store.

Every call is a single attempt bounded by the client timeout. Failures are
logged and raised as AppointmentStoreError (retryable for timeouts,
connection errors, 5xx and an open circuit). Business rejections from the
store keep their own types: DuplicateBooking, InvalidTransition,
ConcurrentModification, AppointmentNotFound.
"""
import datetime as dt
from typing import Any, Dict, List, Optional

import pydantic
import requests

from clinic_booking.circuit_breaker import CircuitBreakerOpen
from clinic_booking.errors import (
    AppointmentNotFound,
    AppointmentStoreError,
    ConcurrentModification,
    DuplicateBooking,
    InvalidTransition,
)
from clinic_booking.http_client import ApiClient
from clinic_booking.logging_config import get_logger
from clinic_booking.models import Appointment, AppointmentCreateRequest, AppointmentStatus

logger = get_logger(__name__)


class AppointmentStore:
    """create / update_status / reschedule / list / get against the store API."""

    def __init__(self, client: Optional[ApiClient] = None):
        self.client = client or ApiClient(name="appointment-store")

    def create(self, request: AppointmentCreateRequest) -> Appointment:
        """
        Create an appointment.

        The store treats appointment_id as an idempotency key, so re-sending
        the same request after a lost response returns the stored row.
        """
        body = self._send(
            "POST", "/appointments", "create",
            {"appointment_id": request.appointment_id},
            json=request.to_payload(),
        )
        appointment = _parse_appointment(body, "create", {"appointment_id": request.appointment_id})
        logger.info(
            "appointment_created",
            id=appointment.id,
            appointment_id=appointment.appointment_id,
            patient_id=appointment.patient_id,
            clinic_id=appointment.clinic_id,
        )
        return appointment

    def get(self, appointment_id: int) -> Appointment:
        body = self._send("GET", f"/appointments/{appointment_id}", "get", {"id": appointment_id})
        return _parse_appointment(body, "get", {"id": appointment_id})

    def list(
        self,
        patient_id: Optional[str] = None,
        clinic_id: Optional[str] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        """List appointments matching every given filter."""
        params: Dict[str, Any] = {}
        if patient_id is not None:
            params["patient_id"] = patient_id
        if clinic_id is not None:
            params["clinic_id"] = clinic_id
        if status is not None:
            params["status"] = int(status)

        body = self._send("GET", "/appointments", "list", params, params=params)
        rows = body.get("data") or []
        if not isinstance(rows, list):
            logger.error("store_invalid_response", operation="list", **params)
            raise AppointmentStoreError("Invalid response from the appointment service", retryable=False)
        return [_parse_appointment({"data": row}, "list", params) for row in rows]

    def update_status(
        self,
        appointment_id: int,
        status: AppointmentStatus,
        reason: Optional[str] = None,
        version: Optional[int] = None,
    ) -> Appointment:
        payload: Dict[str, Any] = {"status": int(status), "version": version}
        if reason is not None:
            payload["cancellation_reason"] = reason

        body = self._send(
            "PATCH", f"/appointments/{appointment_id}/status", "update_status",
            {"id": appointment_id, "status": int(status)},
            json=payload,
        )
        return _parse_appointment(body, "update_status", {"id": appointment_id})

    def reschedule(
        self,
        appointment_id: int,
        new_date: dt.date,
        new_time: str,
        version: Optional[int] = None,
    ) -> Appointment:
        """
        Move an appointment and reset it to PENDING in one store transaction.

        Args:
            appointment_id: Store id
            new_date: New appointment date
            new_time: New start time, HH:MM
            version: Version token read with the appointment; a mismatch
                     fails with ConcurrentModification
        """
        payload = {
            "appointment_date": new_date.isoformat(),
            "schedule": f"{new_date.isoformat()}T{new_time}:00",
            "version": version,
        }
        body = self._send(
            "PATCH", f"/appointments/{appointment_id}/reschedule", "reschedule",
            {"id": appointment_id, "new_date": payload["appointment_date"], "new_time": new_time},
            json=payload,
        )
        return _parse_appointment(body, "reschedule", {"id": appointment_id})

    def _send(self, method: str, path: str, operation: str, context: Dict[str, Any], **kwargs) -> Dict[str, Any]:
        try:
            response = self.client.request(method, path, **kwargs)
        except CircuitBreakerOpen as e:
            logger.warning("store_circuit_open", operation=operation, **context)
            raise AppointmentStoreError(str(e), retryable=True) from e
        except requests.exceptions.HTTPError as e:
            error = _translate_http_error(e)
            logger.error("store_request_rejected", operation=operation, error=str(error), **context)
            raise error from e
        except requests.exceptions.Timeout as e:
            logger.error("store_request_timeout", operation=operation, **context)
            raise AppointmentStoreError(
                "The appointment service took too long to respond. Please try again.",
                retryable=True,
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error("store_request_failed", operation=operation, error=str(e), **context)
            raise AppointmentStoreError(
                "Could not connect to the appointment service. Please try again.",
                retryable=True,
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            logger.error("store_invalid_response", operation=operation, **context)
            raise AppointmentStoreError("Invalid response from the appointment service") from e

        if not isinstance(body, dict):
            logger.error("store_invalid_response", operation=operation, **context)
            raise AppointmentStoreError("Invalid response from the appointment service", retryable=False)

        if not body.get("success", True):
            message = body.get("message") or "Appointment service returned an unsuccessful response"
            logger.error("store_unsuccessful_response", operation=operation, message=message, **context)
            raise AppointmentStoreError(message, retryable=False)

        return body


def _parse_appointment(body: Dict[str, Any], operation: str, context: Dict[str, Any]) -> Appointment:
    """Validate the appointment in a success envelope."""
    try:
        return Appointment.model_validate(body["data"])
    except (KeyError, pydantic.ValidationError) as e:
        logger.error("store_invalid_appointment", operation=operation, error=str(e), **context)
        raise AppointmentStoreError(
            "Invalid appointment data from the appointment service",
            retryable=False,
        ) from e


def _response_json(response) -> Dict[str, Any]:
    if response is None:
        return {}
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _translate_http_error(exc: requests.exceptions.HTTPError) -> Exception:
    """Map a non-2xx store response to the matching booking error."""
    response = exc.response
    status_code = response.status_code if response is not None else None
    body = _response_json(response)
    message = body.get("message") or str(exc)
    code = body.get("code")

    if status_code == 404:
        return AppointmentNotFound(message)
    if status_code == 409:
        if code == "VERSION_CONFLICT":
            return ConcurrentModification(message)
        if code == "INVALID_TRANSITION":
            return InvalidTransition(message, code=body.get("transition_code") or "InvalidTransition")
        if code == "DUPLICATE_PENDING":
            return DuplicateBooking(message)
    if status_code is not None and status_code >= 500:
        return AppointmentStoreError(message, status_code=status_code, retryable=True)
    return AppointmentStoreError(message, status_code=status_code, retryable=False)
