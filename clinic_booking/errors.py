"""Exceptions raised by the booking core.

Local failures (ValidationError, InvalidTransition, SubmissionInFlight) are
raised before any network call. AppointmentStoreError and DirectoryError wrap
failures of the external collaborators.
"""
from typing import Iterable, Optional


class BookingError(Exception):
    """Base exception for booking operations."""


class ValidationError(BookingError):
    """Raised when required booking fields are missing or invalid."""

    def __init__(self, message: str, missing_fields: Iterable[str] = ()):
        super().__init__(message)
        self.missing_fields = list(missing_fields)


class InvalidTransition(BookingError):
    """Raised when a status transition is not allowed from the current status."""

    def __init__(self, message: str, code: str, status=None):
        super().__init__(message)
        self.code = code
        self.status = status


class DuplicateBooking(BookingError):
    """Raised when the patient already has a pending appointment at the clinic."""


class SubmissionInFlight(BookingError):
    """Raised when submit() is called while a previous submission is running."""


class DirectoryError(BookingError):
    """Raised when the doctor directory cannot be read."""


class AppointmentStoreError(BookingError):
    """Raised when the appointment store call fails.

    retryable tells the caller whether re-issuing the same request may succeed.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class AppointmentNotFound(AppointmentStoreError):
    """Raised when an appointment cannot be located."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404, retryable=False)


class ConcurrentModification(AppointmentStoreError):
    """Raised when the appointment changed since it was read (stale version)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409, retryable=False)
