"""Duplicate booking guard."""
from typing import Optional

from clinic_booking.errors import AppointmentStoreError
from clinic_booking.logging_config import get_logger
from clinic_booking.models import AppointmentStatus

logger = get_logger(__name__)


class DuplicateBookingGuard:
    """Advisory check for an existing pending appointment at a clinic.

    The check is only as good as the fetch behind it: if the store cannot be
    read the guard lets the booking through. The store's own uniqueness
    constraint is the authoritative check.
    """

    def __init__(self, store):
        self.store = store

    def check_existing(self, patient_id: str, clinic_id: str, exclude_token: Optional[str] = None) -> bool:
        """
        True iff the patient has a PENDING appointment at clinic_id.

        Args:
            patient_id: Patient whose appointments are fetched
            clinic_id: Clinic to match
            exclude_token: appointment_id of a create being retried; the row it
                           may already have stored is not a duplicate of itself
        """
        try:
            appointments = self.store.list(patient_id=patient_id)
        except AppointmentStoreError as e:
            logger.warning(
                "duplicate_check_skipped",
                patient_id=patient_id,
                clinic_id=clinic_id,
                error=str(e),
            )
            return False

        return any(
            str(appointment.clinic_id) == str(clinic_id)
            and appointment.status == AppointmentStatus.PENDING
            and (exclude_token is None or appointment.appointment_id != exclude_token)
            for appointment in appointments
        )
