"""Appointment management: cancellation and rescheduling.

Each operation runs the state machine first, so invalid transitions are
rejected before any network call, then commits through the store with the
appointment's version token.
"""
import datetime as dt
from typing import Optional

from clinic_booking.logging_config import get_logger
from clinic_booking.models import Appointment, AppointmentStatus
from clinic_booking.state import AppointmentStateMachine
from clinic_booking.store import AppointmentStore

logger = get_logger(__name__)


class AppointmentLifecycle:
    """Commit status transitions of existing appointments."""

    def __init__(
        self,
        store: Optional[AppointmentStore] = None,
        state_machine: Optional[AppointmentStateMachine] = None,
    ):
        self.store = store or AppointmentStore()
        self.state_machine = state_machine or AppointmentStateMachine()

    def cancel(self, appointment: Appointment, reason: Optional[str] = None) -> Appointment:
        """
        Cancel an appointment.

        Raises:
            InvalidTransition: If the appointment is completed or cancelled
            ConcurrentModification: If the appointment changed since it was read
            AppointmentStoreError: If the store call fails
        """
        self.state_machine.cancel(appointment, reason)

        updated = self.store.update_status(
            appointment.id,
            AppointmentStatus.CANCELLED,
            reason=reason,
            version=appointment.version,
        )
        logger.info("appointment_cancelled", id=appointment.id, reason=reason)
        return updated

    def reschedule(self, appointment: Appointment, new_date: dt.date, new_time: str) -> Appointment:
        """
        Move an appointment to a new slot; the result is always PENDING.

        Date, time and status are written in a single store call.

        Raises:
            InvalidTransition: If the appointment is completed or cancelled
            ConcurrentModification: If the appointment changed since it was read
            AppointmentStoreError: If the store call fails
        """
        proposed = self.state_machine.reschedule(appointment, new_date, new_time)

        updated = self.store.reschedule(
            appointment.id,
            proposed.appointment_date,
            new_time,
            version=appointment.version,
        )
        logger.info(
            "appointment_rescheduled",
            id=appointment.id,
            previous_schedule=appointment.schedule.isoformat(),
            schedule=updated.schedule.isoformat(),
        )
        return updated

    def refresh(self, appointment_id: int) -> Appointment:
        """Re-read an appointment, e.g. after a ConcurrentModification."""
        return self.store.get(appointment_id)
