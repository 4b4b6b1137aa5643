"""Appointment status state machine.

Statuses:
- PENDING (0): booked by the patient, awaiting confirmation
- SCHEDULED (1): confirmed by clinic staff (set outside this core)
- COMPLETED (2): terminal
- CANCELLED (3): terminal

Rescheduling is modelled as a transition back to PENDING from either live
status. Operations are pre-flight checks: they return the appointment as it
should look after the transition and never touch the store.
"""
import datetime as dt
from typing import Dict, List, Optional, Tuple

from clinic_booking.errors import InvalidTransition
from clinic_booking.models import Appointment, AppointmentStatus


# State machine transition map
# Pattern: Current status -> [allowed next statuses]
VALID_TRANSITIONS: Dict[AppointmentStatus, List[AppointmentStatus]] = {
    AppointmentStatus.PENDING: [
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.PENDING,  # Reschedule
    ],
    AppointmentStatus.SCHEDULED: [
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.PENDING,  # Reschedule
    ],
    AppointmentStatus.COMPLETED: [],
    AppointmentStatus.CANCELLED: [],
}

# Code and user-facing message for a rejected transition, by current status
_TERMINAL_REJECTIONS = {
    AppointmentStatus.CANCELLED: ("AlreadyCancelled", "This appointment has already been cancelled."),
    AppointmentStatus.COMPLETED: ("AlreadyCompleted", "This appointment has already been completed."),
}


def rejection_for(current: AppointmentStatus, action: str) -> Tuple[str, str]:
    """Code and user-facing message for refusing action on an appointment in current."""
    return _TERMINAL_REJECTIONS.get(
        current,
        ("InvalidTransition", f"Cannot {action} an appointment that is {current.label}."),
    )


def validate_transition(current: AppointmentStatus, intended: AppointmentStatus) -> bool:
    """
    Validate status transition.

    Example:
        >>> validate_transition(AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)
        False
    """
    return intended in VALID_TRANSITIONS.get(current, [])


class AppointmentStateMachine:
    """Transition rules for a single appointment."""

    def can_cancel(self, appointment: Appointment) -> bool:
        return validate_transition(appointment.status, AppointmentStatus.CANCELLED)

    def can_reschedule(self, appointment: Appointment) -> bool:
        return validate_transition(appointment.status, AppointmentStatus.PENDING)

    def ensure_can_cancel(self, appointment: Appointment) -> None:
        if not self.can_cancel(appointment):
            self._reject(appointment, "cancel")

    def ensure_can_reschedule(self, appointment: Appointment) -> None:
        if not self.can_reschedule(appointment):
            self._reject(appointment, "reschedule")

    def cancel(self, appointment: Appointment, reason: Optional[str] = None) -> Appointment:
        """
        Cancel a pending or scheduled appointment.

        Args:
            appointment: Current appointment
            reason: Optional cancellation reason

        Returns:
            Copy with status CANCELLED and the reason recorded

        Raises:
            InvalidTransition: If the appointment is completed or already cancelled
        """
        self.ensure_can_cancel(appointment)
        return appointment.model_copy(update={
            "status": AppointmentStatus.CANCELLED,
            "cancellation_reason": reason,
        })

    def reschedule(self, appointment: Appointment, new_date: dt.date, new_time: str) -> Appointment:
        """
        Move a pending or scheduled appointment to a new date and time.

        The result is always PENDING: a moved appointment has to be
        confirmed again.

        Args:
            appointment: Current appointment
            new_date: New appointment date
            new_time: New start time, HH:MM

        Raises:
            InvalidTransition: If the appointment is completed or cancelled
        """
        self.ensure_can_reschedule(appointment)
        return appointment.model_copy(update={
            "appointment_date": new_date,
            "schedule": dt.datetime.combine(new_date, dt.time.fromisoformat(new_time)),
            "status": AppointmentStatus.PENDING,
        })

    def is_lapsed(self, appointment: Appointment, now: dt.datetime) -> bool:
        """Whether a live appointment's scheduled time has already passed."""
        return not appointment.is_terminal and appointment.schedule < now

    @staticmethod
    def _reject(appointment: Appointment, action: str):
        code, message = rejection_for(appointment.status, action)
        raise InvalidTransition(message, code=code, status=appointment.status)
