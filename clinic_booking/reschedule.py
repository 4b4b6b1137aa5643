"""Reschedule flow: pick a new date, then a time, review, commit.

The policy is opened on one appointment. Completed and cancelled
appointments are rejected when the policy is created, before any slot is
offered.
"""
import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from clinic_booking.appointment_mgmt import AppointmentLifecycle
from clinic_booking.availability import AvailabilityEngine, format_date_long, format_time_12h
from clinic_booking.errors import ValidationError
from clinic_booking.models import Appointment, DateSlot, TimeSlot


PENDING_CONFIRMATION_LABEL = "Pending - awaiting confirmation"


class RescheduleConfirmation(BaseModel):
    """What the patient reviews before committing a reschedule."""
    model_config = ConfigDict(frozen=True)

    appointment_id: int
    original_date_label: str
    original_time_label: str
    original_status: str
    new_date: dt.date
    new_time: str
    new_date_label: str
    new_time_label: str
    resulting_status: str = PENDING_CONFIRMATION_LABEL


class ReschedulePolicy:
    """Slot selection for rescheduling one appointment."""

    def __init__(
        self,
        appointment: Appointment,
        lifecycle: Optional[AppointmentLifecycle] = None,
        engine: Optional[AvailabilityEngine] = None,
    ):
        """
        Open the reschedule flow.

        Raises:
            InvalidTransition: If the appointment is completed or cancelled
        """
        self.lifecycle = lifecycle or AppointmentLifecycle()
        self.engine = engine or AvailabilityEngine.from_config()
        self.lifecycle.state_machine.ensure_can_reschedule(appointment)

        self.appointment = appointment
        self.selected_date: Optional[str] = None
        self.selected_time: Optional[str] = None
        self._dates = self.engine.generate_date_window()

    def available_dates(self) -> List[DateSlot]:
        return list(self._dates)

    def available_times(self) -> List[TimeSlot]:
        """Time grid for the selected date; empty until a date is picked."""
        if self.selected_date is None:
            return []
        return self.engine.generate_time_grid(self.selected_date)

    def select_date(self, date_key: str) -> None:
        """Pick a date from the window. Any previously picked time is cleared."""
        if not any(slot.date_key == date_key for slot in self._dates):
            raise ValidationError(f"{date_key} is not an available date", ["date"])
        self.selected_date = date_key
        self.selected_time = None

    def select_time(self, time_key: str) -> None:
        if self.selected_date is None:
            raise ValidationError("Please select a date first", ["date"])
        if not self.engine.is_in_grid(time_key):
            raise ValidationError(f"{time_key} is not an available time", ["time"])
        self.selected_time = time_key

    def confirmation_view(self) -> RescheduleConfirmation:
        """
        Original appointment, proposed slot and the resulting status.

        Raises:
            ValidationError: If date or time has not been selected
        """
        self._ensure_selection()
        new_date = dt.date.fromisoformat(self.selected_date)
        return RescheduleConfirmation(
            appointment_id=self.appointment.id,
            original_date_label=format_date_long(self.appointment.appointment_date),
            original_time_label=format_time_12h(self.appointment.time_key),
            original_status=self.appointment.status.label,
            new_date=new_date,
            new_time=self.selected_time,
            new_date_label=format_date_long(new_date),
            new_time_label=format_time_12h(self.selected_time),
        )

    def commit(self) -> Appointment:
        """
        Reschedule to the selected slot.

        Returns:
            The updated appointment (status PENDING)
        """
        self._ensure_selection()
        updated = self.lifecycle.reschedule(
            self.appointment,
            dt.date.fromisoformat(self.selected_date),
            self.selected_time,
        )
        self.appointment = updated
        return updated

    def _ensure_selection(self):
        missing = [
            name for name, value in (("date", self.selected_date), ("time", self.selected_time))
            if value is None
        ]
        if missing:
            raise ValidationError("Please select both date and time", missing)
