"""Tests for the appointment state machine."""
import datetime as dt

import pytest

from clinic_booking.errors import InvalidTransition
from clinic_booking.models import AppointmentStatus
from clinic_booking.state import AppointmentStateMachine, VALID_TRANSITIONS, validate_transition


@pytest.fixture
def machine():
    return AppointmentStateMachine()


class TestValidateTransition:

    def test_terminal_statuses_have_no_transitions(self):
        assert VALID_TRANSITIONS[AppointmentStatus.COMPLETED] == []
        assert VALID_TRANSITIONS[AppointmentStatus.CANCELLED] == []

    @pytest.mark.parametrize("current,intended", [
        (AppointmentStatus.PENDING, AppointmentStatus.SCHEDULED),
        (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED),
        (AppointmentStatus.PENDING, AppointmentStatus.PENDING),
        (AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED),
        (AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED),
        (AppointmentStatus.SCHEDULED, AppointmentStatus.PENDING),
    ])
    def test_allowed(self, current, intended):
        assert validate_transition(current, intended)

    @pytest.mark.parametrize("current,intended", [
        (AppointmentStatus.PENDING, AppointmentStatus.COMPLETED),
        (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CANCELLED, AppointmentStatus.PENDING),
    ])
    def test_rejected(self, current, intended):
        assert not validate_transition(current, intended)


class TestCancel:

    @pytest.mark.parametrize("status", [AppointmentStatus.PENDING, AppointmentStatus.SCHEDULED])
    def test_cancel_live_appointment(self, machine, make_appointment, status):
        appointment = make_appointment(status=status)

        cancelled = machine.cancel(appointment, reason="Feeling better")

        assert cancelled.status == AppointmentStatus.CANCELLED
        assert cancelled.cancellation_reason == "Feeling better"
        assert appointment.status == status

    def test_cancel_completed_fails_and_keeps_status(self, machine, make_appointment):
        appointment = make_appointment(status=AppointmentStatus.COMPLETED)

        with pytest.raises(InvalidTransition) as exc_info:
            machine.cancel(appointment)

        assert exc_info.value.code == "AlreadyCompleted"
        assert appointment.status == AppointmentStatus.COMPLETED

    def test_cancel_twice(self, machine, make_appointment):
        """Second cancel fails with AlreadyCancelled."""
        cancelled = machine.cancel(make_appointment())

        with pytest.raises(InvalidTransition) as exc_info:
            machine.cancel(cancelled)

        assert exc_info.value.code == "AlreadyCancelled"
        assert "already been cancelled" in str(exc_info.value)


class TestReschedule:

    @pytest.mark.parametrize("status", [AppointmentStatus.PENDING, AppointmentStatus.SCHEDULED])
    def test_reschedule_always_ends_pending(self, machine, make_appointment, status):
        appointment = make_appointment(status=status)

        moved = machine.reschedule(appointment, dt.date(2024, 6, 12), "14:00")

        assert moved.status == AppointmentStatus.PENDING
        assert moved.appointment_date == dt.date(2024, 6, 12)
        assert moved.schedule == dt.datetime(2024, 6, 12, 14, 0)

    def test_reschedule_cancelled_fails(self, machine, make_appointment):
        appointment = make_appointment(status=AppointmentStatus.CANCELLED)

        with pytest.raises(InvalidTransition) as exc_info:
            machine.reschedule(appointment, dt.date(2024, 6, 12), "14:00")

        assert exc_info.value.code == "AlreadyCancelled"
        assert exc_info.value.status == AppointmentStatus.CANCELLED

    def test_reschedule_completed_fails(self, machine, make_appointment):
        with pytest.raises(InvalidTransition):
            machine.reschedule(make_appointment(status=AppointmentStatus.COMPLETED), dt.date(2024, 6, 12), "14:00")


def test_is_lapsed(machine, make_appointment):
    appointment = make_appointment(schedule=dt.datetime(2024, 6, 10, 9, 30))

    assert machine.is_lapsed(appointment, dt.datetime(2024, 6, 10, 10, 0))
    assert not machine.is_lapsed(appointment, dt.datetime(2024, 6, 10, 9, 0))
    assert not machine.is_lapsed(
        make_appointment(status=AppointmentStatus.CANCELLED),
        dt.datetime(2030, 1, 1),
    )
