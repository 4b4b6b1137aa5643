"""Tests for the reschedule flow."""
import datetime as dt

import pytest

from clinic_booking.appointment_mgmt import AppointmentLifecycle
from clinic_booking.errors import InvalidTransition, ValidationError
from clinic_booking.models import AppointmentStatus
from clinic_booking.reschedule import PENDING_CONFIRMATION_LABEL, ReschedulePolicy


@pytest.fixture
def lifecycle(mock_store):
    return AppointmentLifecycle(store=mock_store)


@pytest.fixture
def policy(make_appointment, lifecycle, engine):
    return ReschedulePolicy(make_appointment(), lifecycle=lifecycle, engine=engine)


class TestOpeningPolicy:

    @pytest.mark.parametrize("status", [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED])
    def test_terminal_appointment_rejected(self, make_appointment, lifecycle, engine, mock_store, status):
        with pytest.raises(InvalidTransition):
            ReschedulePolicy(make_appointment(status=status), lifecycle=lifecycle, engine=engine)

        mock_store.reschedule.assert_not_called()

    def test_scheduled_appointment_accepted(self, make_appointment, lifecycle, engine):
        policy = ReschedulePolicy(make_appointment(status=AppointmentStatus.SCHEDULED), lifecycle=lifecycle, engine=engine)
        assert len(policy.available_dates()) == 5


class TestSlotSelection:

    def test_no_times_before_date(self, policy):
        assert policy.available_times() == []

    def test_times_after_date(self, policy):
        policy.select_date("2024-06-11")
        assert [slot.time_key for slot in policy.available_times()][:2] == ["09:00", "09:30"]

    def test_new_date_clears_time(self, policy):
        """Selecting a new date drops the previously selected time."""
        policy.select_date("2024-06-11")
        policy.select_time("10:00")

        policy.select_date("2024-06-12")

        assert policy.selected_date == "2024-06-12"
        assert policy.selected_time is None

    def test_date_outside_window_rejected(self, policy):
        with pytest.raises(ValidationError):
            policy.select_date("2024-06-08")

    def test_time_requires_date(self, policy):
        with pytest.raises(ValidationError) as exc_info:
            policy.select_time("10:00")
        assert exc_info.value.missing_fields == ["date"]

    def test_time_outside_grid_rejected(self, policy):
        policy.select_date("2024-06-11")
        with pytest.raises(ValidationError):
            policy.select_time("12:30")


class TestConfirmationAndCommit:

    def test_confirmation_requires_selection(self, policy):
        policy.select_date("2024-06-11")
        with pytest.raises(ValidationError) as exc_info:
            policy.confirmation_view()
        assert exc_info.value.missing_fields == ["time"]

    def test_confirmation_view(self, policy):
        policy.select_date("2024-06-12")
        policy.select_time("14:00")

        view = policy.confirmation_view()

        assert view.appointment_id == 1
        assert view.original_date_label == "Monday, June 10, 2024"
        assert view.original_time_label == "9:30 AM"
        assert view.original_status == "Pending"
        assert view.new_date == dt.date(2024, 6, 12)
        assert view.new_date_label == "Wednesday, June 12, 2024"
        assert view.new_time_label == "2:00 PM"
        assert view.resulting_status == PENDING_CONFIRMATION_LABEL

    def test_commit_pending_stays_pending(self, policy, mock_store, make_appointment):
        """Pending appointment moved: status stays Pending, slot updated."""
        mock_store.reschedule.return_value = make_appointment(
            schedule=dt.datetime(2024, 6, 12, 14, 0),
            appointment_date=dt.date(2024, 6, 12),
            version=2,
        )
        policy.select_date("2024-06-12")
        policy.select_time("14:00")

        updated = policy.commit()

        mock_store.reschedule.assert_called_once_with(1, dt.date(2024, 6, 12), "14:00", version=1)
        assert updated.status == AppointmentStatus.PENDING
        assert updated.schedule == dt.datetime(2024, 6, 12, 14, 0)
        assert policy.appointment == updated

    def test_commit_without_selection(self, policy, mock_store):
        with pytest.raises(ValidationError):
            policy.commit()
        mock_store.reschedule.assert_not_called()
