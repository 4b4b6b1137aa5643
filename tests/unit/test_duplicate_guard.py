"""Tests for the duplicate booking guard."""
import pytest

from clinic_booking.errors import AppointmentStoreError
from clinic_booking.guard import DuplicateBookingGuard
from clinic_booking.models import AppointmentStatus


class TestDuplicateBookingGuard:
    """check_existing is True iff a fetched appointment is PENDING at the clinic."""

    def test_pending_at_same_clinic(self, mock_store, make_appointment):
        mock_store.list.return_value = [make_appointment(clinic_id="C1")]

        assert DuplicateBookingGuard(mock_store).check_existing("P1", "C1") is True
        mock_store.list.assert_called_once_with(patient_id="P1")

    def test_clinic_compared_as_string(self, mock_store, make_appointment):
        mock_store.list.return_value = [make_appointment(clinic_id=7)]
        assert DuplicateBookingGuard(mock_store).check_existing("P1", 7) is True

    def test_pending_at_other_clinic(self, mock_store, make_appointment):
        mock_store.list.return_value = [make_appointment(clinic_id="C2")]
        assert DuplicateBookingGuard(mock_store).check_existing("P1", "C1") is False

    @pytest.mark.parametrize("status", [
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    ])
    def test_non_pending_ignored(self, mock_store, make_appointment, status):
        mock_store.list.return_value = [make_appointment(clinic_id="C1", status=status)]
        assert DuplicateBookingGuard(mock_store).check_existing("P1", "C1") is False

    def test_no_appointments(self, mock_store):
        assert DuplicateBookingGuard(mock_store).check_existing("P1", "C1") is False

    def test_fetch_failure_returns_false(self, mock_store):
        mock_store.list.side_effect = AppointmentStoreError("Could not connect")
        assert DuplicateBookingGuard(mock_store).check_existing("P1", "C1") is False

    def test_retried_token_is_not_a_duplicate(self, mock_store, make_appointment):
        """The row a lost create already stored does not block its own retry."""
        mock_store.list.return_value = [make_appointment(clinic_id="C1", appointment_id="APT-1-retry")]
        guard = DuplicateBookingGuard(mock_store)

        assert guard.check_existing("P1", "C1", exclude_token="APT-1-retry") is False
        assert guard.check_existing("P1", "C1", exclude_token="APT-2-other") is True
