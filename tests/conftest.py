"""Shared test fixtures."""
import datetime as dt
from decimal import Decimal
from unittest.mock import Mock

import pytest

from clinic_booking.availability import AvailabilityEngine
from clinic_booking.directory import DoctorDirectory
from clinic_booking.models import Appointment, AppointmentStatus, DoctorSummary
from clinic_booking.store import AppointmentStore


@pytest.fixture
def fixed_now() -> dt.datetime:
    """Friday 2024-06-07, 10:00."""
    return dt.datetime(2024, 6, 7, 10, 0)


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def engine(clock) -> AvailabilityEngine:
    return AvailabilityEngine(clock=clock)


@pytest.fixture
def doctors():
    """D1 (Dermatology) and D2 (Cardiology) for clinic C1."""
    return [
        DoctorSummary(id="D1", name="Dr. Dana Park", specialties=["Dermatology"]),
        DoctorSummary(
            id="D2",
            name="Dr. Omar Haddad",
            specialties='["Cardiology", "Hypertension"]',
            consultation_fee="80.00",
        ),
    ]


@pytest.fixture
def make_appointment():
    """Build an Appointment with overridable fields."""
    def _create(**overrides) -> Appointment:
        fields = {
            "id": 1,
            "appointment_id": "APT-1717754400000-abc123xyz",
            "clinic_id": "C1",
            "doctor_id": "D2",
            "patient_id": "P1",
            "schedule": dt.datetime(2024, 6, 10, 9, 30),
            "appointment_date": dt.date(2024, 6, 10),
            "status": AppointmentStatus.PENDING,
            "consultation_fees": Decimal("80.00"),
            "version": 1,
        }
        fields.update(overrides)
        return Appointment(**fields)
    return _create


@pytest.fixture
def mock_store():
    """AppointmentStore double with no network access."""
    store = Mock(spec=AppointmentStore)
    store.list.return_value = []
    return store


@pytest.fixture
def mock_directory(doctors):
    directory = Mock(spec=DoctorDirectory)
    directory.list_by_clinic.return_value = doctors
    return directory
