"""Domain models for the booking core.

Pydantic models, immutable once built: drafts and appointments are changed by
producing new copies (model_copy) so wizard and lifecycle operations can
thread state explicitly.
"""
import datetime as dt
import random
import string
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_booking import config
from clinic_booking.specialties import normalize_specialties, specialty_label

CENTS = Decimal("0.01")

# Draft fields that must be set before submit
REQUIRED_DRAFT_FIELDS = ("doctor_id", "date", "time", "appointment_type")


class AppointmentStatus(IntEnum):
    """Appointment lifecycle status. Values are the wire encoding."""
    PENDING = 0
    SCHEDULED = 1
    COMPLETED = 2
    CANCELLED = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def is_terminal(self) -> bool:
        return self in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


def to_money(value: Any) -> Decimal:
    """Parse a fee into a two-decimal Decimal."""
    try:
        return Decimal(str(value).strip()).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")


def format_money(value: Decimal) -> str:
    return f"{value:.2f}"


def generate_appointment_token(now: dt.datetime) -> str:
    """
    Generate a client-side appointment token.

    Format: APT-<epoch milliseconds>-<9 base36 characters>
    """
    millis = int(now.timestamp() * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"APT-{millis}-{suffix}"


def _id_to_str(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class DoctorSummary(BaseModel):
    """Doctor as listed by the directory for one clinic."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    specialties: List[str] = Field(default_factory=list)
    consultation_fee: Optional[Decimal] = None
    experience_years: int = 0
    rating: float = config.DEFAULT_DOCTOR_RATING
    is_active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        return _id_to_str(v)

    @field_validator("specialties", mode="before")
    @classmethod
    def _normalize_specialties(cls, v):
        return normalize_specialties(v)

    @field_validator("consultation_fee", mode="before")
    @classmethod
    def _parse_fee(cls, v):
        if v is None or v == "":
            return None
        return to_money(v)

    @classmethod
    def from_directory(cls, row: Dict[str, Any]) -> "DoctorSummary":
        """
        Build from a raw directory row.

        Directory rows are not consistent about key names, so id, fee,
        experience and specialties are each read from their known aliases.
        """
        doctor_id = row.get("_id") or row.get("id") or row.get("doctor_id")
        return cls(
            id=doctor_id,
            name=row.get("name") or "",
            specialties=row.get("specialties") or row.get("specialization"),
            consultation_fee=row.get("consultation_fee") or row.get("consultationFee"),
            experience_years=row.get("experience_years") or row.get("experience") or 0,
            rating=row.get("rating") or config.DEFAULT_DOCTOR_RATING,
            is_active=bool(row.get("is_active", True)),
        )

    @property
    def specialty_label(self) -> str:
        return specialty_label(self.specialties, config.DEFAULT_SPECIALTY)

    def matches_specialty(self, token: str) -> bool:
        """Case-insensitive substring match of token against any specialty."""
        needle = (token or "").strip().lower()
        if not needle:
            return True
        return any(needle in specialty.lower() for specialty in self.specialties)


class Appointment(BaseModel):
    """Appointment as persisted by the appointment store."""
    model_config = ConfigDict(frozen=True)

    id: int
    appointment_id: str
    clinic_id: str
    doctor_id: str
    patient_id: str
    schedule: dt.datetime
    appointment_date: dt.date
    status: AppointmentStatus = AppointmentStatus.PENDING
    consultation_fees: Decimal
    discount: Decimal = Decimal(config.DEFAULT_DISCOUNT)
    remarks: str = ""
    type: str = config.DEFAULT_APPOINTMENT_TYPE
    payment_method: str = config.DEFAULT_PAYMENT_METHOD
    created_at: Optional[dt.datetime] = None
    cancellation_reason: Optional[str] = None
    auto_cancelled: bool = False  # Set by the store's expiry job, read-only here
    version: int = 1

    @field_validator("clinic_id", "doctor_id", "patient_id", mode="before")
    @classmethod
    def _coerce_ids(cls, v):
        return _id_to_str(v)

    @field_validator("consultation_fees", "discount", mode="before")
    @classmethod
    def _parse_money(cls, v):
        return to_money(v)

    @field_validator("remarks", mode="before")
    @classmethod
    def _remarks_default(cls, v):
        return v or ""

    @property
    def time_key(self) -> str:
        return self.schedule.strftime("%H:%M")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class AppointmentDraft(BaseModel):
    """In-progress booking form state."""
    model_config = ConfigDict(frozen=True)

    specialty_filter: str = ""
    appointment_type: str = config.DEFAULT_APPOINTMENT_TYPE
    date: Optional[dt.date] = None
    time: Optional[str] = None  # 24h key, HH:MM
    doctor_id: Optional[str] = None
    notes: str = ""
    payment_method: str = config.DEFAULT_PAYMENT_METHOD

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_DRAFT_FIELDS if not getattr(self, name)]

    @property
    def is_submittable(self) -> bool:
        return not self.missing_fields()

    def scheduled_at(self) -> dt.datetime:
        return dt.datetime.combine(self.date, dt.time.fromisoformat(self.time))


class DateSlot(BaseModel):
    """A bookable calendar date."""
    model_config = ConfigDict(frozen=True)

    date_key: str  # ISO date
    label: str  # "Mon, Jun 10"
    full_label: str  # "Monday, June 10, 2024"
    day_of_week: str
    available: bool = True


class TimeSlot(BaseModel):
    """A slot in the business-hour grid."""
    model_config = ConfigDict(frozen=True)

    time_key: str  # 24h, HH:MM
    label: str  # 12h, "9:30 AM"
    available: bool = True  # Grid membership only


class AppointmentCreateRequest(BaseModel):
    """Create payload sent to the appointment store."""
    model_config = ConfigDict(frozen=True)

    appointment_id: str
    clinic_id: str
    doctor_id: str
    patient_id: str
    consultation_fees: Decimal
    discount: Decimal = Decimal(config.DEFAULT_DISCOUNT)
    schedule: dt.datetime
    appointment_date: dt.date
    status: AppointmentStatus = AppointmentStatus.PENDING
    type: str
    payment_method: str
    remarks: str = ""
    created_at: dt.datetime

    @field_validator("clinic_id", "doctor_id", "patient_id", mode="before")
    @classmethod
    def _coerce_ids(cls, v):
        return _id_to_str(v)

    @field_validator("consultation_fees", "discount", mode="before")
    @classmethod
    def _parse_money(cls, v):
        return to_money(v)

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation: decimal strings, ISO dates, integer status."""
        return {
            "appointment_id": self.appointment_id,
            "clinic_id": self.clinic_id,
            "doctor_id": self.doctor_id,
            "patient_id": self.patient_id,
            "consultation_fees": format_money(self.consultation_fees),
            "discount": format_money(self.discount),
            "schedule": self.schedule.strftime("%Y-%m-%dT%H:%M:%S"),
            "appointment_date": self.appointment_date.isoformat(),
            "status": int(self.status),
            "type": self.type,
            "payment_method": self.payment_method,
            "remarks": self.remarks,
            "created_at": self.created_at.isoformat(),
        }
