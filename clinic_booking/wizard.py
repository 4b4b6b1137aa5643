"""Booking wizard: step-by-step collection of an appointment draft.

Flows:
- Full flow (6 steps): Specialty -> Date -> Doctor -> Time -> Details -> Confirm
- Quick flow (4 steps): Date -> Time -> Confirm -> Details
  The doctor is picked on the Confirm step, so Confirm requires a doctor in
  both flows.

State is an immutable WizardState. The reducer functions below take a state
and return the next one; BookingWizardController threads the state through
them and owns the calls to the directory and the appointment store.
"""
import datetime as dt
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from clinic_booking import config
from clinic_booking.availability import AvailabilityEngine, format_date_long, format_time_12h
from clinic_booking.directory import DoctorDirectory
from clinic_booking.errors import (
    BookingError,
    DirectoryError,
    DuplicateBooking,
    SubmissionInFlight,
    ValidationError,
)
from clinic_booking.guard import DuplicateBookingGuard
from clinic_booking.logging_config import get_logger
from clinic_booking.models import (
    Appointment,
    AppointmentCreateRequest,
    AppointmentDraft,
    AppointmentStatus,
    DateSlot,
    DoctorSummary,
    TimeSlot,
    generate_appointment_token,
)
from clinic_booking.store import AppointmentStore

logger = get_logger(__name__)


class WizardStep(str, Enum):
    """Wizard steps."""
    SPECIALTY = "specialty"
    DATE = "date"
    DOCTOR = "doctor"
    TIME = "time"
    DETAILS = "details"
    CONFIRM = "confirm"


FULL_FLOW: Tuple[WizardStep, ...] = (
    WizardStep.SPECIALTY,
    WizardStep.DATE,
    WizardStep.DOCTOR,
    WizardStep.TIME,
    WizardStep.DETAILS,
    WizardStep.CONFIRM,
)

QUICK_FLOW: Tuple[WizardStep, ...] = (
    WizardStep.DATE,
    WizardStep.TIME,
    WizardStep.CONFIRM,
    WizardStep.DETAILS,
)

# Draft fields that must be set before leaving a step
STEP_REQUIREMENTS: Dict[WizardStep, Tuple[str, ...]] = {
    WizardStep.SPECIALTY: ("appointment_type",),
    WizardStep.DATE: ("date",),
    WizardStep.DOCTOR: ("doctor_id",),
    WizardStep.TIME: ("time",),
    WizardStep.DETAILS: (),
    WizardStep.CONFIRM: ("doctor_id",),
}


class WizardState(BaseModel):
    """Everything the wizard knows at one point in time."""
    model_config = ConfigDict(frozen=True)

    steps: Tuple[WizardStep, ...] = FULL_FLOW
    current_step_index: int = 0
    draft: AppointmentDraft = Field(default_factory=AppointmentDraft)
    clinic_id: Optional[str] = None
    clinic_name: Optional[str] = None
    doctors: Tuple[DoctorSummary, ...] = ()
    filtered_doctors: Tuple[DoctorSummary, ...] = ()
    selected_doctor: Optional[DoctorSummary] = None
    submitting: bool = False
    completed: bool = False
    pending_token: Optional[str] = None  # Reused when a failed submit is retried
    last_error: Optional[str] = None
    directory_error: Optional[str] = None

    @property
    def current_step(self) -> WizardStep:
        return self.steps[self.current_step_index]

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index == len(self.steps) - 1

    @property
    def step_completion(self) -> Dict[WizardStep, bool]:
        """Per-step completion flags: every step before the current one is done."""
        return {step: index < self.current_step_index for index, step in enumerate(self.steps)}


# ---------------------------------------------------------------------------
# Reducers
# ---------------------------------------------------------------------------

def missing_for_step(state: WizardState) -> List[str]:
    """Required fields of the current step that are still empty."""
    return [
        name for name in STEP_REQUIREMENTS[state.current_step]
        if not getattr(state.draft, name)
    ]


def advance(state: WizardState) -> WizardState:
    """Move to the next step if the current one is complete, clamped to the last."""
    if missing_for_step(state):
        return state
    next_index = min(state.current_step_index + 1, len(state.steps) - 1)
    return state.model_copy(update={"current_step_index": next_index})


def retreat(state: WizardState) -> WizardState:
    """Move to the previous step, clamped to the first. Never validates."""
    previous_index = max(state.current_step_index - 1, 0)
    return state.model_copy(update={"current_step_index": previous_index})


def update_draft(state: WizardState, **fields: Any) -> WizardState:
    draft = state.draft.model_copy(update=fields)
    return state.model_copy(update={"draft": draft})


def filter_doctors(doctors: Sequence[DoctorSummary], token: str) -> Tuple[DoctorSummary, ...]:
    """Active doctors whose specialties contain token (case-insensitive)."""
    return tuple(
        doctor for doctor in doctors
        if doctor.is_active and doctor.matches_specialty(token)
    )


def appointment_type_for(specialty: str) -> str:
    """Appointment type whose specialty list mentions specialty."""
    needle = specialty.strip().lower()
    if needle:
        for appointment_type in config.APPOINTMENT_TYPES:
            if any(needle in name.lower() for name in appointment_type["specialties"]):
                return appointment_type["value"]
    return config.DEFAULT_APPOINTMENT_TYPE


def apply_specialty(state: WizardState, token: str) -> WizardState:
    token = (token or "").strip()
    state = update_draft(
        state,
        specialty_filter=token,
        appointment_type=appointment_type_for(token),
    )
    return state.model_copy(update={"filtered_doctors": filter_doctors(state.doctors, token)})


def apply_doctors(state: WizardState, doctors: Sequence[DoctorSummary]) -> WizardState:
    doctors = tuple(doctors)
    return state.model_copy(update={
        "doctors": doctors,
        "filtered_doctors": filter_doctors(doctors, state.draft.specialty_filter),
        "directory_error": None,
    })


def apply_doctor(state: WizardState, doctor: DoctorSummary) -> WizardState:
    """Select a doctor; the specialty filter does not restrict the choice."""
    state = update_draft(state, doctor_id=doctor.id)
    return state.model_copy(update={"selected_doctor": doctor})


def reset_draft(state: WizardState) -> WizardState:
    """Fresh draft on the first step; clinic context and doctors are kept."""
    return WizardState(
        steps=state.steps,
        clinic_id=state.clinic_id,
        clinic_name=state.clinic_name,
        doctors=state.doctors,
        filtered_doctors=filter_doctors(state.doctors, ""),
    )


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class BookingWizardController:
    """Drive the booking wizard for one patient session."""

    def __init__(
        self,
        patient_id: str,
        store: Optional[AppointmentStore] = None,
        directory: Optional[DoctorDirectory] = None,
        engine: Optional[AvailabilityEngine] = None,
        guard: Optional[DuplicateBookingGuard] = None,
        steps: Tuple[WizardStep, ...] = FULL_FLOW,
        enforce_duplicate_guard: bool = config.ENFORCE_DUPLICATE_GUARD,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ):
        """
        Initialize the controller.

        Args:
            patient_id: Patient making the booking
            store: AppointmentStore (defaults to the HTTP client)
            directory: DoctorDirectory (defaults to the HTTP client)
            engine: AvailabilityEngine (defaults to config business hours)
            guard: DuplicateBookingGuard (defaults to one over store)
            steps: FULL_FLOW or QUICK_FLOW
            enforce_duplicate_guard: Refuse submit while a pending booking exists
            clock: Returns "now"
        """
        store = store or AppointmentStore()
        directory = directory or DoctorDirectory()

        self.patient_id = patient_id
        self.store = store
        self.directory = directory
        self.clock = clock
        self.engine = engine or AvailabilityEngine.from_config(clock=clock)
        self.guard = guard or DuplicateBookingGuard(store)
        self.enforce_duplicate_guard = enforce_duplicate_guard
        self._state = WizardState(steps=tuple(steps))

    @property
    def state(self) -> WizardState:
        return self._state

    # Navigation ---------------------------------------------------------

    def advance(self) -> bool:
        """
        Go to the next step.

        Returns:
            False if the current step is missing a required field (the
            wizard stays put), True otherwise
        """
        if missing_for_step(self._state):
            return False
        self._state = advance(self._state)
        return True

    def retreat(self) -> None:
        self._state = retreat(self._state)

    # Clinic and doctors -------------------------------------------------

    def set_clinic(self, clinic_id: str, clinic_name: Optional[str] = None) -> WizardState:
        """Set the clinic context and load its doctors."""
        self._state = self._state.model_copy(update={
            "clinic_id": str(clinic_id),
            "clinic_name": clinic_name,
        })
        self.refresh_doctors()
        return self._state

    def refresh_doctors(self) -> None:
        """
        Fetch the clinic's doctors.

        A failed fetch is recorded on the state but does not stop navigation
        through steps that do not need the doctor list.
        """
        if self._state.clinic_id is None:
            return
        try:
            doctors = self.directory.list_by_clinic(self._state.clinic_id)
        except DirectoryError as e:
            logger.error("wizard_doctor_fetch_failed", clinic_id=self._state.clinic_id, error=str(e))
            self._state = self._state.model_copy(update={"directory_error": str(e)})
            return
        self._state = apply_doctors(self._state, doctors)

    def popular_specialties(self) -> List[str]:
        """Distinct specialties across the clinic's doctors, in first-seen order."""
        seen: List[str] = []
        for doctor in self._state.doctors:
            for specialty in doctor.specialties:
                if specialty not in seen:
                    seen.append(specialty)
        return seen[:config.MAX_POPULAR_SPECIALTIES]

    # Field selection ----------------------------------------------------

    def select_specialty(self, token: str) -> Tuple[DoctorSummary, ...]:
        """
        Filter doctors by specialty and derive the appointment type.

        Returns:
            The filtered doctor list
        """
        self._state = apply_specialty(self._state, token)
        return self._state.filtered_doctors

    def clear_specialty(self) -> Tuple[DoctorSummary, ...]:
        return self.select_specialty("")

    def select_appointment_type(self, appointment_type: str) -> None:
        if not appointment_type:
            raise ValidationError("Please choose an appointment type", ["appointment_type"])
        self._state = update_draft(self._state, appointment_type=appointment_type)

    def select_doctor(self, doctor: DoctorSummary) -> None:
        self._state = apply_doctor(self._state, doctor)

    def select_date(self, date) -> None:
        """
        Set the appointment date.

        Args:
            date: date or ISO string

        Raises:
            ValidationError: If the date is malformed or outside the date window
        """
        if isinstance(date, str):
            try:
                date = dt.date.fromisoformat(date)
            except ValueError:
                raise ValidationError(f"Invalid date: {date}", ["date"])
        if not self.engine.is_in_window(date.isoformat()):
            raise ValidationError(f"{date.isoformat()} is not an available date", ["date"])
        self._state = update_draft(self._state, date=date)

    def select_time(self, time_key: str) -> None:
        if not self.engine.is_in_grid(time_key):
            raise ValidationError(f"{time_key} is not an available time", ["time"])
        self._state = update_draft(self._state, time=time_key)

    def set_notes(self, notes: str) -> None:
        self._state = update_draft(self._state, notes=notes or "")

    def set_payment_method(self, payment_method: str) -> None:
        if not payment_method:
            raise ValidationError("Please choose a payment method", ["payment_method"])
        self._state = update_draft(self._state, payment_method=payment_method)

    def available_dates(self) -> List[DateSlot]:
        return self.engine.generate_date_window()

    def available_times(self) -> List[TimeSlot]:
        return self.engine.generate_time_grid(self._state.draft.date)

    # Confirmation and submission ----------------------------------------

    def consultation_fee(self) -> str:
        """Selected doctor's fee, or the default fee."""
        doctor = self._state.selected_doctor
        if doctor is not None and doctor.consultation_fee is not None:
            return f"{doctor.consultation_fee:.2f}"
        return config.DEFAULT_CONSULTATION_FEE

    def confirmation_summary(self) -> Dict[str, Any]:
        """Values shown on the Confirm step."""
        draft = self._state.draft
        doctor = self._state.selected_doctor
        return {
            "clinic_name": self._state.clinic_name,
            "doctor_name": doctor.name if doctor else "Not selected",
            "specialty": doctor.specialty_label if doctor else config.DEFAULT_SPECIALTY,
            "date": format_date_long(draft.date) if draft.date else None,
            "time": format_time_12h(draft.time) if draft.time else None,
            "appointment_type": draft.appointment_type.replace("-", " "),
            "consultation_fee": self.consultation_fee(),
            "notes": draft.notes or None,
        }

    def build_create_request(self) -> AppointmentCreateRequest:
        """
        Build the store payload from a complete draft.

        Raises:
            ValidationError: If the draft is incomplete or no clinic is set
        """
        draft = self._state.draft
        missing = draft.missing_fields()
        if self._state.clinic_id is None:
            missing.append("clinic_id")
        if missing:
            raise ValidationError("Please fill in all required fields", missing)

        now = self.clock()
        return AppointmentCreateRequest(
            appointment_id=self._state.pending_token or generate_appointment_token(now),
            clinic_id=self._state.clinic_id,
            doctor_id=draft.doctor_id,
            patient_id=self.patient_id,
            consultation_fees=self.consultation_fee(),
            discount=config.DEFAULT_DISCOUNT,
            schedule=draft.scheduled_at(),
            appointment_date=draft.date,
            status=AppointmentStatus.PENDING,
            type=draft.appointment_type,
            payment_method=draft.payment_method,
            remarks=draft.notes,
            created_at=now,
        )

    def submit(self) -> Appointment:
        """
        Submit the draft to the appointment store.

        Returns:
            The created appointment; the draft is cleared

        Raises:
            SubmissionInFlight: If a submission is already running
            ValidationError: If the draft is incomplete (no network call)
            DuplicateBooking: If a pending appointment already exists
            AppointmentStoreError: If the store call fails; the draft is kept
                                   and the same appointment_id is reused on retry
        """
        if self._state.submitting:
            raise SubmissionInFlight("A booking is already being submitted")

        request = self.build_create_request()
        retry_token = self._state.pending_token

        self._state = self._state.model_copy(update={
            "submitting": True,
            "last_error": None,
            "pending_token": request.appointment_id,
        })
        try:
            if self.enforce_duplicate_guard and self.guard.check_existing(
                self.patient_id, request.clinic_id, exclude_token=retry_token,
            ):
                raise DuplicateBooking(
                    "You already have a pending appointment at this clinic"
                )
            appointment = self.store.create(request)
        except BookingError as e:
            logger.error(
                "wizard_submit_failed",
                appointment_id=request.appointment_id,
                error=str(e),
                retryable=getattr(e, "retryable", False),
            )
            self._state = self._state.model_copy(update={
                "submitting": False,
                "last_error": str(e),
            })
            raise
        except Exception:
            logger.exception("wizard_submit_error", appointment_id=request.appointment_id)
            self._state = self._state.model_copy(update={
                "submitting": False,
                "last_error": "Unexpected error while booking. Please try again.",
            })
            raise

        logger.info("wizard_submit_succeeded", appointment_id=appointment.appointment_id)
        self._state = reset_draft(self._state).model_copy(update={"completed": True})
        return appointment

    def close(self) -> None:
        """Discard the draft."""
        self._state = reset_draft(self._state)
