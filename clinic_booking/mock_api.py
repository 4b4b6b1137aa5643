"""Mock API for the clinic booking core.

Flask server backed by SQLAlchemy, playing both external collaborators:
- Doctor directory (doctors by clinic)
- Appointment store (create, list, get, status change, reschedule, expiry)

Every response uses the envelope {"success", "data", "message", "code"}.

Run with: python -m clinic_booking.mock_api
"""
import datetime as dt
from typing import Callable, Optional

import pydantic
from flask import Flask, jsonify, request
from flask_cors import CORS

from clinic_booking import config
from clinic_booking.api.repository import AppointmentRepository
from clinic_booking.errors import (
    AppointmentNotFound,
    ConcurrentModification,
    DuplicateBooking,
    InvalidTransition,
    ValidationError,
)
from clinic_booking.logging_config import RequestIDMiddleware, get_logger, setup_structured_logging
from clinic_booking.models import AppointmentCreateRequest, AppointmentStatus

logger = get_logger(__name__)

API_PREFIX = "/api"

REQUIRED_CREATE_FIELDS = [
    "appointment_id",
    "clinic_id",
    "doctor_id",
    "patient_id",
    "consultation_fees",
    "schedule",
    "appointment_date",
]

DEMO_CLINIC_ID = "1"
DEMO_DOCTORS = [
    {"name": "Dr. Sarah Johnson", "specialization": '["Cardiology", "Internal Medicine"]',
     "consultation_fee": "80.00", "experience_years": 12, "rating": 4.8},
    {"name": "Dr. Michael Chen", "specialization": "Dermatology",
     "consultation_fee": "65.00", "experience_years": 8, "rating": 4.6},
    {"name": "Dr. Emily Rodriguez", "specialization": "Pediatrics, Family Medicine",
     "experience_years": 5},
]


def _ok(data=None, message: Optional[str] = None, status: int = 200):
    return jsonify({"success": True, "data": data, "message": message, "code": None}), status


def _fail(message: str, status: int, code: str, **extra):
    body = {"success": False, "data": None, "message": message, "code": code}
    body.update(extra)
    return jsonify(body), status


def create_app(
    database_url: Optional[str] = None,
    clock: Callable[[], dt.datetime] = dt.datetime.now,
) -> Flask:
    """
    Build the mock API application.

    Args:
        database_url: SQLAlchemy connection string (default: config.DATABASE_URL)
        clock: Returns "now"; used for reschedule validation and expiry
    """
    app = Flask(__name__)
    CORS(app)
    app.wsgi_app = RequestIDMiddleware(app.wsgi_app)

    repository = AppointmentRepository(database_url or config.DATABASE_URL)
    app.extensions["appointment_repository"] = repository

    # Error mapping ------------------------------------------------------

    @app.errorhandler(AppointmentNotFound)
    def handle_not_found(e):
        return _fail(str(e), 404, "NOT_FOUND")

    @app.errorhandler(ConcurrentModification)
    def handle_version_conflict(e):
        return _fail(str(e), 409, "VERSION_CONFLICT")

    @app.errorhandler(InvalidTransition)
    def handle_invalid_transition(e):
        return _fail(str(e), 409, "INVALID_TRANSITION", transition_code=e.code)

    @app.errorhandler(DuplicateBooking)
    def handle_duplicate(e):
        return _fail(str(e), 409, "DUPLICATE_PENDING")

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return _fail(str(e), 400, "VALIDATION_ERROR", missing_fields=e.missing_fields)

    # Doctor directory ---------------------------------------------------

    @app.route(f"{API_PREFIX}/doctors/clinic/<clinic_id>", methods=["GET"])
    def list_doctors(clinic_id):
        """GET /api/doctors/clinic/1 - Doctors of a clinic."""
        return _ok(repository.list_doctors(clinic_id))

    # Appointment store --------------------------------------------------

    @app.route(f"{API_PREFIX}/appointments", methods=["POST"])
    def create_appointment():
        """POST /api/appointments - Create an appointment.

        appointment_id is an idempotency key: re-sending a create with a
        token that was already stored returns the stored row with 200.
        """
        data = request.get_json(silent=True)
        if not data or not isinstance(data, dict):
            return _fail("Request body is required", 400, "VALIDATION_ERROR")

        missing = [field for field in REQUIRED_CREATE_FIELDS if data.get(field) in (None, "")]
        if missing:
            return _fail(
                f"Missing required fields: {', '.join(missing)}", 400, "VALIDATION_ERROR",
                missing_fields=missing,
            )

        payload = dict(data)
        payload.setdefault("type", config.DEFAULT_APPOINTMENT_TYPE)
        payload.setdefault("payment_method", config.DEFAULT_PAYMENT_METHOD)
        payload.setdefault("created_at", clock().isoformat())
        try:
            create_request = AppointmentCreateRequest.model_validate(payload)
        except pydantic.ValidationError as e:
            return _fail(f"Invalid appointment: {e.error_count()} invalid field(s)", 400, "VALIDATION_ERROR")

        row, created = repository.create(create_request)
        if created:
            return _ok(row, "Appointment created", 201)
        return _ok(row, "Appointment already exists")

    @app.route(f"{API_PREFIX}/appointments", methods=["GET"])
    def list_appointments():
        """GET /api/appointments?patient_id=&clinic_id=&status= - Filtered list."""
        status = request.args.get("status")
        if status is not None:
            try:
                status = int(status)
            except ValueError:
                return _fail("status must be an integer", 400, "VALIDATION_ERROR")

        rows = repository.list(
            patient_id=request.args.get("patient_id"),
            clinic_id=request.args.get("clinic_id"),
            status=status,
        )
        return _ok(rows)

    @app.route(f"{API_PREFIX}/appointments/<int:appointment_id>", methods=["GET"])
    def get_appointment(appointment_id):
        return _ok(repository.get(appointment_id))

    @app.route(f"{API_PREFIX}/appointments/<int:appointment_id>/status", methods=["PATCH"])
    def update_status(appointment_id):
        """PATCH /api/appointments/1/status - Change status (cancel does not delete)."""
        data = request.get_json(silent=True) or {}
        try:
            status = AppointmentStatus(int(data["status"]))
        except (KeyError, TypeError, ValueError):
            return _fail("status must be one of 0, 1, 2, 3", 400, "VALIDATION_ERROR")

        row = repository.update_status(
            appointment_id,
            status,
            reason=data.get("cancellation_reason"),
            version=data.get("version"),
        )
        return _ok(row, f"Appointment status changed to {status.label}")

    @app.route(f"{API_PREFIX}/appointments/<int:appointment_id>/reschedule", methods=["PATCH"])
    def reschedule_appointment(appointment_id):
        """PATCH /api/appointments/1/reschedule - Move to a new slot.

        Request body:
        {
            "appointment_date": "2024-06-10",
            "schedule": "2024-06-10T09:30:00",
            "version": 1
        }

        Date, time and the reset to Pending are written together.
        """
        data = request.get_json(silent=True) or {}
        if not data.get("appointment_date") or not data.get("schedule"):
            return _fail(
                "Missing required fields: appointment_date, schedule", 400, "VALIDATION_ERROR",
                missing_fields=[f for f in ("appointment_date", "schedule") if not data.get(f)],
            )

        try:
            new_date = dt.date.fromisoformat(data["appointment_date"])
            schedule = dt.datetime.fromisoformat(data["schedule"])
        except (TypeError, ValueError):
            return _fail("Invalid date format. Use YYYY-MM-DD and YYYY-MM-DDTHH:MM:SS", 400, "VALIDATION_ERROR")
        if schedule.date() != new_date:
            return _fail("schedule must fall on appointment_date", 400, "VALIDATION_ERROR")

        row = repository.reschedule(
            appointment_id,
            schedule,
            version=data.get("version"),
            now=clock(),
        )
        return _ok(row, "Appointment rescheduled and awaiting confirmation")

    @app.route(f"{API_PREFIX}/appointments/expire", methods=["POST"])
    def expire_appointments():
        """POST /api/appointments/expire - Auto-cancel appointments whose slot passed."""
        count = repository.cancel_lapsed(now=clock())
        return _ok({"cancelled": count}, f"{count} appointment(s) cancelled")

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({
            "success": True,
            "status": "healthy",
            "timestamp": clock().isoformat(),
        })

    return app


def seed_demo_doctors(repository: AppointmentRepository, clinic_id: str = DEMO_CLINIC_ID) -> int:
    """Insert the demo doctors if the clinic has none."""
    if repository.list_doctors(clinic_id):
        return 0
    for doctor in DEMO_DOCTORS:
        repository.add_doctor(clinic_id, **doctor)
    return len(DEMO_DOCTORS)


def print_startup_info():
    """Print server startup information."""
    print("=" * 70)
    print("MOCK APPOINTMENT API")
    print("=" * 70)
    print(f"\nServer: http://localhost:{config.MOCK_API_PORT}{API_PREFIX}")
    print(f"Database: {config.DATABASE_URL}")
    print("\nEndpoints:")
    print("   GET   /api/doctors/clinic/<clinic_id>        - Doctors of a clinic")
    print("   POST  /api/appointments                      - Create appointment")
    print("   GET   /api/appointments                      - List (patient_id, clinic_id, status)")
    print("   GET   /api/appointments/<id>                 - Get appointment")
    print("   PATCH /api/appointments/<id>/status          - Change status")
    print("   PATCH /api/appointments/<id>/reschedule      - Reschedule")
    print("   POST  /api/appointments/expire               - Cancel lapsed appointments")
    print("   GET   /health                                - Health check")
    print("=" * 70)


if __name__ == "__main__":
    setup_structured_logging(config.LOG_LEVEL)
    app = create_app()
    seeded = seed_demo_doctors(app.extensions["appointment_repository"])
    if seeded:
        logger.info("demo_doctors_seeded", clinic_id=DEMO_CLINIC_ID, count=seeded)
    print_startup_info()
    app.run(
        debug=True,
        port=config.MOCK_API_PORT,
    )
