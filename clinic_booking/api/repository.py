"""Persistence for the reference appointment store.

Pattern: thin wrapper around SQLAlchemy sessions, one session per call.
Business rejections are raised as the booking core's own exceptions so the
Flask layer can map them to status codes.
"""
import datetime as dt
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from clinic_booking import config
from clinic_booking.api.database_models import AppointmentRecord, Base, DoctorRecord
from clinic_booking.errors import (
    AppointmentNotFound,
    ConcurrentModification,
    DuplicateBooking,
    InvalidTransition,
    ValidationError,
)
from clinic_booking.logging_config import get_logger
from clinic_booking.models import AppointmentCreateRequest, AppointmentStatus
from clinic_booking.state import rejection_for, validate_transition

logger = get_logger(__name__)

# Statuses the expiry job cancels once their slot has passed
LIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.SCHEDULED)

_ACTIONS = {
    AppointmentStatus.PENDING: "reschedule",
    AppointmentStatus.SCHEDULED: "confirm",
    AppointmentStatus.COMPLETED: "complete",
    AppointmentStatus.CANCELLED: "cancel",
}


class AppointmentRepository:
    """
    Appointment and doctor persistence.

    Responsibilities:
    - Idempotent create keyed on appointment_id
    - One PENDING appointment per (patient, clinic)
    - Versioned status changes and reschedules
    - Auto-cancellation of lapsed appointments
    """

    def __init__(self, database_url: str = config.DATABASE_URL):
        """
        Initialize repository with database connection.

        Args:
            database_url: SQLAlchemy connection string
        """
        self.engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    # Appointments -------------------------------------------------------

    def create(self, request: AppointmentCreateRequest) -> Tuple[Dict[str, Any], bool]:
        """
        Insert an appointment unless its appointment_id already exists.

        Returns:
            (row, created): created is False when the stored row for a
            previously used appointment_id is returned instead

        Raises:
            DuplicateBooking: If the patient already has a PENDING
                              appointment at the clinic
        """
        with self.SessionLocal() as db:
            existing = self._find_by_token(db, request.appointment_id)
            if existing is not None:
                logger.info("appointment_create_replayed", appointment_id=request.appointment_id)
                return existing.to_dict(), False

            record = AppointmentRecord(
                appointment_id=request.appointment_id,
                clinic_id=request.clinic_id,
                doctor_id=request.doctor_id,
                patient_id=request.patient_id,
                consultation_fees=request.consultation_fees,
                discount=request.discount,
                schedule=request.schedule,
                appointment_date=request.appointment_date,
                remarks=request.remarks,
                status=int(request.status),
                type=request.type,
                payment_method=request.payment_method,
                created_at=request.created_at,
            )
            db.add(record)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                # Lost a race on the same token: the other insert won
                existing = self._find_by_token(db, request.appointment_id)
                if existing is not None:
                    return existing.to_dict(), False
                logger.warning(
                    "appointment_duplicate_pending",
                    patient_id=request.patient_id,
                    clinic_id=request.clinic_id,
                )
                raise DuplicateBooking(
                    "You already have a pending appointment at this clinic"
                ) from e

            db.refresh(record)
            logger.info("appointment_stored", id=record.id, appointment_id=record.appointment_id)
            return record.to_dict(), True

    def get(self, appointment_id: int) -> Dict[str, Any]:
        with self.SessionLocal() as db:
            return self._get_record(db, appointment_id).to_dict()

    def list(
        self,
        patient_id: Optional[str] = None,
        clinic_id: Optional[str] = None,
        status: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self.SessionLocal() as db:
            query = db.query(AppointmentRecord)
            if patient_id is not None:
                query = query.filter(AppointmentRecord.patient_id == str(patient_id))
            if clinic_id is not None:
                query = query.filter(AppointmentRecord.clinic_id == str(clinic_id))
            if status is not None:
                query = query.filter(AppointmentRecord.status == int(status))
            records = query.order_by(AppointmentRecord.schedule, AppointmentRecord.id).all()
            return [record.to_dict() for record in records]

    def update_status(
        self,
        appointment_id: int,
        status: AppointmentStatus,
        reason: Optional[str] = None,
        version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Change an appointment's status.

        Raises:
            AppointmentNotFound: Unknown id
            ConcurrentModification: version does not match the stored row
            InvalidTransition: status is not reachable from the current one
        """
        with self.SessionLocal() as db:
            record = self._get_record(db, appointment_id)
            self._check_version(record, version)
            self._check_transition(record, status)

            record.status = int(status)
            if status == AppointmentStatus.CANCELLED:
                record.cancellation_reason = reason
            record.version += 1
            self._commit(db, record)
            logger.info("appointment_status_updated", id=appointment_id, status=int(status))
            return record.to_dict()

    def reschedule(
        self,
        appointment_id: int,
        schedule: dt.datetime,
        version: Optional[int] = None,
        now: Optional[dt.datetime] = None,
    ) -> Dict[str, Any]:
        """
        Move an appointment and reset it to PENDING in one transaction.

        Raises:
            AppointmentNotFound: Unknown id
            ConcurrentModification: version does not match the stored row
            InvalidTransition: The appointment is completed or cancelled
            ValidationError: The new slot is in the past
        """
        now = now or dt.datetime.now()
        with self.SessionLocal() as db:
            record = self._get_record(db, appointment_id)
            self._check_version(record, version)
            self._check_transition(record, AppointmentStatus.PENDING)

            if schedule.date() < now.date():
                raise ValidationError("Cannot reschedule to a past date", ["appointment_date"])
            if schedule <= now:
                raise ValidationError("Cannot reschedule to a past time", ["schedule"])

            record.appointment_date = schedule.date()
            record.schedule = schedule
            record.status = int(AppointmentStatus.PENDING)
            record.version += 1
            self._commit(db, record)
            logger.info("appointment_rescheduled", id=appointment_id, schedule=schedule.isoformat())
            return record.to_dict()

    def cancel_lapsed(self, now: Optional[dt.datetime] = None) -> int:
        """
        Cancel PENDING and SCHEDULED appointments whose slot has passed.

        Returns:
            Number of cancelled appointments
        """
        now = now or dt.datetime.now()
        with self.SessionLocal() as db:
            records = db.query(AppointmentRecord).filter(
                AppointmentRecord.status.in_([int(s) for s in LIVE_STATUSES]),
                AppointmentRecord.schedule < now,
            ).all()
            for record in records:
                record.status = int(AppointmentStatus.CANCELLED)
                record.cancellation_reason = config.LAPSED_CANCELLATION_REASON
                record.auto_cancelled = True
                record.version += 1
            db.commit()

        logger.info("lapsed_appointments_cancelled", count=len(records))
        return len(records)

    # Doctors ------------------------------------------------------------

    def add_doctor(
        self,
        clinic_id: str,
        name: str,
        specialization: Optional[str] = None,
        consultation_fee=None,
        experience_years: int = 0,
        rating: Optional[float] = None,
        is_active: bool = True,
    ) -> Dict[str, Any]:
        with self.SessionLocal() as db:
            record = DoctorRecord(
                clinic_id=str(clinic_id),
                name=name,
                specialization=specialization,
                consultation_fee=consultation_fee,
                experience_years=experience_years,
                rating=rating,
                is_active=is_active,
            )
            db.add(record)
            db.commit()
            db.refresh(record)
            return record.to_dict()

    def list_doctors(self, clinic_id: str) -> List[Dict[str, Any]]:
        with self.SessionLocal() as db:
            records = db.query(DoctorRecord).filter(
                DoctorRecord.clinic_id == str(clinic_id)
            ).order_by(DoctorRecord.id).all()
            return [record.to_dict() for record in records]

    # Helpers ------------------------------------------------------------

    @staticmethod
    def _find_by_token(db: Session, token: str) -> Optional[AppointmentRecord]:
        return db.query(AppointmentRecord).filter(AppointmentRecord.appointment_id == token).first()

    @staticmethod
    def _get_record(db: Session, appointment_id: int) -> AppointmentRecord:
        record = db.get(AppointmentRecord, appointment_id)
        if record is None:
            raise AppointmentNotFound(f"Appointment {appointment_id} not found")
        return record

    @staticmethod
    def _check_version(record: AppointmentRecord, version: Optional[int]) -> None:
        if version is not None and record.version != version:
            raise ConcurrentModification(
                "This appointment was changed by someone else. Please reload and try again."
            )

    @staticmethod
    def _check_transition(record: AppointmentRecord, intended: AppointmentStatus) -> None:
        current = AppointmentStatus(record.status)
        if not validate_transition(current, intended):
            code, message = rejection_for(current, _ACTIONS[intended])
            raise InvalidTransition(message, code=code, status=current)

    @staticmethod
    def _commit(db: Session, record: AppointmentRecord) -> None:
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicateBooking(
                "You already have a pending appointment at this clinic"
            ) from e
        db.refresh(record)
