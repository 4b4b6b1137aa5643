"""SQLAlchemy database models for the reference store."""
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _money(value):
    return f"{value:.2f}" if value is not None else None


class AppointmentRecord(Base):
    """Appointment table.

    A patient may hold at most one PENDING appointment per clinic; the
    partial unique index enforces it. appointment_id is the client token and
    doubles as the idempotency key for create.
    """
    __tablename__ = "appointment"
    __table_args__ = (
        Index(
            "uq_appointment_pending_patient_clinic",
            "patient_id",
            "clinic_id",
            unique=True,
            sqlite_where=text("status = 0"),
            postgresql_where=text("status = 0"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(String(255), nullable=False, unique=True, index=True)
    clinic_id = Column(String(100), nullable=False, index=True)
    doctor_id = Column(String(100), nullable=False)
    patient_id = Column(String(100), nullable=False, index=True)
    consultation_fees = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    schedule = Column(DateTime, nullable=False)
    appointment_date = Column(Date, nullable=False)
    remarks = Column(Text, nullable=True)
    status = Column(Integer, nullable=False, default=0, index=True)  # 0=pending, 1=scheduled, 2=completed, 3=cancelled
    type = Column(String(50), nullable=False)
    payment_method = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    cancellation_reason = Column(Text, nullable=True)
    auto_cancelled = Column(Boolean, default=False, nullable=False)
    version = Column(Integer, default=1, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "appointment_id": self.appointment_id,
            "clinic_id": self.clinic_id,
            "doctor_id": self.doctor_id,
            "patient_id": self.patient_id,
            "consultation_fees": _money(self.consultation_fees),
            "discount": _money(self.discount),
            "schedule": self.schedule.strftime("%Y-%m-%dT%H:%M:%S"),
            "appointment_date": self.appointment_date.isoformat(),
            "remarks": self.remarks or "",
            "status": self.status,
            "type": self.type,
            "payment_method": self.payment_method,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "cancellation_reason": self.cancellation_reason,
            "auto_cancelled": bool(self.auto_cancelled),
            "version": self.version,
        }

    def __repr__(self):
        return f"<AppointmentRecord(id={self.id}, appointment_id={self.appointment_id}, status={self.status})>"


class DoctorRecord(Base):
    """Doctor directory table.

    specialization is stored exactly as the directory received it: a plain
    string, a comma separated list or a JSON encoded list.
    """
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    clinic_id = Column(String(100), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    specialization = Column(Text, nullable=True)
    consultation_fee = Column(Numeric(10, 2), nullable=True)
    experience_years = Column(Integer, default=0, nullable=False)
    rating = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "_id": self.id,
            "clinic_id": self.clinic_id,
            "name": self.name,
            "specialization": self.specialization,
            "consultation_fee": _money(self.consultation_fee),
            "experience_years": self.experience_years,
            "rating": self.rating,
            "is_active": bool(self.is_active),
        }

    def __repr__(self):
        return f"<DoctorRecord(id={self.id}, clinic_id={self.clinic_id}, active={self.is_active})>"
