"""Configuration for the clinic booking core.

Business rules are centralized here - modify as needed without touching code.
Deployment settings can be overridden through environment variables or a .env file.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# API Configuration
APPOINTMENT_API_BASE_URL = os.getenv("APPOINTMENT_API_BASE_URL", "http://localhost:5000/api")
MOCK_API_PORT = int(os.getenv("MOCK_API_PORT", "5000"))
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///appointments.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Network calls are bounded and not retried unless explicitly enabled
REQUEST_TIMEOUT_SECONDS = 15
HTTP_MAX_RETRIES = int(os.getenv("HTTP_MAX_RETRIES", "0"))
CIRCUIT_FAILURE_THRESHOLD = 5
CIRCUIT_RESET_SECONDS = 60

# Refuse to submit while the patient already has a pending booking at the clinic
ENFORCE_DUPLICATE_GUARD = _env_flag("ENFORCE_DUPLICATE_GUARD", "true")

BUSINESS_HOURS = {
    "open_hour": 9,
    "close_hour": 17,
    "slot_minutes": 30,
    "lunch_hour": 12,  # None disables the lunch exclusion
}

DATE_WINDOW_DAYS = 7

DEFAULT_CONSULTATION_FEE = "50.00"
DEFAULT_DISCOUNT = "0.00"
DEFAULT_APPOINTMENT_TYPE = "consultation"
DEFAULT_PAYMENT_METHOD = "cash"
DEFAULT_SPECIALTY = "General Medicine"
DEFAULT_DOCTOR_RATING = 4.5
MAX_POPULAR_SPECIALTIES = 8

APPOINTMENT_TYPES = [
    {
        "value": "consultation",
        "label": "General Consultation",
        "specialties": ["General Medicine", "Family Medicine", "Internal Medicine"],
    },
    {
        "value": "dental",
        "label": "Dental",
        "specialties": ["Dentistry", "Orthodontics", "Oral Surgery"],
    },
    {
        "value": "cardiology",
        "label": "Heart & Cardiology",
        "specialties": ["Cardiology", "Hypertension", "Heart Disease"],
    },
    {
        "value": "pediatrics",
        "label": "Pediatrics",
        "specialties": ["Pediatrics", "Child Care", "Vaccinations"],
    },
    {
        "value": "orthopedics",
        "label": "Orthopedics",
        "specialties": ["Orthopedics", "Sports Medicine", "Joint Pain"],
    },
    {
        "value": "diabetes",
        "label": "Diabetes Care",
        "specialties": ["Diabetes", "Endocrinology", "Metabolic Disorders"],
    },
    {
        "value": "screening",
        "label": "Health Screening",
        "specialties": ["General Medicine", "Preventive Care"],
    },
]

LAPSED_CANCELLATION_REASON = "Automatically cancelled - appointment date passed"
