"""Client for the doctor directory."""
from typing import List, Optional

import pydantic
import requests

from clinic_booking.circuit_breaker import CircuitBreakerOpen
from clinic_booking.errors import DirectoryError
from clinic_booking.http_client import ApiClient
from clinic_booking.logging_config import get_logger
from clinic_booking.models import DoctorSummary

logger = get_logger(__name__)


class DoctorDirectory:
    """Read-only access to the doctors of a clinic."""

    def __init__(self, client: Optional[ApiClient] = None):
        self.client = client or ApiClient(name="doctor-directory")

    def list_by_clinic(self, clinic_id: str) -> List[DoctorSummary]:
        """
        Get the doctors of a clinic.

        Rows that cannot be parsed are skipped with a warning; specialties
        are normalized on ingestion.

        Raises:
            DirectoryError: If the directory cannot be reached or answers badly
        """
        try:
            response = self.client.request("GET", f"/doctors/clinic/{clinic_id}")
            body = response.json()
        except (requests.exceptions.RequestException, CircuitBreakerOpen, ValueError) as e:
            logger.error("doctor_fetch_failed", clinic_id=clinic_id, error=str(e))
            raise DirectoryError("Failed to load doctors for this clinic") from e

        rows = body.get("data") if isinstance(body, dict) else body
        if not isinstance(rows, list):
            logger.error("doctor_fetch_unexpected_body", clinic_id=clinic_id)
            raise DirectoryError("Failed to load doctors for this clinic")

        doctors = []
        for row in rows:
            try:
                doctors.append(DoctorSummary.from_directory(row))
            except pydantic.ValidationError as e:
                logger.warning("doctor_row_skipped", clinic_id=clinic_id, error=str(e))

        logger.info("doctors_fetched", clinic_id=clinic_id, count=len(doctors))
        return doctors
