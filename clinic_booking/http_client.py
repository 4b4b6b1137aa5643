"""HTTP access to the appointment store and doctor directory.

Pattern: requests.Session with connection pooling, a tenacity wrapper that
applies the timeout and (optional) retries, and a circuit breaker per
collaborator.

- 15-second timeout on all requests
- No automatic retry by default: a timeout or server error ends the attempt
  and the caller decides whether to re-issue. HTTP_MAX_RETRIES enables
  exponential-backoff retries of transient failures.
- Circuit breaker fails fast once a collaborator keeps failing
"""
import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log
)

from clinic_booking import config
from clinic_booking.circuit_breaker import CircuitBreaker

# tenacity's before_sleep_log expects a stdlib logger
logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def is_transient_error(exc: BaseException) -> bool:
    """Connection errors, timeouts and 429/5xx responses."""
    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return True
    if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
        return exc.response.status_code in RETRYABLE_STATUS
    return False


def _with_timeout_and_retry(send, max_retries: int, timeout: float, backoff_multiplier: float):
    @retry(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=backoff_multiplier, max=8),
        retry=retry_if_exception(is_transient_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    def send_with_timeout(*args, **kwargs):
        kwargs.setdefault('timeout', timeout)
        response = send(*args, **kwargs)
        response.raise_for_status()
        return response

    return send_with_timeout


def create_http_session(
    max_retries: int = config.HTTP_MAX_RETRIES,
    timeout: float = config.REQUEST_TIMEOUT_SECONDS,
    backoff_multiplier: float = 1.0
) -> requests.Session:
    """
    Create HTTP session with timeout, optional retry and connection pooling.

    Args:
        max_retries: Retries after the first attempt (default: 0, no retry)
        timeout: Request timeout in seconds (default: 15)
        backoff_multiplier: Exponential backoff multiplier; retry delays
                            are 1s, 2s, 4s... at 1.0

    Returns:
        requests.Session whose get/post/patch raise for non-2xx responses
    """
    session = requests.Session()

    # Retries are handled by tenacity only, never by urllib3
    adapter = HTTPAdapter(
        max_retries=0,
        pool_connections=10,
        pool_maxsize=10,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.get = _with_timeout_and_retry(session.get, max_retries, timeout, backoff_multiplier)
    session.post = _with_timeout_and_retry(session.post, max_retries, timeout, backoff_multiplier)
    session.patch = _with_timeout_and_retry(session.patch, max_retries, timeout, backoff_multiplier)

    return session


class ApiClient:
    """One collaborator's base URL, session and circuit breaker."""

    def __init__(
        self,
        name: str,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.name = name
        self.base_url = (base_url or config.APPOINTMENT_API_BASE_URL).rstrip("/")
        self.session = session or create_http_session()
        self.breaker = breaker or CircuitBreaker(
            name=name,
            failure_threshold=config.CIRCUIT_FAILURE_THRESHOLD,
            timeout=config.CIRCUIT_RESET_SECONDS,
            counts_as_failure=is_transient_error,
        )

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Make API call with circuit breaker protection.

        Args:
            method: HTTP method (GET, POST, PATCH)
            path: Path relative to the base URL
            **kwargs: Additional arguments for requests

        Raises:
            CircuitBreakerOpen: If circuit is open
            requests.exceptions.*: If request fails
        """
        senders = {
            "GET": self.session.get,
            "POST": self.session.post,
            "PATCH": self.session.patch,
        }
        send = senders.get(method.upper())
        if send is None:
            raise ValueError(f"Unsupported HTTP method: {method}")

        return self.breaker.call(send, self.url(path), **kwargs)
