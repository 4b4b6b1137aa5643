"""Tests for structured logging."""
import structlog
from flask import Flask, jsonify

from clinic_booking.logging_config import (
    RequestIDMiddleware,
    generate_request_id,
    get_logger,
    setup_structured_logging,
)


def make_app():
    app = Flask(__name__)

    @app.route('/test')
    def test_route():
        return jsonify(structlog.contextvars.get_contextvars())

    app.wsgi_app = RequestIDMiddleware(app.wsgi_app)
    return app


class TestStructuredLogging:
    """Test structured logging with request IDs."""

    def test_logger_methods_work(self):
        setup_structured_logging(log_level="INFO")
        logger = get_logger(__name__)

        # These should not raise
        logger.info("appointment_created", id=1)
        logger.warning("duplicate_check_skipped", patient_id="P1")
        logger.error("store_request_failed", error="refused")

    def test_generate_request_id_format(self):
        request_id = generate_request_id()

        assert request_id.startswith("req-")
        assert len(request_id) == 16  # "req-" (4) + 12 hex chars
        assert request_id != generate_request_id()


class TestRequestIDMiddleware:

    def test_adds_header(self):
        with make_app().test_client() as client:
            response = client.get('/test')

        request_id = response.headers['X-Request-ID']
        assert request_id.startswith('req-')
        assert len(request_id) == 16

    def test_keeps_client_request_id(self):
        with make_app().test_client() as client:
            response = client.get('/test', headers={'X-Request-ID': 'req-from-client'})

        assert response.headers['X-Request-ID'] == 'req-from-client'

    def test_binds_request_id_for_the_request(self):
        """Log lines emitted while handling the request carry its id."""
        with make_app().test_client() as client:
            response = client.get('/test', headers={'X-Request-ID': 'req-abc'})

        assert response.get_json()["request_id"] == "req-abc"
        assert "request_id" not in structlog.contextvars.get_contextvars()
