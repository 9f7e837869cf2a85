"""
Tests for the relaybot error handling module.
"""

import asyncio
import logging

from errors import (
    ErrorCode,
    RelayError,
    ConduitError,
    AuthenticationError,
    SessionStoreError,
    ExtractionError,
    HandlerError,
    LifecycleError,
    ValidationError,
    NotFoundError,
    error_response,
    success_response,
    handle_async_errors,
    log_error,
)


class TestErrorCodes:
    """Test error code enum."""

    def test_error_codes_are_strings(self):
        """Error codes should be string values."""
        assert ErrorCode.CONDUIT_TIMEOUT.value == "CONDUIT_TIMEOUT"
        assert ErrorCode.NOT_FOUND_WORKER.value == "NOT_FOUND_WORKER"

    def test_error_codes_have_categories(self):
        """Error codes should follow category naming convention."""
        conduit_codes = [c for c in ErrorCode if c.value.startswith("CONDUIT_")]
        assert len(conduit_codes) >= 3

        validation_codes = [c for c in ErrorCode if c.value.startswith("VALIDATION_")]
        assert len(validation_codes) >= 3


class TestRelayError:
    """Test base RelayError exception."""

    def test_basic_creation(self):
        """Create basic error with message."""
        err = RelayError("Test error")
        assert err.message == "Test error"
        assert err.details is None
        assert err.code == ErrorCode.INTERNAL_UNEXPECTED
        assert err.recoverable is False

    def test_with_context(self):
        """Create error with additional context."""
        err = RelayError("Test error", worker="worker0", attempt=3)
        assert err.context == {"worker": "worker0", "attempt": 3}

    def test_str_representation(self):
        """String representation includes message and details."""
        assert str(RelayError("Test error", details="More info")) == "Test error - More info"
        assert str(RelayError("Test error")) == "Test error"

    def test_to_dict(self):
        """Convert error to dictionary."""
        d = RelayError("Test error", details="More info", key="value").to_dict()
        assert d["code"] == ErrorCode.INTERNAL_UNEXPECTED.value
        assert d["message"] == "Test error"
        assert d["details"] == "More info"
        assert d["recoverable"] is False
        assert d["context"] == {"key": "value"}


class TestConduitError:
    """Test ConduitError exception."""

    def test_default_code(self):
        err = ConduitError("Page closed")
        assert err.code == ErrorCode.CONDUIT_UNAVAILABLE
        assert err.recoverable is True

    def test_timeout_error_type(self):
        err = ConduitError("Timed out", locator="#pane-side", error_type="timeout")
        assert err.code == ErrorCode.CONDUIT_TIMEOUT
        assert err.context == {"locator": "#pane-side"}

    def test_action_error_type(self):
        assert ConduitError("Click failed", error_type="action").code == ErrorCode.CONDUIT_ACTION_FAILED


class TestDomainErrors:
    """Codes chosen by the remaining subclasses."""

    def test_authentication_error(self):
        assert AuthenticationError("Not confirmed", attempts=12).code == ErrorCode.AUTH_TIMEOUT
        assert AuthenticationError("Rejected", rejected=True).code == ErrorCode.AUTH_CREDENTIAL_REJECTED
        assert AuthenticationError("Not confirmed", attempts=12).context == {"attempts": 12}

    def test_session_store_error(self):
        assert SessionStoreError("x").code == ErrorCode.SESSION_LOAD_FAILED
        assert SessionStoreError("x", operation="save").code == ErrorCode.SESSION_SAVE_FAILED
        assert SessionStoreError("x", operation="remove").code == ErrorCode.SESSION_REMOVE_FAILED
        assert SessionStoreError("x", identity="acme/worker0").context == {"identity": "acme/worker0"}

    def test_extraction_error(self):
        assert ExtractionError("x").code == ErrorCode.EXTRACTION_FAILED
        assert ExtractionError("x", incomplete=True).code == ErrorCode.EXTRACTION_INCOMPLETE

    def test_handler_error(self):
        err = HandlerError("Handler failed", handler="fuzzy_auto_responder", data_id="id-1")
        assert err.code == ErrorCode.HANDLER_FAILED
        assert err.context == {"handler": "fuzzy_auto_responder", "data_id": "id-1"}

    def test_lifecycle_error_is_not_recoverable(self):
        err = LifecycleError("Invalid transition", current="failed", requested="ready")
        assert err.code == ErrorCode.INTERNAL_STATE_ERROR
        assert err.recoverable is False
        assert err.context == {"current": "failed", "requested": "ready"}

    def test_validation_error(self):
        err = ValidationError("Invalid value", parameter="to", expected="digits", received="abc")
        assert err.code == ErrorCode.VALIDATION_MISSING_PARAM
        assert err.context == {"parameter": "to", "expected": "digits", "received": "abc"}

    def test_not_found_resource_types(self):
        assert NotFoundError("x").code == ErrorCode.NOT_FOUND_FILE
        assert NotFoundError("x", resource_type="worker").code == ErrorCode.NOT_FOUND_WORKER
        assert NotFoundError("x", resource_type="contact").code == ErrorCode.NOT_FOUND_CONTACT


class TestErrorResponse:
    """Test error_response function."""

    def test_relay_error_response(self):
        """Convert RelayError to response dict."""
        err = NotFoundError("No matching contact found", resource_type="contact", resource_id="5511")
        resp = error_response(err, scope="send_message")

        assert resp["success"] is False
        assert resp["error"]["code"] == "NOT_FOUND_CONTACT"
        assert resp["error"]["message"] == "No matching contact found"
        assert resp["error"]["scope"] == "send_message"
        assert resp["error"]["recoverable"] is True
        assert resp["error"]["context"] == {"resource_type": "contact", "resource_id": "5511"}

    def test_generic_exception_response(self):
        """Convert generic Exception to response dict."""
        resp = error_response(ValueError("Bad value"), scope="test")

        assert resp["success"] is False
        assert resp["error"]["code"] == "INTERNAL_UNEXPECTED"
        assert resp["error"]["message"] == "Bad value"
        assert resp["error"]["recoverable"] is False

    def test_without_context(self):
        """Exclude context when requested."""
        resp = error_response(NotFoundError("No worker", resource_id="worker9"), include_context=False)
        assert resp["error"]["context"] is None


class TestSuccessResponse:
    """Test success_response function."""

    def test_basic_success(self):
        assert success_response() == {"success": True}

    def test_with_kwargs(self):
        resp = success_response(worker_id="worker0", sent=2)
        assert resp == {"success": True, "worker_id": "worker0", "sent": 2}

    def test_with_data_dict(self):
        resp = success_response({"items": [1, 2], "count": 2})
        assert resp["items"] == [1, 2]
        assert resp["count"] == 2


class TestHandleAsyncErrors:
    """Test handle_async_errors decorator."""

    def test_success_passthrough(self):
        @handle_async_errors("test")
        async def my_func():
            return {"success": True, "result": 42}

        assert asyncio.run(my_func()) == {"success": True, "result": 42}

    def test_relay_error_handling(self):
        @handle_async_errors("send_message")
        async def my_func():
            raise ConduitError("Element did not appear", error_type="timeout")

        result = asyncio.run(my_func())
        assert result["success"] is False
        assert result["error"]["code"] == "CONDUIT_TIMEOUT"
        assert result["error"]["scope"] == "send_message"

    def test_generic_exception_handling(self):
        @handle_async_errors("test")
        async def my_func():
            raise ValueError("Bad value")

        result = asyncio.run(my_func())
        assert result["error"]["code"] == "INTERNAL_UNEXPECTED"

    def test_logging(self, caplog):
        @handle_async_errors("test")
        async def my_func():
            raise NotFoundError("Not found", resource_type="worker")

        with caplog.at_level(logging.ERROR):
            asyncio.run(my_func())

        assert "NOT_FOUND_WORKER" in caplog.text
        assert "Not found" in caplog.text

    def test_preserves_function_metadata(self):
        @handle_async_errors("test")
        async def my_func():
            """My docstring."""
            return {"success": True}

        assert asyncio.iscoroutinefunction(my_func)
        assert my_func.__name__ == "my_func"
        assert my_func.__doc__ == "My docstring."


class TestLogError:
    """Test log_error helper."""

    def test_relay_error_format(self, caplog):
        logger = logging.getLogger("test.log_error")
        with caplog.at_level(logging.ERROR):
            log_error(logger, ExtractionError("Candidate dropped"), context="acme/worker0", include_traceback=False)

        assert "[acme/worker0] EXTRACTION_FAILED: Candidate dropped" in caplog.text

    def test_plain_exception_format(self, caplog):
        logger = logging.getLogger("test.log_error")
        with caplog.at_level(logging.ERROR):
            log_error(logger, RuntimeError("boom"), include_traceback=False)

        assert "boom" in caplog.text
