"""
Natours API — Exception Hierarchy Unit Tests
=============================================

What we test:
    ✅ status is "fail" for 4xx and "error" otherwise
    ✅ attributes are read-only
    ✅ subclasses carry the right status codes and extras
    ✅ UnexpectedError wraps a defect as non-operational
"""

import pytest

from natours.exceptions import (
    AppError,
    BadRequestError,
    NotConfiguredError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitExceededError,
    UnexpectedError,
    UnsupportedMediaTypeError,
)


class TestAppError:
    def test_client_error_status_is_fail(self):
        error = AppError("nope", 404)
        assert error.status == "fail"
        assert error.is_operational is True
        assert str(error) == "nope"

    def test_server_error_status_is_error(self):
        assert AppError("boom", 500).status == "error"
        assert AppError("not here", 501).status == "error"

    def test_attributes_are_read_only(self):
        error = AppError("nope", 404)
        with pytest.raises(AttributeError):
            error.status_code = 500
        with pytest.raises(AttributeError):
            error.message = "changed"
        with pytest.raises(AttributeError):
            error.is_operational = False

    def test_repr_names_fields(self):
        assert "status_code=404" in repr(NotFoundError("x"))


class TestSubclasses:
    @pytest.mark.parametrize(
        "error, status_code",
        [
            (BadRequestError(), 400),
            (NotFoundError(), 404),
            (PayloadTooLargeError(limit=10), 413),
            (UnsupportedMediaTypeError(), 415),
            (RateLimitExceededError(retry_after=30), 429),
            (NotConfiguredError(), 501),
        ],
    )
    def test_status_codes(self, error, status_code):
        assert error.status_code == status_code
        assert error.is_operational is True

    def test_rate_limit_message_and_retry_after(self):
        error = RateLimitExceededError(retry_after=42)
        assert error.message == "Too many requests from this IP, please try again in an hour!"
        assert error.retry_after == 42

    def test_payload_too_large_keeps_limit(self):
        error = PayloadTooLargeError(limit=10240)
        assert error.limit == 10240
        assert error.message == "Request entity too large"


class TestUnexpectedError:
    def test_wraps_defect(self):
        original = KeyError("price")
        error = UnexpectedError(original)
        assert error.is_operational is False
        assert error.status_code == 500
        assert error.status == "error"
        assert error.original is original
        assert error.__cause__ is original

    def test_message_falls_back_to_type_name(self):
        assert UnexpectedError(RuntimeError()).message == "RuntimeError"
