"""
Tests for the service error taxonomy.

Covers status code mapping, body message overrides, Retry-After parsing and
normalization of arbitrary exceptions.
"""

import asyncio

import aiohttp
import pytest

from agriintel.api.errors import (
    AuthenticationError,
    ErrorCode,
    NetworkError,
    RateLimitError,
    ServiceError,
    ServiceTimeoutError,
    error_from_response,
    normalize_error,
    parse_retry_after,
)


class TestErrorTypes:
    """Test the fixed attributes of each error type."""

    def test_network_error_is_retryable_and_keeps_cause(self):
        cause = ConnectionResetError("reset")
        error = NetworkError("connection reset", cause)

        assert error.code == ErrorCode.NETWORK_ERROR
        assert error.status_code is None
        assert error.is_retryable is True
        assert error.original_error is cause

    def test_timeout_error_defaults(self):
        error = ServiceTimeoutError()

        assert error.message == "Request timeout"
        assert error.code == ErrorCode.TIMEOUT_ERROR
        assert error.status_code == 408
        assert error.is_retryable is True

    def test_rate_limit_error_carries_retry_after(self):
        error = RateLimitError(retry_after=3.0)

        assert error.message == "Rate limit exceeded"
        assert error.status_code == 429
        assert error.retry_after == 3.0
        assert error.is_retryable is True

    def test_authentication_error_not_retryable(self):
        error = AuthenticationError()

        assert error.code == ErrorCode.AUTH_ERROR
        assert error.status_code == 401
        assert error.is_retryable is False

    def test_subclasses_share_base(self):
        for error in (NetworkError("x"), ServiceTimeoutError(), RateLimitError(), AuthenticationError()):
            assert isinstance(error, ServiceError)


class TestErrorFromResponse:
    """Test HTTP status classification."""

    @pytest.mark.parametrize("status,code,message", [
        (400, ErrorCode.BAD_REQUEST, "Bad request"),
        (403, ErrorCode.FORBIDDEN, "Access forbidden"),
        (404, ErrorCode.NOT_FOUND, "Resource not found"),
    ])
    def test_client_errors_are_fatal(self, status, code, message):
        error = error_from_response(status)

        assert error.code == code
        assert error.message == message
        assert error.status_code == status
        assert error.is_retryable is False

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_are_retryable(self, status):
        error = error_from_response(status)

        assert error.code == ErrorCode.SERVER_ERROR
        assert error.message == "Server error"
        assert error.is_retryable is True

    def test_401_maps_to_authentication_error(self):
        error = error_from_response(401)

        assert isinstance(error, AuthenticationError)
        assert error.message == "Authentication required"

    def test_429_honours_retry_after_header(self):
        error = error_from_response(429, {"Retry-After": "7"})

        assert isinstance(error, RateLimitError)
        assert error.retry_after == 7.0

    def test_429_body_message_keeps_rate_limit_prefix(self):
        error = error_from_response(429, body={"message": "Too many requests, slow down"})

        assert isinstance(error, RateLimitError)
        assert error.message == "Rate limit exceeded: Too many requests, slow down"

    def test_unlisted_status_is_http_error(self):
        teapot = error_from_response(418)
        gateway = error_from_response(507)

        assert teapot.code == ErrorCode.HTTP_ERROR
        assert teapot.message == "HTTP 418"
        assert teapot.is_retryable is False
        assert gateway.code == ErrorCode.HTTP_ERROR
        assert gateway.is_retryable is True

    def test_body_message_overrides_default(self):
        assert error_from_response(404, body={"message": "Animal not found"}).message == "Animal not found"
        assert error_from_response(400, body={"error": "Tag is required"}).message == "Tag is required"
        assert error_from_response(500, body={"success": False}).message == "Server error"


class TestParseRetryAfter:
    """Test Retry-After parsing."""

    def test_numeric_seconds(self):
        assert parse_retry_after("2.5") == 2.5

    def test_missing_or_invalid(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
        assert parse_retry_after("-1") is None


class TestNormalizeError:
    """Test conversion of arbitrary exceptions."""

    def test_service_error_passes_through(self):
        error = AuthenticationError()
        assert normalize_error(error) is error

    def test_timeout_becomes_timeout_error(self):
        error = normalize_error(asyncio.TimeoutError())

        assert isinstance(error, ServiceTimeoutError)
        assert error.message == "Request timeout"

    def test_client_error_becomes_network_error(self):
        cause = aiohttp.ClientConnectionError("refused")
        error = normalize_error(cause)

        assert isinstance(error, NetworkError)
        assert error.original_error is cause

    def test_unknown_exception(self):
        error = normalize_error(ValueError("boom"))

        assert error.code == ErrorCode.UNKNOWN_ERROR
        assert error.message == "boom"
        assert error.is_retryable is False
