"""Tests for error conversion, history and user-facing messages."""

import json

import httpx
import pytest
from hypothesis import given, settings, strategies as st

from bgg_collections.services.errors import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    NetworkError,
    ValidationError,
)


def status_error(status_code: int, url: str = "https://bgg.test/xmlapi2/collection") -> httpx.HTTPStatusError:
    request = httpx.Request("GET", url)
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(f"HTTP {status_code}", request=request, response=response)


class TestErrorHandlingProperties:
    """Property-based tests for user-friendly error handling."""

    @given(
        error_type=st.sampled_from(["connect", "timeout", "status", "transport"]),
        error_message=st.text(min_size=1, max_size=100),
        status_code=st.integers(min_value=400, max_value=599),
    )
    @settings(deadline=None)
    def test_network_errors_become_user_friendly(self, error_type: str, error_message: str, status_code: int) -> None:
        """Every httpx failure maps to a recoverable network error with suggestions."""
        request = httpx.Request("GET", "https://bgg.test/xmlapi2/thing")
        if error_type == "connect":
            error: Exception = httpx.ConnectError(error_message, request=request)
        elif error_type == "timeout":
            error = httpx.ReadTimeout(error_message, request=request)
        elif error_type == "status":
            error = status_error(status_code)
        else:
            error = httpx.RemoteProtocolError(error_message, request=request)

        friendly = ErrorHandlingService().handle_error(error, "fetch", "BggGatewayService", {"url": str(request.url)})

        assert friendly.category == ErrorCategory.NETWORK
        assert friendly.recoverable
        assert friendly.message
        assert friendly.suggested_actions
        assert friendly.technical_details is not None

    @given(message=st.text(min_size=1, max_size=50), count=st.integers(min_value=1, max_value=30))
    @settings(deadline=None)
    def test_history_is_bounded(self, message: str, count: int) -> None:
        service = ErrorHandlingService(max_history_size=10)

        for _ in range(count):
            service.handle_error(ValueError(message), "parse", "BggGatewayService")

        assert len(service.get_recent_errors(100)) == min(count, 10)
        assert service.get_error_count_by_category() == {ErrorCategory.PARSING: min(count, 10)}


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (404, "The requested resource was not found."),
        (429, "Too many requests. Waiting before trying again."),
        (503, "BoardGameGeek is temporarily unavailable. Please try again later."),
        (418, "HTTP error 418 occurred."),
    ],
)
def test_http_status_messages(status_code: int, expected: str) -> None:
    friendly = ErrorHandlingService().handle_error(status_error(status_code), "fetch", "BggGatewayService")

    assert friendly.message == expected


def test_throttling_suggests_waiting() -> None:
    friendly = ErrorHandlingService().handle_error(status_error(429), "fetch", "BggGatewayService")

    assert "loading will resume automatically" in friendly.suggested_actions[0]


def test_storage_errors_are_warnings() -> None:
    service = ErrorHandlingService()

    try:
        json.loads("{not json")
    except json.JSONDecodeError as e:
        decode_error = e
    invalid_json = service.handle_error(decode_error, "load_cache", "CollectionCache", {"key": "collections"})
    disk_full = service.handle_error(OSError("disk full"), "store_cache", "CollectionCache", {"key": "extrainfo"})

    assert invalid_json.category == ErrorCategory.STORAGE
    assert invalid_json.severity == ErrorSeverity.WARNING
    assert "Key: collections" in (invalid_json.technical_details or "")
    assert disk_full.category == ErrorCategory.STORAGE
    assert "disk full" in disk_full.message


def test_app_errors_pass_through() -> None:
    error = ValidationError("Unknown sort option: shuffle", field="sort_option", value="shuffle", constraints=["a sort key"])

    friendly = ErrorHandlingService().handle_error(error, "get_sorter", "sorters")

    assert friendly.message == "Unknown sort option: shuffle"
    assert friendly.category == ErrorCategory.VALIDATION
    assert "Ensure: a sort key" in friendly.suggested_actions


def test_unexpected_errors_keep_technical_details() -> None:
    friendly = ErrorHandlingService().handle_error(RuntimeError("boom"), "run", "main")

    assert friendly.category == ErrorCategory.UNEXPECTED
    assert friendly.technical_details == "RuntimeError: boom"


def test_create_user_message_lists_suggestions() -> None:
    service = ErrorHandlingService()
    friendly = ConfigurationError("Invalid configuration", errors=["chunk_size must be an integer between 1 and 50"]).to_user_friendly()

    message = service.create_user_message(friendly)

    assert message.startswith("Invalid configuration")
    assert "Suggested actions:" in message
    assert "Check the configuration settings" in message
    assert service.create_user_message(friendly, include_suggestions=False) == "Invalid configuration"


def test_network_error_details() -> None:
    error = NetworkError("Server error", url="https://bgg.test", status_code=502)

    assert isinstance(error, AppError)
    assert error.technical_details == "Status: 502\nURL: https://bgg.test"
    assert error.suggested_actions == ["BoardGameGeek is experiencing issues", "Try again later"]
