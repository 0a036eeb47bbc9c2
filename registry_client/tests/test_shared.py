"""
Unit tests for shared configuration and error handling.
"""

import os
from unittest.mock import patch

import pytest
import structlog
from pydantic import ValidationError

from shared.config import DEFAULT_API_URL, RegistryConfig, get_config
from shared.errors import (
    ErrorKind,
    InternalError,
    NotFoundError,
    OperationTimeoutError,
    RetriesExhaustedError,
    TransportError,
    UpstreamStatusError,
)
from shared.logging import add_correlation_context, configure_logging, request_id_var


class TestRegistryConfig:
    """Test cases for RegistryConfig."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = RegistryConfig(_env_file=None)

        assert config.api_url == DEFAULT_API_URL
        assert config.request_timeout == 30.0
        assert config.cache_ttl_seconds == 300.0
        assert config.cache_max_entries == 1000
        assert config.retry_attempts == 3
        assert config.max_concurrent == 10
        assert config.requests_per_minute is None

    def test_environment_overrides(self):
        env = {
            "CRATE_REGISTRY_API_URL": "https://mirror.example/api/v1",
            "CRATE_REGISTRY_REQUESTS_PER_MINUTE": "60",
            "CRATE_REGISTRY_CACHE_ENABLED": "false",
        }
        with patch.dict(os.environ, env, clear=True):
            config = get_config(retry_attempts=5)

        assert config.api_url == "https://mirror.example/api/v1"
        assert config.requests_per_minute == 60
        assert config.cache_enabled is False
        assert config.retry_attempts == 5

    @pytest.mark.parametrize("field,value", [
        ("retry_attempts", 0),
        ("max_concurrent", 0),
        ("request_timeout", 0),
    ])
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            RegistryConfig(**{field: value})


class TestErrors:
    """Test cases for the error taxonomy."""

    def test_not_found_response(self):
        error = NotFoundError("serde", "9.9.9")

        response = error.to_response(request_id="req-1")

        assert response.code == "NOT_FOUND"
        assert response.request_id == "req-1"
        assert response.details["version"] == "9.9.9"
        assert "9.9.9" in response.message

    def test_retryable_flags(self):
        assert TransportError("reset").retryable is True
        assert UpstreamStatusError(502).retryable is True
        assert UpstreamStatusError(429).retryable is True
        assert UpstreamStatusError(418).retryable is False
        assert NotFoundError("serde").retryable is False
        assert OperationTimeoutError(1.0).retryable is False

    def test_retries_exhausted_keeps_last_error(self):
        last = UpstreamStatusError(503, "Service Unavailable")
        error = RetriesExhaustedError(last, 3)

        assert error.kind is ErrorKind.RETRIES_EXHAUSTED
        assert error.details["last_error"] == "UPSTREAM_STATUS"
        assert "Service Unavailable" in error.message

    def test_internal_error_wraps_cause(self):
        cause = KeyError("num")
        error = InternalError(cause, details={"crate": "serde"})

        response = error.to_response()

        assert error.cause is cause
        assert error.retryable is False
        assert response.code == "INTERNAL_ERROR"
        assert response.details == {"error_type": "KeyError", "crate": "serde"}


class TestLoggingContext:
    """Test cases for correlation context."""

    def test_request_id_added_when_set(self):
        token = request_id_var.set("batch-42")
        try:
            event = add_correlation_context(None, "info", {"event": "x"})
        finally:
            request_id_var.reset(token)

        assert event["request_id"] == "batch-42"
        assert "request_id" not in add_correlation_context(None, "info", {"event": "y"})

    def test_configured_chain_stamps_time_once(self):
        configure_logging("registry-test", json_logs=True)
        try:
            processors = structlog.get_config()["processors"]
        finally:
            structlog.reset_defaults()

        stampers = [p for p in processors if isinstance(p, structlog.processors.TimeStamper)]
        assert len(stampers) == 1
        assert add_correlation_context in processors
