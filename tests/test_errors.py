"""
Tests for Mingle Studio Error Classes
"""

import pytest
from mingle_studio.errors import (
    StudioError, ConfigError, ValidationError,
    APIError, CredentialError, RateLimitOrQuotaError, TransientBackendError,
    MalformedResponseError, TaskFailedError, TimeoutError, create_api_error
)


class TestStudioError:
    """Test base error class"""

    def test_basic_error(self):
        err = StudioError("Something went wrong")
        assert err.message == "Something went wrong"
        assert err.details == {}
        assert str(err) == "Something went wrong"

    def test_to_dict(self):
        err = StudioError("Test error", {"foo": "bar"})
        d = err.to_dict()
        assert d["error"] == "StudioError"
        assert d["message"] == "Test error"
        assert d["details"]["foo"] == "bar"


class TestConfigError:
    """Test configuration errors"""

    def test_config_error_with_field(self):
        err = ConfigError("Unknown provider", field="provider_id")
        assert err.field == "provider_id"
        assert "provider_id" in str(err)

    def test_config_error_with_suggestion(self):
        err = ConfigError(
            "Unknown routing mode",
            field="routing.mode",
            value="round-robin",
            suggestion="Use 'single' or 'multi'"
        )
        assert "Suggestion" in str(err)
        assert err.details["value"] == "round-robin"


class TestValidationError:
    """Test validation errors with multiple issues"""

    def test_multiple_errors(self):
        errors = [
            "No providers configured",
            "Polling: 'interval' must be positive",
        ]
        err = ValidationError("Validation failed", errors)
        assert len(err.errors) == 2
        assert "No providers configured" in str(err)
        assert err.to_dict()["details"]["errors"] == errors


class TestAPIError:
    """Test API error class"""

    def test_basic_api_error(self):
        err = APIError(message="Request failed", provider="freepik", status_code=500)
        assert err.provider == "freepik"
        assert err.status_code == 500
        assert "[freepik]" in str(err)
        assert isinstance(err, StudioError)

    def test_retryable_status_codes(self):
        for code in [502, 503, 504]:
            err = APIError(message="Error", provider="test", status_code=code)
            assert err.retryable is True

    def test_quota_and_rate_limit_are_not_retryable(self):
        for code in [400, 402, 429]:
            err = APIError(message="Error", provider="test", status_code=code)
            assert err.retryable is False

    def test_response_body_truncation(self):
        err = APIError(message="Error", provider="test", response_body="x" * 1000)
        assert len(err.response_body) < 600  # 500 + "..."


class TestSpecializedErrors:
    """Test specialized error subclasses"""

    def test_credential_error(self):
        err = CredentialError(provider="huggingface")
        assert err.status_code == 401
        assert err.retryable is False

    def test_quota_error_message(self):
        err = RateLimitOrQuotaError(provider="huggingface", status_code=402)
        assert "quota" in err.message.lower()
        assert err.retryable is False

    def test_rate_limit_retry_after(self):
        err = RateLimitOrQuotaError(provider="freepik", retry_after=60)
        assert err.status_code == 429
        assert err.retry_after == 60
        assert "60" in err.message

    def test_transient_error_is_retryable(self):
        err = TransientBackendError(provider="huggingface", status_code=0, message="Connection reset")
        assert err.retryable is True
        assert err.message == "Connection reset"

    def test_timeout_error(self):
        err = TimeoutError(provider="freepik", attempts=30, interval=2.0, task_id="t1")
        assert err.attempts == 30
        assert "t1" in str(err)
        assert "60s" in err.message
        assert err.retryable is False

    def test_task_failed_and_malformed(self):
        assert TaskFailedError("freepik", "t9").task_id == "t9"
        err = MalformedResponseError("freepik", "No task_id", response_body="{}")
        assert err.response_body == "{}"
        assert err.retryable is False


class TestCreateAPIError:
    """Test error factory function"""

    @pytest.mark.parametrize("code", [401, 403])
    def test_creates_credential_error(self, code):
        assert isinstance(create_api_error("freepik", code, "Unauthorized"), CredentialError)

    @pytest.mark.parametrize("code", [402, 429])
    def test_creates_rate_limit_or_quota_error(self, code):
        err = create_api_error("huggingface", code, "")
        assert isinstance(err, RateLimitOrQuotaError)
        assert err.status_code == code

    def test_reads_estimated_time_from_503(self):
        err = create_api_error("huggingface", 503, '{"error": "Model is loading", "estimated_time": 17.5}')
        assert isinstance(err, TransientBackendError)
        assert err.retry_after == 17.5

    def test_503_without_json_body(self):
        err = create_api_error("huggingface", 503, "Service unavailable")
        assert isinstance(err, TransientBackendError)
        assert err.retry_after is None

    def test_creates_generic_for_4xx(self):
        err = create_api_error("freepik", 400, "Bad request")
        assert type(err) == APIError
        assert err.message == "Bad request"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
