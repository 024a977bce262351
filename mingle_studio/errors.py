"""
Mingle Studio Error Classes

Provides structured error handling with detailed context for:
- Configuration errors
- Provider request/response errors (credential, quota, transient, malformed)
- Task polling timeouts
"""

import json
from dataclasses import dataclass
from typing import Optional, Dict, List, Any


class StudioError(Exception):
    """Base exception for all Mingle Studio errors"""

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict:
        """Convert error to dictionary for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ConfigError(StudioError):
    """Configuration-related errors"""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Any = None, suggestion: Optional[str] = None):
        self.field = field
        self.value = value
        self.suggestion = suggestion

        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety
        if suggestion:
            details["suggestion"] = suggestion

        super().__init__(message, details)

    def __str__(self):
        parts = [self.message]
        if self.field:
            parts.append(f"Field: {self.field}")
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " | ".join(parts)


class ValidationError(StudioError):
    """Validation errors with multiple issues"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        details = {"errors": self.errors} if self.errors else {}
        super().__init__(message, details)

    def __str__(self):
        if self.errors:
            return f"{self.message}: {', '.join(self.errors)}"
        return self.message


# 402/429 are terminal (RateLimitOrQuotaError)
RETRYABLE_STATUS_CODES = [502, 503, 504]


@dataclass(eq=False)
class APIError(StudioError):
    """
    Provider request/response errors with full context.

    Attributes:
        message: Human-readable error description
        provider: Provider id
        status_code: HTTP status code (0 if not HTTP error)
        response_body: Raw response body (truncated)
        retryable: Whether this error is likely transient
        request_url: The URL that was called
        request_method: HTTP method used
    """
    message: str = ""
    provider: str = "unknown"
    status_code: int = 0
    response_body: str = ""
    retryable: bool = False
    request_url: str = ""
    request_method: str = ""

    def __post_init__(self):
        self.details = {}
        # Truncate response body
        if len(self.response_body) > 500:
            self.response_body = self.response_body[:500] + "..."

        # Set retryable based on status code if not explicitly set
        if self.status_code in RETRYABLE_STATUS_CODES:
            self.retryable = True

    def __str__(self):
        if self.status_code:
            return f"[{self.provider}] HTTP {self.status_code}: {self.message}"
        return f"[{self.provider}] {self.message}"

    def to_dict(self) -> Dict:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "provider": self.provider,
            "status_code": self.status_code,
            "retryable": self.retryable
        }


class CredentialError(APIError):
    """Missing, malformed or rejected credentials (never retried)"""

    def __init__(self, provider: str, message: str = "Authentication failed",
                 status_code: int = 401):
        super().__init__(
            message=message,
            provider=provider,
            status_code=status_code,
            retryable=False
        )


class RateLimitOrQuotaError(APIError):
    """Rate limit (429) or payment/quota (402) failure (never retried)"""

    def __init__(self, provider: str, status_code: int = 429,
                 retry_after: Optional[float] = None):
        if status_code == 402:
            message = "Payment required or quota exhausted"
        else:
            message = "Rate limit exceeded"
        if retry_after:
            message += f", retry after {retry_after}s"

        super().__init__(
            message=message,
            provider=provider,
            status_code=status_code,
            retryable=False
        )
        self.retry_after = retry_after


class TransientBackendError(APIError):
    """Model loading (503), gateway errors or a network blip"""

    def __init__(self, provider: str, message: str = "", status_code: int = 0,
                 retry_after: Optional[float] = None, url: str = ""):
        super().__init__(
            message=message or f"Transient backend error (HTTP {status_code})",
            provider=provider,
            status_code=status_code,
            retryable=True,
            request_url=url
        )
        self.retry_after = retry_after


class MalformedResponseError(APIError):
    """Backend broke its response contract (missing task id, empty payload)"""

    def __init__(self, provider: str, message: str, response_body: str = ""):
        super().__init__(
            message=message,
            provider=provider,
            response_body=response_body,
            retryable=False
        )


class TaskFailedError(APIError):
    """Backend reported a task as FAILED"""

    def __init__(self, provider: str, task_id: str, message: str = ""):
        super().__init__(
            message=message or f"Task {task_id} failed",
            provider=provider,
            retryable=False
        )
        self.task_id = task_id


class TimeoutError(APIError):
    """Poll ceiling exceeded without a terminal backend status"""

    def __init__(self, provider: str, attempts: int, interval: float,
                 task_id: str = ""):
        super().__init__(
            message=(f"Task {task_id} did not complete after {attempts} polls "
                     f"({attempts * interval:.0f}s)"),
            provider=provider,
            status_code=0,
            retryable=False
        )
        self.attempts = attempts
        self.task_id = task_id


def _estimated_time(response_body: str) -> Optional[float]:
    """Read the 'estimated_time' hint that model-loading 503 bodies carry"""
    try:
        data = json.loads(response_body)
    except (TypeError, ValueError):
        return None
    if isinstance(data, dict) and data.get("estimated_time"):
        try:
            return float(data["estimated_time"])
        except (TypeError, ValueError):
            return None
    return None


# Error factory for creating appropriate error types from HTTP responses
def create_api_error(
    provider: str,
    status_code: int,
    response_body: str = "",
    url: str = ""
) -> APIError:
    """
    Factory function to create appropriate APIError subclass based on status code.
    """
    if status_code == 401 or status_code == 403:
        return CredentialError(provider, f"HTTP {status_code}: Unauthorized", status_code)

    if status_code == 402 or status_code == 429:
        return RateLimitOrQuotaError(provider, status_code)

    if status_code in RETRYABLE_STATUS_CODES:
        return TransientBackendError(
            provider,
            message=response_body[:200],
            status_code=status_code,
            retry_after=_estimated_time(response_body) if status_code == 503 else None,
            url=url
        )

    # Generic API error for other cases
    return APIError(
        message=response_body[:200] if response_body else f"HTTP {status_code}",
        provider=provider,
        status_code=status_code,
        response_body=response_body,
        request_url=url
    )
