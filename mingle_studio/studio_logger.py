"""
Mingle Studio Logging and Retry Utilities

Provides:
- Configurable logging for all studio components
- Request/response debugging
- Performance timing
- Backoff delay computation for retries and polling
"""

import time
import logging
from typing import Optional

# ==========================================
# Logger Setup
# ==========================================

# Create logger
logger = logging.getLogger("mingle_studio")

# Default handler (console)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "[%(name)s] %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def configure_logging(level: str = "INFO", include_timestamp: bool = False):
    """
    Configure the studio logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        include_timestamp: Whether to include timestamps in log messages
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    if include_timestamp:
        formatter = logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        for handler in logger.handlers:
            handler.setFormatter(formatter)


# ==========================================
# Performance Timer
# ==========================================

class RequestTimer:
    """Context manager for timing provider requests"""

    def __init__(self, operation: str):
        self.operation = operation
        self.start_time = None
        self.elapsed = 0

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, *args):
        self.elapsed = time.time() - self.start_time
        logger.debug(f"⏱️ {self.operation} took {self.elapsed:.2f}s")


# ==========================================
# Retry Configuration
# ==========================================

class RetryConfig:
    """Configuration for retry behavior of synchronous providers"""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 10.0,
        max_delay: float = 60.0,
        exponential_base: float = 1.0
    ):
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base


# Default retry config
DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_delay(attempt: int, config: RetryConfig,
                    suggested: Optional[float] = None) -> float:
    """
    Calculate delay before the next attempt.

    A server-suggested wait (e.g. 'estimated_time' on a 503) wins; otherwise
    the delay grows with the attempt number: linearly with the default
    exponential_base of 1.0, exponentially for larger bases.
    """
    if suggested:
        return min(float(suggested), config.max_delay)
    if config.exponential_base > 1.0:
        delay = config.initial_delay * (config.exponential_base ** attempt)
    else:
        delay = config.initial_delay * (attempt + 1)
    return min(delay, config.max_delay)


# ==========================================
# Request/Response Logging
# ==========================================

SENSITIVE_HEADER_HINTS = ("authorization", "api-key", "api_key", "x-goog-api-key")


def log_request(method: str, url: str, headers: dict = None,
                payload: dict = None):
    """Log an outgoing provider request"""
    logger.info(f"➡️ {method} {url}")

    if logger.isEnabledFor(logging.DEBUG):
        # Mask credentials in headers
        safe_headers = {}
        if headers:
            for k, v in headers.items():
                if any(hint in k.lower() for hint in SENSITIVE_HEADER_HINTS):
                    safe_headers[k] = v[:8] + "..." if len(v) > 8 else "***"
                else:
                    safe_headers[k] = v

        logger.debug(f"   Headers: {safe_headers}")

        if payload:
            # Truncate large payloads (style references are base64)
            payload_str = str(payload)
            if len(payload_str) > 500:
                payload_str = payload_str[:500] + "..."
            logger.debug(f"   Payload: {payload_str}")


def log_response(status_code: int, elapsed: float,
                 response_text: str = None, success: bool = True):
    """Log a provider response"""
    status_icon = "✅" if success else "❌"
    logger.info(f"⬅️ {status_icon} HTTP {status_code} ({elapsed:.2f}s)")

    if logger.isEnabledFor(logging.DEBUG) and response_text:
        # Truncate large responses
        if len(response_text) > 500:
            response_text = response_text[:500] + "..."
        logger.debug(f"   Response: {response_text}")


def log_error(message: str, exception: Exception = None):
    """Log an error"""
    if exception:
        logger.error(f"❌ {message}: {type(exception).__name__} - {str(exception)}")
    else:
        logger.error(f"❌ {message}")
