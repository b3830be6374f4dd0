"""Error taxonomy and retry helpers."""

from retitler.utils.errors import (
    ApiError,
    ConfigurationError,
    DocumentError,
    ErrorCode,
    GenerationError,
    NetworkError,
    TitleGeneratorError,
    UnsupportedBackendError,
    ValidationError,
)
from retitler.utils.retry import (
    RetryError,
    calculate_backoff_delay,
    is_retryable_error,
    retry_with_backoff,
)

__all__ = [
    "ApiError",
    "ConfigurationError",
    "DocumentError",
    "ErrorCode",
    "GenerationError",
    "NetworkError",
    "RetryError",
    "TitleGeneratorError",
    "UnsupportedBackendError",
    "ValidationError",
    "calculate_backoff_delay",
    "is_retryable_error",
    "retry_with_backoff",
]
