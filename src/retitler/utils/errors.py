"""Error taxonomy and helpers for consistent error reporting."""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standard error codes shared by the core and the HTTP layer."""

    # Local errors (never retried, never hit the network)
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNSUPPORTED_BACKEND = "UNSUPPORTED_BACKEND"

    # Backend errors
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    API_ERROR = "API_ERROR"
    GENERATION_ERROR = "GENERATION_ERROR"

    # Document collaborator errors
    FILE_OPERATION_ERROR = "FILE_OPERATION_ERROR"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """HTTP error response model."""

    detail: str
    code: ErrorCode | None = None
    backend: str | None = None
    request_id: str | None = None


# User-friendly error messages by error code
USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.CONFIGURATION_ERROR: "The title generator is not configured. Check the backend settings.",
    ErrorCode.VALIDATION_ERROR: "The request could not be processed because its input is invalid.",
    ErrorCode.UNSUPPORTED_BACKEND: "The selected backend is not supported.",
    ErrorCode.NETWORK_ERROR: "Network error. Please check your connection or that the server is running.",
    ErrorCode.TIMEOUT: "Request timed out. Please try again.",
    ErrorCode.API_ERROR: "The AI backend returned an error. Please try again.",
    ErrorCode.GENERATION_ERROR: "The AI backend did not return a usable title.",
    ErrorCode.FILE_OPERATION_ERROR: "The document could not be read, written or renamed.",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred.",
}

# Messages for specific upstream status codes
STATUS_MESSAGES: dict[int, str] = {
    401: "Invalid API key. Please check your credentials.",
    403: "Access denied. Please check your API key permissions.",
    404: "API endpoint or model not found. Please check your configuration.",
    429: "Rate limit exceeded. Please wait and try again.",
}

SERVER_ERROR_MESSAGE = "Server error. Please try again later."

DEFAULT_USER_MESSAGE = "An unexpected error occurred"

# Maximum length for stored or returned error details
MAX_ERROR_LENGTH = 500

# Upstream status codes a caller may reasonably retry
RETRYABLE_STATUS_CODES = {
    429,  # Rate Limited
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
}


class TitleGeneratorError(Exception):
    """Base error for every failure surfaced by the core.

    Attributes:
        code: Error taxonomy code.
        backend: Backend id the failure relates to, if any.
        status_code: Upstream HTTP status, for API errors.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        backend: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.backend = backend
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return False

    @property
    def user_message(self) -> str:
        return get_user_message(self.code)


class ConfigurationError(TitleGeneratorError):
    """Missing credential, endpoint or model. Raised before any network call."""

    code = ErrorCode.CONFIGURATION_ERROR

    @property
    def user_message(self) -> str:
        return self.message


class ValidationError(TitleGeneratorError):
    """Malformed local input."""

    code = ErrorCode.VALIDATION_ERROR

    @property
    def user_message(self) -> str:
        return self.message


class UnsupportedBackendError(TitleGeneratorError):
    """Backend id has no descriptor."""

    code = ErrorCode.UNSUPPORTED_BACKEND

    def __init__(self, backend: str):
        super().__init__(f"Unsupported backend: {backend}", backend=backend)

    @property
    def user_message(self) -> str:
        return self.message


class NetworkError(TitleGeneratorError):
    """Connection failure or timeout talking to a backend."""

    code = ErrorCode.NETWORK_ERROR

    def __init__(self, message: str, *, backend: str | None = None, timeout: bool = False):
        super().__init__(message, backend=backend)
        self.timeout = timeout
        if timeout:
            self.code = ErrorCode.TIMEOUT

    @property
    def retryable(self) -> bool:
        return True


class ApiError(TitleGeneratorError):
    """Non-success response from a backend."""

    code = ErrorCode.API_ERROR

    @property
    def retryable(self) -> bool:
        return self.status_code in RETRYABLE_STATUS_CODES

    @property
    def user_message(self) -> str:
        if self.status_code in STATUS_MESSAGES:
            return STATUS_MESSAGES[self.status_code]
        if self.status_code is not None and self.status_code >= 500:
            return SERVER_ERROR_MESSAGE
        return get_user_message(self.code)


class GenerationError(TitleGeneratorError):
    """Backend succeeded but produced no usable title."""

    code = ErrorCode.GENERATION_ERROR


class DocumentError(TitleGeneratorError):
    """Reading, writing or renaming a document failed."""

    code = ErrorCode.FILE_OPERATION_ERROR

    @property
    def user_message(self) -> str:
        return self.message


def get_user_message(code: ErrorCode | None, default: str | None = None) -> str:
    """Get user-appropriate error message for an error code.

    Args:
        code: The error code.
        default: Default message if code not found.

    Returns:
        User-friendly error message.
    """
    if code is None:
        return default or DEFAULT_USER_MESSAGE

    return USER_MESSAGES.get(code, default or DEFAULT_USER_MESSAGE)


def truncate_error(error: str, max_length: int = MAX_ERROR_LENGTH) -> str:
    """Truncate error message if too long."""
    if len(error) <= max_length:
        return error

    return error[: max_length - 3] + "..."


def wrap_exception(exc: Exception, backend: str | None = None) -> TitleGeneratorError:
    """Convert any exception into the error taxonomy.

    Errors already in the taxonomy are returned unchanged. Raw transport
    exceptions are mapped to network, timeout or API errors.

    Args:
        exc: The exception to convert.
        backend: Backend id to attach to the converted error.

    Returns:
        A TitleGeneratorError instance.
    """
    # Import here to avoid import cycles at module load
    import httpx
    from pydantic import ValidationError as PydanticValidationError

    if isinstance(exc, TitleGeneratorError):
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        return ApiError(
            truncate_error(f"{backend or 'backend'} API error ({status_code}): {exc.response.text}"),
            backend=backend,
            status_code=status_code,
        )

    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return NetworkError("Request timed out", backend=backend, timeout=True)

    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return NetworkError(
            truncate_error(f"Connection failed: {exc}"), backend=backend
        )

    if isinstance(exc, PydanticValidationError):
        return ValidationError(truncate_error(str(exc)), backend=backend)

    return TitleGeneratorError(
        truncate_error(f"{type(exc).__name__}: {exc}"), backend=backend
    )


def create_error_response(
    error: TitleGeneratorError,
    request_id: str | None = None,
) -> ErrorResponse:
    """Create a standardized error response from a taxonomy error."""
    return ErrorResponse(
        detail=truncate_error(error.user_message),
        code=error.code,
        backend=error.backend,
        request_id=request_id,
    )


def log_error(
    exc: Exception,
    log: logging.Logger | None = None,
    **context: Any,
) -> TitleGeneratorError:
    """Log an error with context and return its taxonomy form.

    Internal errors are logged with the traceback, everything else as a
    single error line.
    """
    log = log or logger
    error = wrap_exception(exc, backend=context.get("backend"))

    log_extra = {
        "error_code": error.code.value,
        "error_type": type(exc).__name__,
        **context,
    }

    if error.code == ErrorCode.INTERNAL_ERROR:
        log.exception("Internal error occurred", extra=log_extra)
    else:
        log.error(f"Title generator error: {error.message}", extra=log_extra)

    return error
