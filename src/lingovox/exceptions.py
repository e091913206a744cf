"""Error taxonomy shared by the storage, audio and network layers."""

from __future__ import annotations

from enum import Enum


class LingovoxError(Exception):
    """Base class for all application errors."""


class ValidationError(LingovoxError):
    """Raised when caller input is rejected before any network or storage call."""


class StorageError(LingovoxError):
    """Raised when the history store cannot be opened, written or cleared."""


class RecordingError(LingovoxError):
    """Raised when audio capture fails or the recorder is misused."""


class AudioDeviceError(RecordingError):
    """Raised when no usable microphone is available."""


class ApiErrorType(Enum):
    """Categorizes the failure mode of a speech API request."""

    NETWORK_TIMEOUT = "network_timeout"
    CONNECTION_FAILED = "connection_failed"
    HTTP_ERROR = "http_error"
    PARSE_ERROR = "parse_error"
    FORMAT_ERROR = "format_error"
    UNKNOWN = "unknown"


class ApiError(LingovoxError):
    """Structured exception for speech API failures.

    Attributes:
        error_type: Category of the failure
        context: Human-readable description of what was attempted
        original_exception: The underlying exception, if any
        status_code: HTTP status code (if applicable)
        response_text: Truncated response body (if applicable)
    """

    def __init__(
        self,
        error_type: ApiErrorType,
        context: str,
        original_exception: Exception | None = None,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        self.error_type = error_type
        self.context = context
        self.original_exception = original_exception
        self.status_code = status_code
        self.response_text = response_text

        message = context
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        if original_exception is not None:
            message = f"{message}: {original_exception}"
        super().__init__(message)

        if original_exception is not None:
            self.__cause__ = original_exception

    def is_retryable(self) -> bool:
        """Return True when the failure looks transient."""
        return self.error_type in {
            ApiErrorType.NETWORK_TIMEOUT,
            ApiErrorType.CONNECTION_FAILED,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(type={self.error_type.value}, "
            f"context={self.context!r}, status_code={self.status_code})"
        )


class UploadError(ApiError):
    """Raised when an audio upload (file or streaming chunk) fails."""


__all__ = [
    "ApiError",
    "ApiErrorType",
    "AudioDeviceError",
    "LingovoxError",
    "RecordingError",
    "StorageError",
    "UploadError",
    "ValidationError",
]
