"""Exception types raised along the upload -> analyze pipeline."""

from __future__ import annotations


class UploadError(ValueError):
    """Raised when the incoming request does not carry a usable video upload."""


class MissingVideoError(UploadError):
    """Raised when the multipart body has no ``video`` file field."""


class UploadTooLargeError(UploadError):
    """Raised when the upload exceeds the configured size limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Upload exceeds the maximum size of {limit} bytes")
        self.limit = limit


class ConfigurationError(RuntimeError):
    """Raised when the service is missing required configuration."""


class ProviderError(RuntimeError):
    """Raised when a Gemini API call fails or returns an unusable payload."""


class ProcessingTimeoutError(ProviderError, TimeoutError):
    """Raised when an uploaded file never reaches the ACTIVE state."""


class MalformedResponseError(ValueError):
    """Raised when the model output cannot be parsed into an analysis result."""

    def __init__(self, message: str, raw_text: str) -> None:
        super().__init__(message)
        self.raw_text = raw_text


__all__ = [
    "ConfigurationError",
    "MalformedResponseError",
    "MissingVideoError",
    "ProcessingTimeoutError",
    "ProviderError",
    "UploadError",
    "UploadTooLargeError",
]
