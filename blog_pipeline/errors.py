from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ApiError(RuntimeError):
    """Raised when a blog backend request fails or returns an unusable body."""


class UploadRejectedError(RuntimeError):
    """Raised when a selected file exceeds the client-side hard upload limit."""


class ImageDecodeError(RuntimeError):
    """Raised when image bytes cannot be decoded for re-encoding."""
