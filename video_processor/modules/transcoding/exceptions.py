"""Exceptions raised by the transcode pipeline and its control API.

Each exception carries the HTTP status the API maps it to. Errors raised
inside the worker surface as job failures, never as HTTP responses.
"""

from typing import Any, Optional


class VideoProcessingError(Exception):
    """Base exception for video processing errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(VideoProcessingError):
    """Malformed request body or unusable input. Never retried."""

    status_code = 400


class AuthorizationError(VideoProcessingError):
    """A pluggable access check returned False."""

    status_code = 403


class NotFoundError(VideoProcessingError):
    """Document, job or variant absent."""

    status_code = 404


class DocumentNotFound(NotFoundError):
    """Source document missing or without a known file path."""


class JobNotFound(NotFoundError):
    """The queue no longer holds a record for the job."""


class VariantNotFound(NotFoundError):
    """No variant matched the requested selector."""


class PathSecurityError(VideoProcessingError):
    """A stored path resolved outside every allowed root."""

    status_code = 400


class ExternalToolError(VideoProcessingError):
    """ffprobe or ffmpeg failed or exited non-zero."""


class ProbeError(ExternalToolError):
    """ffprobe could not read the file."""


class TranscodeError(ExternalToolError):
    """ffmpeg exited non-zero or could not be started."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message, details={"returncode": returncode})
        self.returncode = returncode
        self.stderr = stderr


class DocumentStoreError(VideoProcessingError):
    """The document store rejected or failed a request."""
