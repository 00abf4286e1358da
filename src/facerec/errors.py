"""Error taxonomy for the face recognition service.

Every error that can cross the boundary carries a numeric code so that it
can be transported as ``(code, message)`` and rebuilt on the other side
with :func:`make_error`.
"""

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Wire codes for boundary errors."""
    NONE = 0
    IMAGE_LOAD_ERROR = 1
    SERIALIZATION_ERROR = 2
    UNKNOWN_ERROR = 3


class FaceRecError(Exception):
    """Base class for all face recognition errors."""

    code: Optional[ErrorCode] = None


class ImageLoadError(FaceRecError):
    """Input image bytes are empty or could not be decoded."""

    code = ErrorCode.IMAGE_LOAD_ERROR


class SerializationError(FaceRecError):
    """A model artifact is missing or corrupt."""

    code = ErrorCode.SERIALIZATION_ERROR


class UnknownError(FaceRecError):
    """Any other failure reported by an external collaborator."""

    code = ErrorCode.UNKNOWN_ERROR


class ClosedError(FaceRecError):
    """The recognizer has already been closed."""


def make_error(message: str, code: int) -> FaceRecError:
    """Build the typed error for a boundary error code.

    Args:
        message: Human readable error message
        code: One of the ErrorCode values

    Returns:
        Matching FaceRecError subclass instance (UnknownError by default)
    """
    if code == ErrorCode.IMAGE_LOAD_ERROR:
        return ImageLoadError(message)
    if code == ErrorCode.SERIALIZATION_ERROR:
        return SerializationError(message)
    return UnknownError(message)
