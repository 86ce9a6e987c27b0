"""
Exceptions raised by the nail try-on pipeline.

Every error is recoverable: callers surface the message and retry.
"""


class NailTryOnError(Exception):
    """Base exception for nail try-on errors."""
    pass


class InputError(NailTryOnError):
    """Raised for unreadable, oversized, too small or non-image inputs."""
    pass


class DetectionError(NailTryOnError):
    """Raised when the hand detector produces no usable hand."""
    pass


class NoHandDetectedError(DetectionError):
    """Raised when the detector returns zero hands."""
    pass


class DetectionTimeoutError(DetectionError):
    """Raised when the detector does not answer in time."""
    pass


class ExtractionError(NailTryOnError):
    """Raised when no finger meets the size/quality floor during extraction."""
    pass


class CompositingError(NailTryOnError):
    """Raised when there is nothing to composite or no finger could be applied."""
    pass


class ShareError(NailTryOnError):
    """Raised when sharing or clipboard copy is unsupported or fails."""
    pass


class PipelineStateError(NailTryOnError):
    """Raised when an operation is not allowed in the current pipeline stage."""
    pass
