"""
Error taxonomy for Verification Service.

Setup-time errors (model load, camera acquisition) propagate to the caller.
Per-cycle errors are absorbed by the frame scheduler.
"""


class VerificationError(Exception):
    """Base class for all service errors."""


class InitializationError(VerificationError):
    """Model assets failed to load. Fatal to the session, never retried."""


class CameraAccessError(VerificationError):
    """Camera permission denied or device unavailable."""


class NoFaceDetected(VerificationError):
    """Zero faces found where exactly one was required."""


class MultipleFacesDetected(VerificationError):
    """Several faces found in an enrollment image."""

    def __init__(self, count: int):
        super().__init__(f'Expected exactly one face, found {count}')
        self.count = count


class TransientInferenceError(VerificationError):
    """A single scheduling cycle failed. Recoverable."""


class ImageDecodeError(VerificationError, ValueError):
    """Payload is not a decodable image."""


class DimensionMismatch(VerificationError, ValueError):
    """Embedding vectors of unequal length."""

    def __init__(self, left: int, right: int):
        super().__init__(f'Embedding dimensions differ: {left} != {right}')
        self.left = left
        self.right = right


class ZeroNormEmbedding(VerificationError, ValueError):
    """Cosine similarity is undefined for a zero vector."""
