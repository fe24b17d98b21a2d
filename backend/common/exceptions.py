"""Error types raised by the tracking and reframing core."""


class ReframeError(Exception):
    """Base exception."""


class InvalidInputError(ReframeError, ValueError):
    """Raised for malformed boxes, frames or configuration values."""


class NotInitializedError(ReframeError):
    """Raised when an operation needs a session or track that does not exist yet."""


class FrameProcessingError(ReframeError):
    """Raised when one frame's tracking step fails. Other tracks are left untouched."""

    def __init__(self, frame_number: int, message: str):
        super().__init__(f"Frame {frame_number}: {message}")
        self.frame_number = frame_number
