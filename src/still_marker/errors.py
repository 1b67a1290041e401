# src/still_marker/errors.py
"""Error taxonomy for still extraction, refinement and export."""


class StillMarkerError(Exception):
    """Base class for engine errors."""
    pass


class DurationUnavailable(StillMarkerError):
    """Video duration could not be probed or was not a usable number."""
    pass


class ExtractionFailed(StillMarkerError):
    """A single frame could not be extracted at the requested timestamp."""

    def __init__(self, message: str, timestamp: float | None = None):
        super().__init__(message)
        self.timestamp = timestamp


class NoFramesExtracted(StillMarkerError):
    """A session finished without producing a single frame."""

    def __init__(self, message: str = "No frames could be extracted", skipped: int = 0):
        super().__init__(message)
        self.skipped = skipped


class RefinementFailed(StillMarkerError):
    """Re-extraction for a refined timestamp failed."""
    pass


class WriteFailed(StillMarkerError):
    """An exported image could not be written."""
    pass


class SessionSuperseded(StillMarkerError):
    """The session was cancelled before it completed."""
    pass
