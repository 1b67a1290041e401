# src/still_marker/events.py
"""Events pushed from sessions and the controller to their consumer."""

from dataclasses import dataclass

from still_marker.frames import FrameRecord
from still_marker.models import AppState, ExtractionStats


@dataclass(frozen=True)
class Progress:
    fraction: float
    message: str


@dataclass(frozen=True)
class FrameExtracted:
    frame: FrameRecord


@dataclass(frozen=True)
class FrameSkipped:
    timestamp: float
    reason: str


@dataclass(frozen=True)
class SessionCompleted:
    frames: list[FrameRecord]
    stats: ExtractionStats


SessionEvent = Progress | FrameExtracted | FrameSkipped | SessionCompleted


@dataclass(frozen=True)
class StateChanged:
    state: AppState


@dataclass(frozen=True)
class Notification:
    """Transient message for the user; UIs dismiss it after dismiss_after seconds."""
    message: str
    level: str = "info"
    dismiss_after: float = 3.0


ControllerEvent = StateChanged | Notification

