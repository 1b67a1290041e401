# src/still_marker/controller.py
"""Application controller owning the active session, preview and refinement."""

import logging
from collections.abc import Callable
from pathlib import Path

from still_marker.config import EngineConfig
from still_marker.errors import (
    DurationUnavailable,
    NoFramesExtracted,
    RefinementFailed,
    SessionSuperseded,
)
from still_marker.events import (
    ControllerEvent,
    FrameExtracted,
    Notification,
    Progress,
    StateChanged,
)
from still_marker.exporter import ExportFormat, export_frames
from still_marker.extractor import FrameSource
from still_marker.frames import FrameRecord, format_timestamp
from still_marker.models import AppPhase, AppState, ExportReport, FrameInfo, PreviewInfo
from still_marker.refinement import AdjustOutcome, RefinementController
from still_marker.session import ExtractionSession

logger = logging.getLogger(__name__)

Listener = Callable[[ControllerEvent], None]


def frame_info(frame: FrameRecord) -> FrameInfo:
    return FrameInfo(
        id=frame.id,
        timestamp=frame.timestamp,
        display_timestamp=frame.formatted_timestamp,
        path=str(frame.full_image_path)
    )


class StillMarkerController:
    """
    Single owner of the application state.

    UI layers subscribe for StateChanged and Notification events and drive
    the controller through its methods; they never mutate state directly.
    """

    def __init__(self, source: FrameSource, config: EngineConfig | None = None):
        self.source = source
        self.config = config or EngineConfig()
        self.state = AppState()
        self.session: ExtractionSession | None = None
        self.refinement: RefinementController | None = None
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, event: ControllerEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _update(self, **changes) -> None:
        self.state = self.state.model_copy(update=changes)
        self._publish(StateChanged(self.state))

    def _notify(self, message: str, level: str = "info") -> None:
        self._publish(Notification(message, level))

    def _frame_infos(self) -> list[FrameInfo]:
        if self.session is None:
            return []
        return [frame_info(frame) for frame in self.session.frames]

    def _preview_info(self) -> PreviewInfo | None:
        if self.refinement is None or self.refinement.state is None:
            return None
        state = self.refinement.state
        return PreviewInfo(
            base_frame_id=state.base_frame.id,
            base_timestamp=state.base_frame.timestamp,
            displayed_timestamp=state.displayed_timestamp,
            phase=state.phase.value,
            refined=state.refined_frame is not None,
            in_progress=state.in_progress,
            error=str(state.error) if state.error else None
        )

    def _discard_session(self) -> None:
        if self.refinement is not None:
            self.refinement.reset()
            self.refinement = None
        if self.session is not None:
            self.session.discard()
            self.session = None

    # Extraction

    async def open_video(self, video_path: str | Path, offset: float = 0.0) -> AppState:
        """Start extracting stills from a new video."""
        return await self._start_session(str(video_path), offset)

    async def shift_offset(self, seconds: float = 1.0) -> AppState:
        """Re-extract the current video with every timestamp shifted forward."""
        if self.state.video_path is None:
            raise ValueError("No video has been opened")
        return await self._start_session(self.state.video_path, self.state.offset + seconds)

    async def _start_session(self, video_path: str, offset: float) -> AppState:
        self._discard_session()
        session = ExtractionSession(
            self.source,
            video_path,
            offset=offset,
            storage_dir=self.config.storage_dir,
            min_interval=self.config.min_interval
        )
        self.session = session
        self._update(
            phase=AppPhase.PROCESSING,
            video_path=video_path,
            offset=session.offset,
            duration=None,
            interval=None,
            progress=0.0,
            message="Starting extraction...",
            frames=[],
            skipped=0,
            preview=None,
            error=None
        )

        def on_event(event):
            # Events from a superseded session must not reach the state
            if self.session is not session:
                return
            if isinstance(event, Progress):
                self._update(progress=event.fraction, message=event.message)
            elif isinstance(event, FrameExtracted):
                self._update(frames=self._frame_infos())

        try:
            completed = await session.run(on_event)
        except SessionSuperseded:
            logger.info(f"Discarded results of superseded session {session.id[:8]}")
            return self.state
        except (DurationUnavailable, NoFramesExtracted) as e:
            if self.session is not session:
                return self.state
            logger.error(f"Extraction failed for {video_path}: {e}")
            self._update(phase=AppPhase.ERROR, error=str(e), message=str(e))
            self._notify(str(e), level="error")
            return self.state
        except Exception as e:
            if self.session is not session:
                return self.state
            logger.exception(f"Unexpected error extracting {video_path}")
            session.discard()
            message = f"Extraction failed: {e}"
            self._update(phase=AppPhase.ERROR, error=message, message=message, frames=[])
            self._notify(message, level="error")
            return self.state

        if self.session is not session:
            return self.state

        stats = completed.stats
        self._update(
            phase=AppPhase.RESULTS,
            duration=stats.duration,
            interval=stats.interval,
            frames=self._frame_infos(),
            skipped=stats.skipped
        )
        if stats.skipped:
            self._notify(f"{stats.skipped} of {stats.planned} frames could not be extracted", level="warning")
        return self.state

    # Preview and refinement

    def _require_frame(self, frame_id: str) -> FrameRecord:
        frame = self.session.find_frame(frame_id) if self.session else None
        if frame is None:
            raise KeyError(f"Unknown frame: {frame_id}")
        return frame

    def open_preview(self, frame_id: str) -> PreviewInfo:
        frame = self._require_frame(frame_id)
        if self.refinement is None:
            self.refinement = RefinementController(
                self.source,
                self.session.video_path,
                self.session.duration,
                self.config.storage_dir
            )
        self.refinement.reset(frame)
        self._update(preview=self._preview_info())
        return self.state.preview

    def navigate(self, step: int) -> PreviewInfo | None:
        """Move the preview to a neighbouring frame, clearing any refinement."""
        if self.refinement is None or self.refinement.state is None:
            return None
        index = self.session.index_of(self.refinement.state.base_frame.id)
        index = min(max(index + step, 0), len(self.session.frames) - 1)
        return self.open_preview(self.session.frames[index].id)

    def close_preview(self) -> None:
        if self.refinement is not None:
            self.refinement.reset()
        self._update(preview=None)

    async def nudge(self, delta: float) -> AdjustOutcome:
        """Shift the previewed frame by delta seconds."""
        if self.refinement is None or self.refinement.state is None:
            return AdjustOutcome.REJECTED

        refinement = self.refinement
        outcome = await refinement.adjust(
            delta, on_started=lambda state: self._update(preview=self._preview_info())
        )

        if refinement is not self.refinement or outcome is AdjustOutcome.SUPERSEDED:
            return outcome
        self._update(preview=self._preview_info())
        if outcome is AdjustOutcome.FAILED:
            self._notify(str(refinement.state.error), level="error")
        return outcome

    def accept_refinement(self) -> FrameInfo | None:
        """Commit the refined frame into the results."""
        if self.refinement is None or self.session is None:
            return None
        try:
            frame = self.refinement.accept(self.session)
        except RefinementFailed as e:
            self._notify(str(e), level="error")
            return None
        if frame is None:
            return None

        self._update(frames=self._frame_infos(), preview=self._preview_info())
        self._notify(f"Frame updated to {format_timestamp(frame.timestamp)}")
        return frame_info(frame)

    def displayed_frame(self) -> FrameRecord | None:
        if self.refinement is None or self.refinement.state is None:
            return None
        return self.refinement.state.displayed_frame

    # Export

    def export_frame(self, frame_id: str, directory: str | Path, fmt: ExportFormat = ExportFormat.JPEG) -> ExportReport:
        frame = self._require_frame(frame_id)
        # Export what the user is looking at if this frame is being refined
        displayed = self.displayed_frame()
        if displayed is not None and self.refinement.state.base_frame.id == frame_id:
            frame = displayed
        return self._export([frame], directory, fmt)

    def export_all(self, directory: str | Path, fmt: ExportFormat = ExportFormat.JPEG) -> ExportReport:
        frames = self.session.frames if self.session else []
        return self._export(frames, directory, fmt)

    def _export(self, frames, directory, fmt) -> ExportReport:
        report = export_frames(frames, directory, fmt)
        if report.failed:
            self._notify(
                f"Exported {len(report.written)} frames, {report.failed} failed",
                level="warning"
            )
        else:
            self._notify(f"Exported {len(report.written)} frames")
        return report

    def reset(self) -> None:
        """Discard everything and return to the upload state."""
        self._discard_session()
        self.state = AppState()
        self._publish(StateChanged(self.state))
