# src/still_marker/session.py
"""Extraction sessions: planned timestamps in, ordered frame records out."""

import asyncio
import bisect
import logging
import math
import shutil
import tempfile
import uuid
from collections.abc import AsyncIterator, Callable
from pathlib import Path

from still_marker.errors import (
    DurationUnavailable,
    ExtractionFailed,
    NoFramesExtracted,
    SessionSuperseded,
)
from still_marker.events import (
    FrameExtracted,
    FrameSkipped,
    Progress,
    SessionCompleted,
    SessionEvent,
)
from still_marker.extractor import FrameSource
from still_marker.frames import FrameRecord
from still_marker.models import ExtractionStats
from still_marker.planner import MIN_INTERVAL, choose_interval, plan_timestamps

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = Path(tempfile.gettempdir()) / "still-marker" / "frames"


class ExtractionSession:
    """
    One extraction run over a single video at a single offset.

    Frames are extracted sequentially in ascending timestamp order. A frame
    that fails to extract is skipped and counted; the batch carries on.
    """

    def __init__(
        self,
        source: FrameSource,
        video_path: str,
        offset: float = 0.0,
        storage_dir: str | Path | None = None,
        min_interval: float = MIN_INTERVAL
    ):
        self.id = uuid.uuid4().hex
        self.source = source
        self.video_path = str(video_path)
        self.offset = max(0.0, offset)
        self.storage_dir = Path(storage_dir) if storage_dir else DEFAULT_STORAGE_DIR
        self.min_interval = min_interval

        self.duration: float | None = None
        self.interval: float | None = None
        self.timestamps: list[float] = []
        self.frames: list[FrameRecord] = []
        self.skipped = 0
        self.progress = 0.0
        self.message = ""

        self._started = False
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Mark the session superseded; results arriving later are dropped."""
        if not self._cancelled:
            logger.info(f"Session {self.id[:8]} superseded")
        self._cancelled = True

    def discard(self) -> None:
        """Cancel and remove every frame's backing file."""
        self.cancel()
        for frame in self.frames:
            frame.discard()
        self.frames = []

    def find_frame(self, frame_id: str) -> FrameRecord | None:
        for frame in self.frames:
            if frame.id == frame_id:
                return frame
        return None

    def index_of(self, frame_id: str) -> int:
        for index, frame in enumerate(self.frames):
            if frame.id == frame_id:
                return index
        raise ValueError(f"Frame {frame_id} is not part of this session")

    def replace_frame(self, frame_id: str, replacement: FrameRecord) -> None:
        """
        Swap a frame for a replacement, keeping the collection sorted.

        The replaced frame is discarded.

        Raises:
            ValueError: If frame_id is unknown or another frame already sits
                at the replacement's timestamp
        """
        index = self.index_of(frame_id)
        remaining = self.frames[:index] + self.frames[index + 1:]
        timestamps = [frame.timestamp for frame in remaining]
        position = bisect.bisect_left(timestamps, replacement.timestamp)
        if position < len(timestamps) and timestamps[position] == replacement.timestamp:
            raise ValueError(f"A frame already exists at {replacement.timestamp:.3f}s")

        original = self.frames[index]
        remaining.insert(position, replacement)
        self.frames = remaining
        original.discard()

    def _progress(self, fraction: float, message: str) -> Progress:
        # Never report going backwards
        self.progress = max(self.progress, min(fraction, 1.0))
        self.message = message
        return Progress(self.progress, message)

    async def _probe_duration(self) -> float:
        duration = await asyncio.to_thread(self.source.probe_duration, self.video_path)
        try:
            duration = float(duration)
        except (TypeError, ValueError):
            raise DurationUnavailable(f"Could not determine video duration: {duration!r}")
        if not math.isfinite(duration) or duration < 0:
            raise DurationUnavailable(f"Could not determine video duration: {duration}")
        return duration

    async def events(self) -> AsyncIterator[SessionEvent]:
        """
        Run the extraction, yielding progress, per-frame and completion events.

        The stream ends with SessionCompleted unless the session is cancelled
        first, in which case it just stops.

        Raises:
            DurationUnavailable: If the video duration cannot be determined
        """
        if self._started:
            raise RuntimeError("An extraction session can only be run once")
        self._started = True

        yield self._progress(0.1, "Analyzing video...")

        duration = await self._probe_duration()
        if self._cancelled:
            return
        self.duration = duration
        yield self._progress(0.2, f"Video duration: {int(duration)}s")

        self.interval = choose_interval(duration, self.min_interval)
        self.timestamps = plan_timestamps(duration, self.offset, self.interval)
        yield self._progress(
            0.25,
            f"Optimized for {len(self.timestamps)} frames every {self.interval:.1f}s"
        )

        logger.info(
            f"Session {self.id[:8]}: {len(self.timestamps)} frames planned for "
            f"{self.video_path} (duration={duration:.2f}s, offset={self.offset}s, interval={self.interval}s)"
        )
        yield self._progress(0.3, f"Extracting {len(self.timestamps)} frames...")

        scratch_dir = Path(tempfile.mkdtemp(prefix=f"stillmarker-{self.id}-"))
        try:
            total = len(self.timestamps)
            for index, timestamp in enumerate(self.timestamps):
                if self._cancelled:
                    return
                yield self._progress(
                    0.3 + (index / total) * 0.6,
                    f"Extracting frame at {timestamp:.1f}s..."
                )

                try:
                    image_bytes = await asyncio.to_thread(
                        self.source.extract_frame_at, self.video_path, timestamp
                    )
                    frame = await asyncio.to_thread(
                        FrameRecord.from_extraction,
                        timestamp, image_bytes, scratch_dir, self.storage_dir
                    )
                except (ExtractionFailed, OSError) as e:
                    if self._cancelled:
                        return
                    self.skipped += 1
                    logger.warning(f"Failed to extract frame at {timestamp:.2f}s: {e}")
                    yield FrameSkipped(timestamp, str(e))
                    continue

                if self._cancelled:
                    frame.discard()
                    return
                self.frames.append(frame)
                yield FrameExtracted(frame)
        finally:
            shutil.rmtree(scratch_dir, ignore_errors=True)

        stats = ExtractionStats(
            duration=duration,
            interval=self.interval,
            planned=len(self.timestamps),
            extracted=len(self.frames),
            skipped=self.skipped
        )
        logger.info(f"Session {self.id[:8]} complete: {stats.extracted} extracted, {stats.skipped} skipped")
        yield self._progress(1.0, "Extraction complete!")
        yield SessionCompleted(list(self.frames), stats)

    async def run(self, on_event: Callable[[SessionEvent], None] | None = None) -> SessionCompleted:
        """
        Run to completion, forwarding every event to on_event.

        Raises:
            DurationUnavailable: If the video duration cannot be determined
            NoFramesExtracted: If not a single frame could be extracted
            SessionSuperseded: If the session was cancelled before finishing
        """
        completed = None
        async for event in self.events():
            if on_event is not None:
                on_event(event)
            if isinstance(event, SessionCompleted):
                completed = event

        if completed is None:
            raise SessionSuperseded(f"Session {self.id} was cancelled")
        if not completed.frames:
            raise NoFramesExtracted(
                f"No frames could be extracted at offset {self.offset}s",
                skipped=completed.stats.skipped
            )
        return completed
