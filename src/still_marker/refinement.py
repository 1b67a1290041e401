# src/still_marker/refinement.py
"""Interactive timestamp refinement for a single previewed frame."""

import asyncio
import logging
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from still_marker.errors import RefinementFailed
from still_marker.extractor import FrameSource
from still_marker.frames import FrameRecord
from still_marker.planner import Step, clamp_timestamp
from still_marker.session import ExtractionSession

logger = logging.getLogger(__name__)


class RefinementPhase(str, Enum):
    IDLE = "idle"
    REFINING = "refining"
    REFINED = "refined"
    FAILED = "failed"


class AdjustOutcome(str, Enum):
    REFINED = "refined"
    FAILED = "failed"
    REJECTED = "rejected"
    UNCHANGED = "unchanged"
    SUPERSEDED = "superseded"


@dataclass
class RefinementState:
    """Refinement bookkeeping for the frame currently in preview."""
    base_frame: FrameRecord
    refined_timestamp: float | None = None
    refined_frame: FrameRecord | None = None
    in_progress: bool = False
    phase: RefinementPhase = RefinementPhase.IDLE
    target_timestamp: float | None = None
    error: RefinementFailed | None = None

    @property
    def displayed_frame(self) -> FrameRecord:
        return self.refined_frame or self.base_frame

    @property
    def displayed_timestamp(self) -> float:
        if self.refined_timestamp is not None:
            return self.refined_timestamp
        return self.base_frame.timestamp


class RefinementController:
    """
    Nudges one frame's timestamp and re-extracts it, one request at a time.

    The session's frame collection is only touched by accept(). While an
    extraction is in flight further adjustments are rejected, and reset()
    makes any in-flight result stale.
    """

    def __init__(
        self,
        source: FrameSource,
        video_path: str,
        duration: float,
        storage_dir: str | Path,
        base_frame: FrameRecord | None = None
    ):
        self.source = source
        self.video_path = str(video_path)
        self.duration = duration
        self.storage_dir = Path(storage_dir)
        self.state: RefinementState | None = None
        self._generation = 0
        if base_frame is not None:
            self.reset(base_frame)

    def reset(self, base_frame: FrameRecord | None = None) -> None:
        """Drop any refinement and anchor on base_frame (or nothing)."""
        self._generation += 1
        if self.state is not None and self.state.refined_frame is not None:
            self.state.refined_frame.discard()
        self.state = RefinementState(base_frame) if base_frame is not None else None

    async def nudge(self, step: Step, forward: bool = True) -> AdjustOutcome:
        delta = float(step) if forward else -float(step)
        return await self.adjust(delta)

    async def adjust(
        self,
        delta: float,
        on_started: Callable[[RefinementState], None] | None = None
    ) -> AdjustOutcome:
        """
        Move the displayed timestamp by delta seconds and re-extract.

        on_started is called once the request is accepted and in flight.
        """
        state = self.state
        if state is None or state.in_progress:
            return AdjustOutcome.REJECTED

        current = state.displayed_timestamp
        target = clamp_timestamp(current + delta, self.duration)
        if target == current:
            return AdjustOutcome.UNCHANGED

        generation = self._generation
        state.in_progress = True
        state.phase = RefinementPhase.REFINING
        state.target_timestamp = target
        state.error = None
        logger.info(f"Refining frame {state.base_frame.id[:8]}: {current:.3f}s -> {target:.3f}s")
        if on_started is not None:
            on_started(state)

        try:
            frame = await asyncio.to_thread(self._extract, target)
        except Exception as e:
            # Any failure must resolve the request so later adjustments are accepted
            if generation != self._generation:
                return AdjustOutcome.SUPERSEDED
            state.in_progress = False
            state.target_timestamp = None
            state.phase = RefinementPhase.FAILED
            state.error = RefinementFailed(f"Could not load frame at {target:.2f}s: {e}")
            logger.warning(str(state.error))
            return AdjustOutcome.FAILED

        if generation != self._generation:
            frame.discard()
            return AdjustOutcome.SUPERSEDED

        if state.refined_frame is not None:
            state.refined_frame.discard()
        state.refined_frame = frame
        state.refined_timestamp = frame.timestamp
        state.in_progress = False
        state.target_timestamp = None
        state.phase = RefinementPhase.REFINED
        return AdjustOutcome.REFINED

    def _extract(self, timestamp: float) -> FrameRecord:
        image_bytes = self.source.extract_frame_at(self.video_path, timestamp)
        with tempfile.TemporaryDirectory(prefix="stillmarker-refine-") as scratch_dir:
            return FrameRecord.from_extraction(
                timestamp, image_bytes, Path(scratch_dir), self.storage_dir
            )

    def accept(self, session: ExtractionSession) -> FrameRecord | None:
        """
        Commit the refined frame into the session in place of the base frame.

        Returns the frame now anchored, or None while a request is in flight.

        Raises:
            RefinementFailed: If the refined timestamp collides with another frame
        """
        state = self.state
        if state is None or state.in_progress:
            return None
        if state.refined_frame is None:
            return state.base_frame

        refined = state.refined_frame
        try:
            session.replace_frame(state.base_frame.id, refined)
        except ValueError as e:
            raise RefinementFailed(str(e))

        logger.info(f"Accepted refined frame at {refined.timestamp:.3f}s")
        # The refined frame now belongs to the session; keep reset() from discarding it
        state.refined_frame = None
        self.reset(refined)
        return refined
