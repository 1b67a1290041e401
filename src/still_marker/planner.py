# src/still_marker/planner.py
"""Adaptive sampling interval and timestamp planning."""

from enum import Enum

# Never sample more than ~3 frames per second
MIN_INTERVAL = 0.33

SHORT_VIDEO_LIMIT = 30.0
MEDIUM_VIDEO_LIMIT = 300.0
TARGET_FRAMES = 30
MAX_FRAMES = 40

# One video frame at an assumed 30fps
FRAME_STEP = 1.0 / 30.0


class Step(float, Enum):
    """Refinement step sizes in seconds."""
    FINE = FRAME_STEP
    COARSE = 0.5
    MEDIUM = 2.0
    LARGE = 10.0


def choose_interval(duration: float, min_interval: float = MIN_INTERVAL) -> float:
    """
    Pick the sampling interval for a video of the given duration.

    Short clips (<30s) are sampled every second. Medium clips (up to 5 min)
    aim for ~30 frames, long clips for ~40, rounded to one decimal place and
    never finer than min_interval.
    """
    if duration < SHORT_VIDEO_LIMIT:
        return 1.0

    if duration <= MEDIUM_VIDEO_LIMIT:
        return max(round(duration / TARGET_FRAMES, 1), min_interval)

    return max(round(duration / MAX_FRAMES, 1), min_interval)


def plan_timestamps(duration: float, offset: float, interval: float) -> list[float]:
    """
    Timestamps from max(0, offset) stepping by interval, all strictly below duration.

    An empty list means there is nothing to extract at this offset.
    """
    if interval <= 0:
        return []

    start = max(0.0, offset)
    timestamps = []
    index = 0
    while True:
        # Multiply instead of accumulating so long plans do not drift; start
        # stays unrounded so the first timestamp is exactly the offset
        timestamp = start + round(index * interval, 6)
        if timestamp >= duration:
            break
        timestamps.append(timestamp)
        index += 1
    return timestamps


def last_seekable(duration: float) -> float:
    """Latest timestamp a frame may sit at: one frame before the end."""
    return max(0.0, duration - FRAME_STEP)


def clamp_timestamp(timestamp: float, duration: float) -> float:
    """Clamp a timestamp into the seekable range of the video."""
    return min(max(timestamp, 0.0), last_seekable(duration))
