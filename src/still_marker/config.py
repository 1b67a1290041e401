# src/still_marker/config.py
"""Engine configuration using Pydantic Settings."""

import tempfile
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from still_marker.planner import MIN_INTERVAL


class EngineConfig(BaseSettings):
    """
    Paths, binaries and limits used by the extraction engine.

    Every field can be set with a STILL_MARKER_ environment variable,
    e.g. STILL_MARKER_FFMPEG_PATH or STILL_MARKER_MIN_INTERVAL.
    """

    videos_dir: Path = Path("/videos")
    storage_dir: Path = Path(tempfile.gettempdir()) / "still-marker" / "frames"
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    extract_timeout: float = Field(default=30.0, gt=0)
    probe_timeout: float = Field(default=30.0, gt=0)
    min_interval: float = Field(default=MIN_INTERVAL, gt=0)

    model_config = SettingsConfigDict(env_prefix="STILL_MARKER_")
