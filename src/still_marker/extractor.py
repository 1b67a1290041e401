# src/still_marker/extractor.py
"""Duration probing and single-frame extraction using ffmpeg."""

import logging
import math
import subprocess
from typing import Protocol

from still_marker.errors import DurationUnavailable, ExtractionFailed

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """Capabilities the engine needs from a video backend."""

    def probe_duration(self, video_path: str) -> float:
        ...

    def extract_frame_at(self, video_path: str, timestamp: float) -> bytes:
        ...


def parse_duration(output: str) -> float:
    """
    Parse ffprobe duration output into seconds.

    Raises:
        DurationUnavailable: If the value is missing, non-numeric or negative
    """
    text = output.strip()
    try:
        duration = float(text)
    except ValueError:
        raise DurationUnavailable(f"Could not parse video duration: {text!r}")

    if not math.isfinite(duration) or duration < 0:
        raise DurationUnavailable(f"Invalid video duration: {text}")
    return duration


class FrameExtractor:
    """Extract individual frames from a video with ffmpeg."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        extract_timeout: float = 30,
        probe_timeout: float = 30,
        quality: int = 2
    ):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.extract_timeout = extract_timeout
        self.probe_timeout = probe_timeout
        # mjpeg qscale, 2-31, lower is better
        self.quality = quality

    def build_probe_command(self, video_path: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            video_path
        ]

    def build_extract_command(self, video_path: str, timestamp: float) -> list[str]:
        """ffmpeg command writing one JPEG frame at timestamp to stdout."""
        return [
            self.ffmpeg_path,
            "-v", "error",
            "-ss", f"{timestamp:.3f}",  # Seek before -i: fast input seeking
            "-i", video_path,
            "-frames:v", "1",
            "-q:v", str(self.quality),
            "-f", "image2",
            "-c:v", "mjpeg",
            "pipe:1"
        ]

    def probe_duration(self, video_path: str) -> float:
        """
        Get video duration in seconds using ffprobe.

        Raises:
            DurationUnavailable: If ffprobe fails or reports an unusable value
        """
        cmd = self.build_probe_command(video_path)
        logger.debug(f"Probing duration: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.probe_timeout)
        except subprocess.TimeoutExpired:
            raise DurationUnavailable(f"Duration probe timed out after {self.probe_timeout} seconds")
        except FileNotFoundError:
            raise DurationUnavailable(f"ffprobe not found at {self.ffprobe_path}")

        if result.returncode != 0:
            raise DurationUnavailable(f"Could not probe video: {result.stderr.strip()}")
        return parse_duration(result.stdout)

    def extract_frame_at(self, video_path: str, timestamp: float) -> bytes:
        """
        Extract the frame at timestamp as JPEG bytes.

        Raises:
            ExtractionFailed: If ffmpeg fails, times out or produces no frame
        """
        cmd = self.build_extract_command(video_path, timestamp)
        logger.debug(f"Extracting frame: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, timeout=self.extract_timeout)
        except subprocess.TimeoutExpired:
            raise ExtractionFailed(
                f"Frame extraction at {timestamp:.2f}s timed out after {self.extract_timeout} seconds",
                timestamp
            )
        except FileNotFoundError:
            raise ExtractionFailed(f"ffmpeg not found at {self.ffmpeg_path}", timestamp)
        except OSError as e:
            raise ExtractionFailed(f"Could not run ffmpeg at {timestamp:.2f}s: {e}", timestamp)

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise ExtractionFailed(f"Frame extraction failed at {timestamp:.2f}s: {stderr}", timestamp)

        # Seeking past the last frame exits cleanly with no output
        if not result.stdout:
            raise ExtractionFailed(f"No frame available at {timestamp:.2f}s", timestamp)
        return result.stdout
