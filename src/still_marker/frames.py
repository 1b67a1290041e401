# src/still_marker/frames.py
"""Frame records: resident thumbnail plus on-disk full-resolution image."""

import logging
import shutil
import uuid
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from still_marker.errors import ExtractionFailed

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (200, 112)


def format_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS.s for display (e.g. 00:03.2)."""
    # Round before splitting so 59.96 reads 01:00.0
    seconds = round(seconds, 1)
    minutes = int(seconds // 60)
    secs = seconds - minutes * 60
    return f"{minutes:02d}:{secs:04.1f}"


def format_timestamp_for_filename(seconds: float) -> str:
    """Format seconds as a filesystem-safe label to the millisecond (e.g. 00m03.200s)."""
    seconds = round(seconds, 3)
    minutes = int(seconds // 60)
    secs = seconds - minutes * 60
    return f"{minutes:02d}m{secs:06.3f}s"


class FrameRecord:
    """
    One sampled instant of a video.

    The thumbnail is always in memory. The full image lives in a file and is
    only read by load_full(); the decoded copy is kept until release_full().
    """

    def __init__(
        self,
        timestamp: float,
        thumbnail: Image.Image,
        full_image_path: str | Path,
        frame_id: str | None = None
    ):
        self.id = frame_id or uuid.uuid4().hex
        self.timestamp = timestamp
        self.thumbnail = thumbnail
        self.full_image_path = Path(full_image_path)
        self._full_image: Image.Image | None = None

    @classmethod
    def from_extraction(
        cls,
        timestamp: float,
        image_bytes: bytes,
        scratch_dir: Path,
        storage_dir: Path
    ) -> "FrameRecord":
        """
        Build a record from raw extracted bytes.

        The bytes are written to scratch_dir, decoded to make the thumbnail,
        then moved into storage_dir where they stay until discard(). The
        timestamp is recorded as given.

        Raises:
            ExtractionFailed: If the bytes are not a decodable image or cannot
                be written to disk
        """
        frame_id = uuid.uuid4().hex
        scratch_path = Path(scratch_dir) / f"frame_{frame_id}.jpg"
        try:
            scratch_path.write_bytes(image_bytes)
        except OSError as e:
            raise ExtractionFailed(f"Could not write frame at {timestamp:.2f}s: {e}", timestamp)

        try:
            with Image.open(scratch_path) as image:
                thumbnail = image.copy()
            thumbnail.thumbnail(THUMBNAIL_SIZE, Image.Resampling.LANCZOS)
        except (UnidentifiedImageError, OSError) as e:
            scratch_path.unlink(missing_ok=True)
            raise ExtractionFailed(f"Extracted frame at {timestamp:.2f}s is not a valid image: {e}", timestamp)

        full_path = Path(storage_dir) / f"frame_{frame_id}.jpg"
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(scratch_path), full_path)
        except OSError as e:
            scratch_path.unlink(missing_ok=True)
            raise ExtractionFailed(f"Could not store frame at {timestamp:.2f}s: {e}", timestamp)

        return cls(timestamp, thumbnail, full_path, frame_id=frame_id)

    @property
    def formatted_timestamp(self) -> str:
        return format_timestamp(self.timestamp)

    @property
    def is_loaded(self) -> bool:
        return self._full_image is not None

    def load_full(self) -> Image.Image:
        """Read the full-resolution image, caching it until release_full()."""
        if self._full_image is None:
            with Image.open(self.full_image_path) as image:
                image.load()
                self._full_image = image.copy()
        return self._full_image

    def release_full(self) -> None:
        """Drop the cached full-resolution image."""
        self._full_image = None

    def discard(self) -> None:
        """Release memory and remove the backing file."""
        self.release_full()
        try:
            self.full_image_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove frame file {self.full_image_path}: {e}")

    def __eq__(self, other):
        if not isinstance(other, FrameRecord):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return f"FrameRecord(id={self.id[:8]}, timestamp={self.timestamp:.3f})"
