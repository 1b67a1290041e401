# src/still_marker/exporter.py
"""Writing extracted frames out as image files."""

import logging
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from PIL import Image

from still_marker.errors import WriteFailed
from still_marker.frames import FrameRecord, format_timestamp_for_filename
from still_marker.models import ExportReport

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    JPEG = "JPEG"
    PNG = "PNG"
    TIFF = "TIFF"

    @property
    def extension(self) -> str:
        return {"JPEG": "jpg", "PNG": "png", "TIFF": "tiff"}[self.value]

    @classmethod
    def parse(cls, name: str) -> "ExportFormat":
        """Accept a format or extension name in any case (jpg, jpeg, PNG, tif...)."""
        aliases = {"JPG": "JPEG", "TIF": "TIFF"}
        key = name.strip().upper()
        try:
            return cls(aliases.get(key, key))
        except ValueError:
            raise ValueError(f"Unsupported export format: {name}. Use JPEG, PNG or TIFF")


def export_filename(frame: FrameRecord, fmt: ExportFormat, unique: bool = False) -> str:
    """Name like still_00m03.200s.jpg; unique adds the frame id for a name already in use."""
    label = format_timestamp_for_filename(frame.timestamp)
    if unique:
        label = f"{label}_{frame.id[:8]}"
    return f"still_{label}.{fmt.extension}"


def write_image(image: Image.Image, destination: str | Path, fmt: ExportFormat) -> Path:
    """
    Save image to destination in the given format.

    Raises:
        WriteFailed: If the file cannot be written
    """
    destination = Path(destination)
    # JPEG has no alpha or palette support
    if fmt is ExportFormat.JPEG and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    options = {"quality": 95} if fmt is ExportFormat.JPEG else {}
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        image.save(destination, fmt.value, **options)
    except (OSError, ValueError) as e:
        raise WriteFailed(f"Could not write {destination}: {e}")
    return destination


def export_frames(
    frames: Iterable[FrameRecord],
    directory: str | Path,
    fmt: ExportFormat = ExportFormat.JPEG
) -> ExportReport:
    """
    Export each frame's full-resolution image into directory.

    A failed write is counted and reported; the remaining frames are still
    written.
    """
    directory = Path(directory)
    report = ExportReport()
    taken: set[str] = set()

    for frame in frames:
        # Frames within the same millisecond must not overwrite each other
        name = export_filename(frame, fmt)
        if name in taken:
            name = export_filename(frame, fmt, unique=True)
        taken.add(name)
        destination = directory / name
        was_loaded = frame.is_loaded
        try:
            image = frame.load_full()
            write_image(image, destination, fmt)
        except WriteFailed as e:
            report.failed += 1
            report.errors.append(str(e))
            logger.warning(str(e))
            continue
        except OSError as e:
            report.failed += 1
            report.errors.append(f"Could not read frame at {frame.formatted_timestamp}: {e}")
            logger.warning(f"Could not read frame {frame.id}: {e}")
            continue
        finally:
            if not was_loaded:
                frame.release_full()

        report.written.append(str(destination))

    logger.info(f"Exported {len(report.written)} frames to {directory} ({report.failed} failed)")
    return report
