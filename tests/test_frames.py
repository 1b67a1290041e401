# tests/test_frames.py
import pytest
from PIL import Image
from still_marker.errors import ExtractionFailed
from still_marker.frames import (
    THUMBNAIL_SIZE,
    FrameRecord,
    format_timestamp,
    format_timestamp_for_filename,
)
from conftest import make_jpeg


def test_format_timestamp():
    assert format_timestamp(0) == "00:00.0"
    assert format_timestamp(3.2) == "00:03.2"
    assert format_timestamp(62.5) == "01:02.5"
    assert format_timestamp(3661) == "61:01.0"


def test_format_timestamp_rounds_before_carrying_minutes():
    assert format_timestamp(59.96) == "01:00.0"
    assert format_timestamp(119.99) == "02:00.0"
    assert format_timestamp(59.94) == "00:59.9"


def test_format_timestamp_for_filename():
    assert format_timestamp_for_filename(3.2) == "00m03.200s"
    assert format_timestamp_for_filename(125.0) == "02m05.000s"
    assert format_timestamp_for_filename(1.04) == "00m01.040s"
    assert format_timestamp_for_filename(59.9996) == "01m00.000s"


def test_from_extraction_builds_thumbnail_and_moves_file(tmp_path, storage_dir):
    scratch = tmp_path / "scratch"
    scratch.mkdir()

    frame = FrameRecord.from_extraction(4.0, make_jpeg(1280, 720), scratch, storage_dir)

    assert frame.timestamp == 4.0
    assert frame.thumbnail.width <= THUMBNAIL_SIZE[0]
    assert frame.thumbnail.height <= THUMBNAIL_SIZE[1]
    assert frame.full_image_path.parent == storage_dir
    assert frame.full_image_path.exists()
    assert list(scratch.iterdir()) == []


def test_from_extraction_keeps_timestamp_as_given(tmp_path, storage_dir):
    # A planned timestamp inside the last frame of the video stays where it was seeked
    frame = FrameRecord.from_extraction(9.99, make_jpeg(), tmp_path, storage_dir)
    assert frame.timestamp == 9.99

    frame = FrameRecord.from_extraction(1.2345678, make_jpeg(), tmp_path, storage_dir)
    assert frame.timestamp == 1.2345678


def test_from_extraction_wraps_storage_errors(tmp_path):
    # A regular file where the storage directory should be
    blocked = tmp_path / "blocked"
    blocked.write_text("")

    with pytest.raises(ExtractionFailed, match="Could not store frame"):
        FrameRecord.from_extraction(1.0, make_jpeg(), tmp_path, blocked / "frames")
    assert list(tmp_path.glob("frame_*.jpg")) == []


def test_from_extraction_wraps_scratch_write_errors(tmp_path, storage_dir):
    with pytest.raises(ExtractionFailed, match="Could not write frame"):
        FrameRecord.from_extraction(1.0, make_jpeg(), tmp_path / "missing", storage_dir)


def test_from_extraction_rejects_invalid_image(tmp_path, storage_dir):
    with pytest.raises(ExtractionFailed, match="not a valid image"):
        FrameRecord.from_extraction(1.0, b"not an image", tmp_path, storage_dir)
    assert list(tmp_path.glob("frame_*.jpg")) == []
    assert list(storage_dir.iterdir()) == []


def test_full_image_is_loaded_only_on_request(tmp_path, storage_dir):
    frame = FrameRecord.from_extraction(1.0, make_jpeg(640, 360), tmp_path, storage_dir)
    assert not frame.is_loaded

    image = frame.load_full()
    assert isinstance(image, Image.Image)
    assert image.size == (640, 360)
    assert frame.is_loaded
    assert frame.load_full() is image

    frame.release_full()
    assert not frame.is_loaded


def test_discard_removes_backing_file(tmp_path, storage_dir):
    frame = FrameRecord.from_extraction(1.0, make_jpeg(), tmp_path, storage_dir)
    frame.load_full()
    frame.discard()
    assert not frame.full_image_path.exists()
    assert not frame.is_loaded
    # Discarding twice is harmless
    frame.discard()


def test_equality_uses_id_only():
    thumbnail = Image.new("RGB", (10, 10))
    a = FrameRecord(1.0, thumbnail, "/tmp/a.jpg")
    b = FrameRecord(1.0, thumbnail, "/tmp/a.jpg")
    assert a != b
    assert a == FrameRecord(2.0, thumbnail, "/tmp/b.jpg", frame_id=a.id)
    assert len({a, b}) == 2
    assert a.formatted_timestamp == "00:01.0"
