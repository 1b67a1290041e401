import io
import threading

import pytest
from PIL import Image

from still_marker.errors import DurationUnavailable, ExtractionFailed


def make_jpeg(width=320, height=180, color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, "JPEG")
    return buffer.getvalue()


class FakeSource:
    """In-memory frame source recording every request."""

    def __init__(self, duration=15.0, fail_at=(), gate=None, error=None):
        self.duration = duration
        self.fail_at = set(fail_at)
        # Raised instead of ExtractionFailed at fail_at timestamps
        self.error = error
        self.gate = gate
        self.requests = []

    def probe_duration(self, video_path):
        if isinstance(self.duration, Exception):
            raise self.duration
        return self.duration

    def extract_frame_at(self, video_path, timestamp):
        self.requests.append(timestamp)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if round(timestamp, 3) in self.fail_at:
            if self.error is not None:
                raise self.error
            raise ExtractionFailed(f"seek failed at {timestamp}", timestamp)
        return make_jpeg()


class EventLog:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def storage_dir(tmp_path):
    path = tmp_path / "frames"
    path.mkdir()
    return path


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def gate():
    return threading.Event()


@pytest.fixture
def unavailable_source():
    return FakeSource(duration=DurationUnavailable("probe failed"))
