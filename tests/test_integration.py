# tests/test_integration.py
"""Integration tests - require ffmpeg and ffprobe."""

import pytest
import subprocess
from pathlib import Path

# Check if ffmpeg is available
FFMPEG_AVAILABLE = subprocess.run(
    ["which", "ffmpeg"], capture_output=True
).returncode == 0


@pytest.fixture
def test_video(tmp_path):
    # 6 seconds: red, green, blue, two seconds each
    video = tmp_path / "test.mp4"
    cmd = [
        "ffmpeg",
        "-f", "lavfi",
        "-i", "color=red:duration=2:size=320x240:rate=30",
        "-f", "lavfi",
        "-i", "color=green:duration=2:size=320x240:rate=30",
        "-f", "lavfi",
        "-i", "color=blue:duration=2:size=320x240:rate=30",
        "-filter_complex", "[0][1][2]concat=n=3:v=1:a=0",
        "-pix_fmt", "yuv420p",
        str(video),
        "-y"
    ]
    subprocess.run(cmd, capture_output=True, check=True)
    return video


@pytest.mark.skipif(not FFMPEG_AVAILABLE, reason="ffmpeg not installed")
class TestIntegration:
    """Integration tests that require ffmpeg."""

    def test_probe_and_extract(self, test_video):
        from PIL import Image
        import io
        from still_marker.extractor import FrameExtractor

        extractor = FrameExtractor()
        assert extractor.probe_duration(str(test_video)) == pytest.approx(6.0, abs=0.1)

        data = extractor.extract_frame_at(str(test_video), 3.0)
        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (320, 240)
            red, green, blue = image.convert("RGB").getpixel((160, 120))
            assert green > red and green > blue

    @pytest.mark.asyncio
    async def test_full_session(self, test_video, tmp_path):
        from still_marker.extractor import FrameExtractor
        from still_marker.session import ExtractionSession

        storage = tmp_path / "frames"
        session = ExtractionSession(FrameExtractor(), str(test_video), storage_dir=storage)
        completed = await session.run()

        assert [f.timestamp for f in completed.frames] == [0.0, 1.0, 2.0, 3.0, 4.0, 5.0]
        for frame in completed.frames:
            assert Path(frame.full_image_path).exists()
            assert frame.thumbnail.width <= 200

        session.discard()
        assert list(storage.iterdir()) == []
