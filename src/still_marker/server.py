# src/still_marker/server.py
"""MCP server for still frame extraction, refinement and export."""

import logging
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from still_marker.config import EngineConfig
from still_marker.controller import StillMarkerController
from still_marker.exporter import ExportFormat
from still_marker.extractor import FrameExtractor
from still_marker.frames import format_timestamp
from still_marker.models import (
    AppPhase,
    ExportResponse,
    ExtractionResponse,
    RefinementResponse,
)
from still_marker.refinement import AdjustOutcome

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

config = EngineConfig()

# Initialize MCP server
mcp = FastMCP("still-marker")

# Initialize components
extractor = FrameExtractor(
    ffmpeg_path=config.ffmpeg_path,
    ffprobe_path=config.ffprobe_path,
    extract_timeout=config.extract_timeout,
    probe_timeout=config.probe_timeout
)
controller = StillMarkerController(extractor, config)


def resolve_video_path(source: str) -> str:
    """Resolve a source to an existing file, looking in the videos directory for bare names."""
    path = Path(source).expanduser()
    if path.is_file():
        return str(path)
    candidate = config.videos_dir / source
    if candidate.is_file():
        return str(candidate)
    raise FileNotFoundError(f"File not found: {source} (looked in {config.videos_dir})")


@mcp.tool()
async def extract_stills(source: str, offset: float = 0.0) -> dict:
    """
    Extract an evenly spaced grid of still frames from a local video.

    The spacing adapts to the video length: every second for clips under
    30s, about 30 frames up to 5 minutes, about 40 frames beyond that.

    Args:
        source: Path to a video file, or a filename in the videos directory
        offset: Seconds to shift the first sample forward. Default 0

    Returns:
        Dictionary with status, frames list, and metadata
    """
    if offset < 0:
        return ExtractionResponse(
            status="error",
            message=f"Invalid offset: {offset}. Must be 0 or greater"
        ).model_dump()

    try:
        video_path = resolve_video_path(source)
        logger.info(f"Extracting stills from {video_path} at offset {offset}s")

        await controller.open_video(video_path, offset)

        state = controller.state
        if state.phase is AppPhase.ERROR:
            return ExtractionResponse(status="error", message=state.error).model_dump()

        duration = format_timestamp(state.duration)
        return ExtractionResponse(
            status="success",
            video_duration=duration,
            interval=state.interval,
            frames_extracted=len(state.frames),
            frames_skipped=state.skipped,
            frames=state.frames,
            message=f"Extracted {len(state.frames)} stills from {duration} video every {state.interval:.1f}s"
        ).model_dump()

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return ExtractionResponse(status="error", message=str(e)).model_dump()

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return ExtractionResponse(
            status="error",
            message=f"Unexpected error: {str(e)}"
        ).model_dump()


@mcp.tool()
async def refine_still(frame_id: str, delta: float) -> dict:
    """
    Move one extracted still forward or backward in time.

    Adjustments compose: each one is relative to what is currently shown.
    Typical steps are 1/30s (one frame), 0.5s, 2s and 10s; use negative
    values to go back. The change is only kept after accept_still.

    Args:
        frame_id: Id of a frame from extract_stills
        delta: Seconds to move the frame by

    Returns:
        Dictionary with status, outcome and the preview state
    """
    try:
        preview = controller.state.preview
        if preview is None or preview.base_frame_id != frame_id:
            controller.open_preview(frame_id)

        outcome = await controller.nudge(delta)
        preview = controller.state.preview

        if outcome is AdjustOutcome.FAILED:
            return RefinementResponse(
                status="error",
                outcome=outcome.value,
                preview=preview,
                message=preview.error if preview else "Refinement failed"
            ).model_dump()

        return RefinementResponse(
            status="success",
            outcome=outcome.value,
            preview=preview,
            message=f"Showing frame at {format_timestamp(preview.displayed_timestamp)}"
        ).model_dump()

    except KeyError as e:
        logger.error(f"Unknown frame: {e}")
        return RefinementResponse(status="error", message=f"Unknown frame: {frame_id}").model_dump()

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return RefinementResponse(status="error", message=f"Unexpected error: {str(e)}").model_dump()


@mcp.tool()
async def accept_still() -> dict:
    """
    Keep the refined still in place of the original one.

    Returns:
        Dictionary with status and the accepted frame
    """
    if controller.state.preview is None:
        return RefinementResponse(status="error", message="No still is being refined").model_dump()

    frame = controller.accept_refinement()
    if frame is None:
        return RefinementResponse(
            status="error",
            message="Refinement could not be accepted"
        ).model_dump()

    return RefinementResponse(
        status="success",
        preview=controller.state.preview,
        frame=frame,
        message=f"Still updated to {frame.display_timestamp}"
    ).model_dump()


@mcp.tool()
async def export_stills(directory: str, image_format: str = "JPEG", frame_id: str | None = None) -> dict:
    """
    Export extracted stills as image files.

    Args:
        directory: Destination directory (created if missing)
        image_format: JPEG, PNG or TIFF. Default JPEG
        frame_id: Export only this frame. Default exports all

    Returns:
        Dictionary with status and the export report
    """
    try:
        fmt = ExportFormat.parse(image_format)
    except ValueError as e:
        return ExportResponse(status="error", message=str(e)).model_dump()

    if controller.session is None or not controller.session.frames:
        return ExportResponse(status="error", message="No stills to export").model_dump()

    try:
        if frame_id:
            report = controller.export_frame(frame_id, directory, fmt)
        else:
            report = controller.export_all(directory, fmt)
    except KeyError:
        return ExportResponse(status="error", message=f"Unknown frame: {frame_id}").model_dump()

    status = "success" if report.written else "error"
    return ExportResponse(
        status=status,
        report=report,
        message=f"Exported {len(report.written)} stills to {directory} ({report.failed} failed)"
    ).model_dump()


def main():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
