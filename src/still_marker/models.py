"""Pydantic models for extraction state and tool responses."""

from enum import Enum

from pydantic import BaseModel, Field


class FrameInfo(BaseModel):
    """Serializable view of a single extracted frame."""
    id: str
    timestamp: float
    display_timestamp: str
    path: str


class ExtractionStats(BaseModel):
    """Outcome counts for one extraction session."""
    duration: float
    interval: float
    planned: int
    extracted: int
    skipped: int


class PreviewInfo(BaseModel):
    """The frame currently in preview and its refinement status."""
    base_frame_id: str
    base_timestamp: float
    displayed_timestamp: float
    phase: str
    refined: bool = False
    in_progress: bool = False
    error: str | None = None


class AppPhase(str, Enum):
    UPLOAD = "upload"
    PROCESSING = "processing"
    RESULTS = "results"
    ERROR = "error"


class AppState(BaseModel):
    """Everything a UI needs to render the current application state."""
    phase: AppPhase = AppPhase.UPLOAD
    video_path: str | None = None
    offset: float = 0.0
    duration: float | None = None
    interval: float | None = None
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    message: str = ""
    frames: list[FrameInfo] = []
    skipped: int = 0
    preview: PreviewInfo | None = None
    error: str | None = None


class ExportReport(BaseModel):
    """Result of exporting one or more frames."""
    written: list[str] = []
    failed: int = 0
    errors: list[str] = []


class ExtractionResponse(BaseModel):
    """Response from the still extraction tool."""
    status: str  # "success" or "error"
    video_duration: str | None = None
    interval: float | None = None
    frames_extracted: int = 0
    frames_skipped: int = 0
    frames: list[FrameInfo] = []
    message: str


class RefinementResponse(BaseModel):
    """Response from the refine and accept tools."""
    status: str
    outcome: str | None = None
    preview: PreviewInfo | None = None
    frame: FrameInfo | None = None
    message: str


class ExportResponse(BaseModel):
    """Response from the export tool."""
    status: str
    report: ExportReport | None = None
    message: str
