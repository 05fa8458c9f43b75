"""
Job Data Models
Represents a render job and the settings it was submitted with
"""

from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional, Tuple
from enum import Enum
from datetime import datetime
import uuid


RESOLUTIONS = {
    "720p": (1280, 720),
    "1080p": (1920, 1080),
    "1440p": (2560, 1440),
}

# quality tier -> (crf, x264 preset)
QUALITY_PRESETS = {
    "low": (28, "veryfast"),
    "medium": (24, "faster"),
    "high": (20, "medium"),
}

MOTION_FACTORS = {
    "subtle": 1.1,
    "moderate": 1.2,
    "dramatic": 1.3,
}


class JobStatus(str, Enum):
    """Render job status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = {JobStatus.COMPLETED.value, JobStatus.FAILED.value}


class SceneRange(BaseModel):
    """Inclusive range of scene numbers to render"""
    start: int
    end: int

    @field_validator("start", mode="after")
    @classmethod
    def clamp_start(cls, value: int) -> int:
        return max(1, value)

    @field_validator("end", mode="after")
    @classmethod
    def clamp_end(cls, value: int, info) -> int:
        start = info.data.get("start", 1)
        return max(start, value)

    def contains(self, scene_number: int) -> bool:
        return self.start <= scene_number <= self.end


class RenderSettings(BaseModel):
    """Output settings for a render"""
    resolution: Literal["720p", "1080p", "1440p"] = "1080p"
    fps: int = Field(default=30, ge=24, le=60)
    quality: Literal["low", "medium", "high"] = "high"
    format: Literal["landscape-16-9", "portrait-9-16"] = "landscape-16-9"
    scene_range: Optional[SceneRange] = None
    motion_intensity: Literal["subtle", "moderate", "dramatic"] = "moderate"
    preview: bool = Field(default=False, description="Allow rendering without narration audio")

    @field_validator("scene_range", mode="before")
    @classmethod
    def parse_scene_range(cls, value):
        if isinstance(value, (list, tuple)):
            if len(value) != 2:
                raise ValueError("scene_range must be [start, end]")
            return {"start": value[0], "end": value[1]}
        return value

    def dimensions(self) -> Tuple[int, int]:
        """Output (width, height); portrait swaps the landscape pair."""
        width, height = RESOLUTIONS[self.resolution]
        if self.format == "portrait-9-16":
            return height, width
        return width, height

    def encoder_quality(self) -> Tuple[int, str]:
        return QUALITY_PRESETS[self.quality]

    def motion_factor(self) -> float:
        return MOTION_FACTORS[self.motion_intensity]


class RenderCreate(BaseModel):
    """Request model for enqueuing a render"""
    project_id: int = Field(gt=0)
    settings: RenderSettings = Field(default_factory=RenderSettings)


class VideoJob(BaseModel):
    """Complete render job model"""
    id: str = Field(default_factory=lambda: f"render_{uuid.uuid4().hex}")
    project_id: int
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    settings: RenderSettings = Field(default_factory=RenderSettings)
    video_url: Optional[str] = None
    file_size: Optional[int] = None
    duration: Optional[float] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    model_config = {"use_enum_values": True}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RenderStatus(BaseModel):
    """Poll response for a single render"""
    id: str
    status: JobStatus
    progress: int
    video_url: Optional[str] = None
    error: Optional[str] = None

    model_config = {"use_enum_values": True}

    @classmethod
    def from_job(cls, job: VideoJob) -> "RenderStatus":
        return cls(
            id=job.id,
            status=job.status,
            progress=job.progress,
            video_url=job.video_url,
            error=job.error,
        )
