"""
Scene Data Models
Scene images and narration audio consumed by the render pipeline
"""

from pydantic import BaseModel, Field
from typing import Optional


class Scene(BaseModel):
    """One still-image unit of a project, ordered by scene number"""
    project_id: int
    scene_number: int = Field(ge=1)
    image_url: Optional[str] = Field(None, description="data URI, '/uploads/...' path or remote URL")
    exact_start_time: Optional[float] = Field(None, description="Seconds, or milliseconds when > 1000")
    exact_end_time: Optional[float] = None
    estimated_duration: Optional[float] = None


class AudioTrack(BaseModel):
    """Narration track for a project"""
    project_id: int
    audio_url: str = Field(description="'/uploads/...' path under the storage root")
    duration: Optional[float] = Field(None, description="Seconds; probed from the file when missing")
