"""Models package initialization"""
from .job import (
    VideoJob,
    JobStatus,
    RenderSettings,
    RenderCreate,
    RenderStatus,
    SceneRange,
    TERMINAL_STATUSES,
)
from .scene import Scene, AudioTrack

__all__ = [
    "VideoJob",
    "JobStatus",
    "RenderSettings",
    "RenderCreate",
    "RenderStatus",
    "SceneRange",
    "TERMINAL_STATUSES",
    "Scene",
    "AudioTrack",
]
