"""Utils package initialization"""
from .logger import setup_logger, get_logger
from .exceptions import (
    StoryReelError,
    NoRenderableScenesError,
    MissingAudioError,
    ImageSourceError,
    SceneRecordError,
    FFmpegError,
    FFmpegTimeoutError,
    OutputIntegrityError,
    S3UploadError,
    JobNotFoundError,
    JobStateError
)
from .retry import retry_async

__all__ = [
    "setup_logger",
    "get_logger",
    "StoryReelError",
    "NoRenderableScenesError",
    "MissingAudioError",
    "ImageSourceError",
    "SceneRecordError",
    "FFmpegError",
    "FFmpegTimeoutError",
    "OutputIntegrityError",
    "S3UploadError",
    "JobNotFoundError",
    "JobStateError",
    "retry_async"
]
