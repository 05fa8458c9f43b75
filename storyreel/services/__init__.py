"""Services package initialization"""
from .job_store import JobStore, get_job_store
from .project_store import ProjectStore, get_project_store
from .media_storage import MediaStorage, get_media_storage
from .image_normalizer import ImageNormalizer, NormalizedImage
from .clip_synthesizer import ClipSynthesizer, ClipConfig
from .concatenator import Concatenator
from .render_pipeline import RenderPipeline, RenderResult, build_render_pipeline
from .render_queue import RenderQueueService, get_render_queue
from .progress_hub import ProgressHub, get_progress_hub

__all__ = [
    "JobStore",
    "get_job_store",
    "ProjectStore",
    "get_project_store",
    "MediaStorage",
    "get_media_storage",
    "ImageNormalizer",
    "NormalizedImage",
    "ClipSynthesizer",
    "ClipConfig",
    "Concatenator",
    "RenderPipeline",
    "RenderResult",
    "build_render_pipeline",
    "RenderQueueService",
    "get_render_queue",
    "ProgressHub",
    "get_progress_hub",
]
