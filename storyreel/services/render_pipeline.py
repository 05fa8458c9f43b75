"""
Render Pipeline
Scene timing -> image normalization -> clip synthesis -> concatenation ->
publish, for a single job inside its own temp workspace.
"""

import asyncio
import concurrent.futures
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple

from ..config import Settings
from ..models.job import VideoJob
from ..models.scene import AudioTrack, Scene
from ..utils.exceptions import MissingAudioError, NoRenderableScenesError
from ..utils.logger import get_logger
from .clip_synthesizer import ClipConfig, ClipSynthesizer
from .concatenator import Concatenator
from .ffmpeg import ProgressCallback, probe_duration
from .image_normalizer import ImageNormalizer
from .media_storage import MediaStorage, build_media_storage
from .motion import plan_motion
from .project_store import ProjectStore
from .timing import allocate_scene_durations, frame_aligned_durations
from .workspace import job_workspace

logger = get_logger()

# Overall job progress bands per stage
PROGRESS_PREPARED = 10
NORMALIZE_BAND = (10, 30)
SYNTHESIZE_BAND = (30, 75)
CONCAT_BAND = (75, 95)

ProgressReporter = Callable[[int], Awaitable[None]]

_REPORT_TIMEOUT_SECONDS = 10


@dataclass
class RenderResult:
    """Metadata of a published render"""
    video_url: str
    file_size: int
    duration: float


def select_renderable_scenes(scenes: List[Scene], job: VideoJob) -> List[Scene]:
    """Scenes with an image, inside the requested range, in scene order."""
    scene_range = job.settings.scene_range
    selected = [
        scene for scene in scenes
        if scene.image_url and (scene_range is None or scene_range.contains(scene.scene_number))
    ]
    return sorted(selected, key=lambda scene: scene.scene_number)


class RenderPipeline:
    """Runs every stage of one render job"""

    def __init__(
        self,
        projects: ProjectStore,
        storage: MediaStorage,
        normalizer: ImageNormalizer,
        synthesizer: ClipSynthesizer,
        concatenator: Concatenator,
        temp_dir: str,
        ffprobe_path: str = "ffprobe",
    ):
        self.projects = projects
        self.storage = storage
        self.normalizer = normalizer
        self.synthesizer = synthesizer
        self.concatenator = concatenator
        self.temp_dir = temp_dir
        self.ffprobe_path = ffprobe_path

    async def run(self, job: VideoJob, report: ProgressReporter) -> RenderResult:
        all_scenes = await self.projects.scenes_for_project(job.project_id)
        scenes = select_renderable_scenes(all_scenes, job)
        if not scenes:
            raise NoRenderableScenesError(job.project_id)

        audio_path, audio_duration = await self._prepare_audio(job)
        durations = frame_aligned_durations(
            allocate_scene_durations(scenes, audio_duration),
            job.settings.fps,
        )
        total_duration = sum(durations)
        if audio_duration:
            total_duration = min(total_duration, audio_duration)

        width, height = job.settings.dimensions()
        crf, preset = job.settings.encoder_quality()
        clip_config = ClipConfig(
            width=width,
            height=height,
            fps=job.settings.fps,
            crf=crf,
            preset=preset,
            motion_factor=job.settings.motion_factor(),
        )

        logger.info(
            f"Job {job.id}: {len(scenes)} scenes, {total_duration:.1f}s at "
            f"{width}x{height}@{job.settings.fps} ({job.settings.quality})"
        )
        await report(PROGRESS_PREPARED)

        with job_workspace(self.temp_dir, job.id) as workspace:
            # =================================================================
            # Step 1: Normalize scene images
            # =================================================================
            normalized = []
            low, high = NORMALIZE_BAND
            for index, scene in enumerate(scenes):
                frame_path = workspace / f"frame_{index + 1:04d}.jpg"
                normalized.append(
                    await self.normalizer.normalize(
                        scene.image_url,
                        frame_path,
                        width,
                        height,
                        scene_number=scene.scene_number,
                    )
                )
                await report(int(low + (high - low) * (index + 1) / len(scenes)))

            # =================================================================
            # Step 2: Synthesize one clip per scene
            # =================================================================
            clip_paths: List[Path] = []
            low, high = SYNTHESIZE_BAND
            step = (high - low) / len(scenes)
            for index, (image, duration) in enumerate(zip(normalized, durations)):
                plan = plan_motion(index, image.orientation)
                clip_path = workspace / f"clip_{index + 1:04d}.mp4"
                await self.synthesizer.synthesize(
                    image.path,
                    clip_path,
                    duration,
                    plan,
                    clip_config,
                    progress_callback=self._threadsafe_progress(report, low + step * index, step),
                )
                clip_paths.append(clip_path)
                await report(int(low + step * (index + 1)))

            # =================================================================
            # Step 3: Concatenate with narration
            # =================================================================
            low, high = CONCAT_BAND
            output_path = workspace / "output.mp4"
            await self.concatenator.concatenate(
                clip_paths,
                audio_path,
                output_path,
                total_duration,
                fps=clip_config.fps,
                crf=crf,
                preset=preset,
                progress_callback=self._threadsafe_progress(report, low, high - low),
            )
            await report(high)

            # =================================================================
            # Step 4: Publish before the workspace is torn down
            # =================================================================
            published = await self.storage.publish(output_path, f"video_{job.id}.mp4")

        return RenderResult(
            video_url=published.url,
            file_size=published.size,
            duration=round(total_duration, 3),
        )

    async def _prepare_audio(self, job: VideoJob) -> Tuple[Optional[Path], Optional[float]]:
        audio: Optional[AudioTrack] = await self.projects.audio_for_project(job.project_id)
        if audio is None:
            if job.settings.preview:
                logger.info(f"Job {job.id}: preview render without narration")
                return None, None
            raise MissingAudioError("Project missing audio", project_id=job.project_id)

        audio_path = self.storage.resolve_local(audio.audio_url)
        if audio_path is None:
            raise MissingAudioError(
                "Audio file not accessible",
                project_id=job.project_id,
                path=audio.audio_url,
            )

        duration = audio.duration
        if not duration or duration <= 0:
            duration = await probe_duration(str(audio_path), self.ffprobe_path)
        return audio_path, duration

    @staticmethod
    def _threadsafe_progress(report: ProgressReporter, start: float, span: float) -> ProgressCallback:
        """Bridge encoder progress (worker thread) onto the event loop."""
        loop = asyncio.get_running_loop()

        def callback(fraction: float):
            future = asyncio.run_coroutine_threadsafe(report(int(start + span * fraction)), loop)
            try:
                future.result(timeout=_REPORT_TIMEOUT_SECONDS)
            except concurrent.futures.TimeoutError:
                future.cancel()
                logger.warning("Progress update timed out")

        return callback


def build_render_pipeline(
    settings: Settings,
    projects: ProjectStore,
    storage: Optional[MediaStorage] = None,
) -> RenderPipeline:
    storage = storage or build_media_storage(settings)
    return RenderPipeline(
        projects=projects,
        storage=storage,
        normalizer=ImageNormalizer(
            storage,
            public_base_url=settings.public_base_url,
            fetch_timeout=settings.image_fetch_timeout_seconds,
            fetch_retries=settings.image_fetch_retries,
        ),
        synthesizer=ClipSynthesizer(settings.ffmpeg_path, timeout=settings.clip_timeout_seconds),
        concatenator=Concatenator(
            settings.ffmpeg_path,
            timeout=settings.concat_timeout_seconds,
            min_output_bytes=settings.min_output_bytes,
        ),
        temp_dir=settings.temp_dir,
        ffprobe_path=settings.ffprobe_path,
    )
