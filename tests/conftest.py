"""
Pytest fixtures for StoryReel tests.

Everything runs against temp directories and throwaway SQLite files. FFmpeg
is never invoked: clip synthesis and concatenation are replaced by fakes
that write placeholder files, and the encoder driver is exercised with
Python child processes instead.
"""

import asyncio
import base64
import io
from pathlib import Path
from typing import List, Optional

import pytest
from PIL import Image

from storyreel.models.scene import AudioTrack, Scene
from storyreel.services.image_normalizer import ImageNormalizer
from storyreel.services.job_store import JobStore
from storyreel.services.media_storage import MediaStorage
from storyreel.services.progress_hub import ProgressHub
from storyreel.services.project_store import ProjectStore
from storyreel.services.render_pipeline import RenderPipeline, RenderResult
from storyreel.services.render_queue import RenderQueueService
from storyreel.utils.exceptions import FFmpegError


def make_image_bytes(width: int, height: int, color=(200, 80, 40), fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_data_uri(width: int, height: int) -> str:
    encoded = base64.b64encode(make_image_bytes(width, height)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


# =============================================================================
# Encoder fakes
# =============================================================================


class FakeSynthesizer:
    """Writes a placeholder clip and records what it was asked to render."""

    def __init__(self, fail_at: Optional[int] = None):
        self.fail_at = fail_at
        self.calls: List[dict] = []

    async def synthesize(self, image_path, output_path, duration, plan, config, progress_callback=None):
        index = len(self.calls)
        self.calls.append({
            "image_path": Path(image_path),
            "duration": duration,
            "plan": plan,
            "config": config,
        })
        if self.fail_at is not None and index == self.fail_at:
            raise FFmpegError("FFmpeg encoding failed (exit 1): simulated failure")

        if progress_callback is not None:
            # the real driver reports from a worker thread
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, progress_callback, 0.5)
        Path(output_path).write_bytes(b"clip")
        return output_path


class FakeConcatenator:
    """Writes a plausible output file without running FFmpeg."""

    def __init__(self, size: int = 2048):
        self.size = size
        self.calls: List[dict] = []

    async def concatenate(
        self,
        clip_paths,
        audio_path,
        output_path,
        expected_duration,
        fps=30,
        crf=20,
        preset="medium",
        progress_callback=None,
    ):
        self.calls.append({
            "clip_paths": list(clip_paths),
            "audio_path": audio_path,
            "expected_duration": expected_duration,
            "workspace": Path(output_path).parent,
            "crf": crf,
            "preset": preset,
        })
        if progress_callback is not None:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, progress_callback, 1.0)
        Path(output_path).write_bytes(b"\0" * self.size)
        return self.size


class RecordingPipeline:
    """Stands in for the render pipeline and records processing order."""

    def __init__(self, fail_projects=()):
        self.fail_projects = set(fail_projects)
        self.processed = []

    async def run(self, job, report):
        self.processed.append(job.id)
        await report(50)
        if job.project_id in self.fail_projects:
            raise RuntimeError(f"project {job.project_id} exploded")
        return RenderResult(video_url=f"/output/video_{job.id}.mp4", file_size=4096, duration=12.0)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def storage_root(tmp_path) -> Path:
    root = tmp_path / "storage"
    (root / "uploads").mkdir(parents=True)
    return root


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    path = tmp_path / "temp"
    path.mkdir()
    return path


@pytest.fixture
def media_storage(tmp_path, storage_root) -> MediaStorage:
    return MediaStorage(str(storage_root), str(tmp_path / "output"))


@pytest.fixture
def job_store(tmp_path) -> JobStore:
    return JobStore(str(tmp_path / "data" / "jobs.db"))


@pytest.fixture
def project_store(tmp_path) -> ProjectStore:
    return ProjectStore(str(tmp_path / "data" / "projects.db"))


@pytest.fixture
def fake_synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def fake_concatenator() -> FakeConcatenator:
    return FakeConcatenator()


@pytest.fixture
def pipeline(project_store, media_storage, temp_dir, fake_synthesizer, fake_concatenator) -> RenderPipeline:
    return RenderPipeline(
        projects=project_store,
        storage=media_storage,
        normalizer=ImageNormalizer(media_storage, public_base_url="http://images.test"),
        synthesizer=fake_synthesizer,
        concatenator=fake_concatenator,
        temp_dir=str(temp_dir),
    )


@pytest.fixture
def render_queue(job_store, pipeline, media_storage) -> RenderQueueService:
    return RenderQueueService(job_store, pipeline, hub=ProgressHub(), storage=media_storage)


@pytest.fixture
def seed_project(project_store, storage_root):
    """Factory that stores scenes (inline PNGs) and an optional narration file."""

    async def _seed(
        project_id: int,
        scene_count: int = 3,
        scene_duration: float = 4.0,
        audio_duration: Optional[float] = 9.0,
        image_size=(64, 36),
    ):
        for number in range(1, scene_count + 1):
            await project_store.save_scene(Scene(
                project_id=project_id,
                scene_number=number,
                image_url=make_data_uri(*image_size),
                estimated_duration=scene_duration,
            ))
        if audio_duration is not None:
            audio_file = storage_root / "uploads" / f"narration_{project_id}.mp3"
            audio_file.write_bytes(b"ID3 fake narration")
            await project_store.save_audio(AudioTrack(
                project_id=project_id,
                audio_url=f"/uploads/{audio_file.name}",
                duration=audio_duration,
            ))

    return _seed
