"""
Render Queue Service
Single-flight scheduler over durable render jobs with startup recovery.

The job store is the only source of truth: enqueue writes a pending row and
nudges the scheduler, the scheduler claims the oldest pending row and drives
it to completed/failed. A job left processing by a crash is reset to pending
on the next start and rendered again from scratch.
"""

import asyncio
from datetime import datetime
from typing import List, Optional

from ..config import get_settings
from ..models.job import JobStatus, RenderSettings, RenderStatus, VideoJob
from ..utils.exceptions import JobNotFoundError, JobStateError, StoryReelError
from ..utils.logger import get_logger
from .job_store import JobStore, get_job_store
from .media_storage import MediaStorage, get_media_storage
from .progress_hub import ProgressHub, get_progress_hub
from .project_store import get_project_store
from .render_pipeline import ProgressReporter, RenderPipeline, build_render_pipeline

logger = get_logger()

RECOVERY_NOTE = "Recovered after restart"
PROCESSING_START_PROGRESS = 1
MAX_ERROR_LENGTH = 500


def _error_message(exc: Exception) -> str:
    if isinstance(exc, StoryReelError):
        message = exc.message
    else:
        message = str(exc).strip() or type(exc).__name__
    if len(message) > MAX_ERROR_LENGTH:
        message = message[:MAX_ERROR_LENGTH - 3] + "..."
    return message


class RenderQueueService:
    """Processes at most one render at a time per process."""

    def __init__(
        self,
        store: JobStore,
        pipeline: RenderPipeline,
        hub: Optional[ProgressHub] = None,
        storage: Optional[MediaStorage] = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.hub = hub or ProgressHub()
        self.storage = storage
        self._started = False
        self._wake = False
        self._runner: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        """Recover interrupted jobs, then resume processing."""
        if self._started:
            return

        await self.store.initialize()
        recovered = await self.recover_interrupted_jobs()
        self._started = True
        logger.info(f"Render queue started (recovered={recovered})")
        self.nudge()

    async def stop(self):
        """Stop the scheduler; an in-flight job is recovered on next start."""
        if not self._started:
            return

        self._started = False
        runner = self._runner
        if runner is not None and not runner.done():
            runner.cancel()
            await asyncio.gather(runner, return_exceptions=True)
        self._runner = None
        logger.info("Render queue stopped")

    async def join(self):
        """Wait until the scheduler has drained the pending jobs."""
        while self._runner is not None and not self._runner.done():
            await asyncio.gather(self._runner, return_exceptions=True)

    @property
    def busy(self) -> bool:
        return self._runner is not None and not self._runner.done()

    async def recover_interrupted_jobs(self) -> int:
        """Reset jobs stuck in processing back to pending."""
        interrupted = await self.store.list_jobs(status=JobStatus.PROCESSING)
        recovered = 0
        for job in interrupted:
            updated = await self.store.transition(
                job.id,
                JobStatus.PROCESSING,
                status=JobStatus.PENDING,
                progress=0,
                error=RECOVERY_NOTE,
            )
            if updated is not None:
                recovered += 1

        if recovered:
            logger.warning(f"Reset {recovered} interrupted render jobs to pending")
        return recovered

    # ------------------------------------------------------------------
    # Caller API
    # ------------------------------------------------------------------

    async def enqueue(self, project_id: int, settings: Optional[RenderSettings] = None) -> str:
        """Persist a pending render job and nudge the scheduler."""
        job = VideoJob(project_id=project_id, settings=settings or RenderSettings())
        await self.store.create_job(job)
        logger.info(f"Render queued: {job.id} (project {project_id})")
        self.nudge()
        return job.id

    async def get_job(self, job_id: str) -> VideoJob:
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def get_job_status(self, job_id: str) -> RenderStatus:
        return RenderStatus.from_job(await self.get_job(job_id))

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        project_id: Optional[int] = None,
    ) -> List[VideoJob]:
        return await self.store.list_jobs(status=status, project_id=project_id)

    async def delete_job(self, job_id: str):
        """Delete a job record and its published video."""
        job = await self.get_job(job_id)
        if job.status == JobStatus.PROCESSING:
            raise JobStateError(job_id, job.status, "delete")

        if self.storage is not None:
            await self.storage.remove_published(job.video_url)
        await self.store.delete_job(job_id)
        logger.info(f"Render deleted: {job_id}")

    # ------------------------------------------------------------------
    # Scheduler
    # ------------------------------------------------------------------

    def nudge(self):
        """Start the scheduler unless it is already running."""
        if not self._started:
            return
        self._wake = True
        if self.busy:
            return
        self._runner = asyncio.create_task(self._run_loop())

    async def _run_loop(self):
        while self._started:
            self._wake = False
            try:
                job = await self._claim_next()
            except Exception as exc:
                logger.exception(f"Render queue could not claim a job: {exc}")
                return

            if job is None:
                # an enqueue that raced the empty check sets _wake again
                if self._wake:
                    continue
                return

            await self._process(job)

    async def _claim_next(self) -> Optional[VideoJob]:
        while True:
            candidate = await self.store.oldest_pending()
            if candidate is None:
                return None

            claimed = await self.store.transition(
                candidate.id,
                JobStatus.PENDING,
                status=JobStatus.PROCESSING,
                progress=PROCESSING_START_PROGRESS,
                error=None,
            )
            if claimed is not None:
                self._publish(claimed)
                return claimed
            logger.info(f"Job {candidate.id} was claimed elsewhere, trying next")

    async def _process(self, job: VideoJob):
        logger.info(f"Processing render {job.id} (project {job.project_id})")
        try:
            result = await self.pipeline.run(job, self._progress_reporter(job.id))
        except Exception as exc:
            logger.exception(f"Render {job.id} failed: {exc}")
            await self._finish(
                job.id,
                status=JobStatus.FAILED,
                error=_error_message(exc),
                completed_at=datetime.utcnow(),
            )
            return

        await self._finish(
            job.id,
            status=JobStatus.COMPLETED,
            progress=100,
            video_url=result.video_url,
            file_size=result.file_size,
            duration=result.duration,
            error=None,
            completed_at=datetime.utcnow(),
        )
        logger.info(f"Render {job.id} completed: {result.video_url}")

    async def _finish(self, job_id: str, **fields):
        try:
            updated = await self.store.transition(job_id, JobStatus.PROCESSING, **fields)
        except Exception as exc:
            logger.exception(f"Could not record outcome of render {job_id}: {exc}")
            return

        if updated is None:
            logger.warning(f"Render {job_id} left processing before its outcome was recorded")
            return
        self._publish(updated)

    def _progress_reporter(self, job_id: str) -> ProgressReporter:
        last_progress = PROCESSING_START_PROGRESS

        async def report(progress: int):
            nonlocal last_progress
            progress = max(0, min(99, int(progress)))
            if progress <= last_progress:
                return
            last_progress = progress
            updated = await self.store.update_job(job_id, progress=progress)
            if updated is not None:
                self._publish(updated)

        return report

    def _publish(self, job: VideoJob):
        self.hub.publish(job)


_render_queue: Optional[RenderQueueService] = None


def get_render_queue() -> RenderQueueService:
    """Return singleton render queue."""
    global _render_queue
    if _render_queue is None:
        settings = get_settings()
        storage = get_media_storage()
        pipeline = build_render_pipeline(settings, get_project_store(), storage)
        _render_queue = RenderQueueService(
            get_job_store(),
            pipeline,
            hub=get_progress_hub(),
            storage=storage,
        )
    return _render_queue
