"""Tests for durable job persistence."""

import pytest

from storyreel.models.job import JobStatus, RenderSettings, VideoJob
from storyreel.services.job_store import JobStore


class TestCrud:

    @pytest.mark.asyncio
    async def test_create_and_get(self, job_store):
        job = VideoJob(project_id=7, settings=RenderSettings(resolution="720p", scene_range=[2, 4]))
        await job_store.create_job(job)

        loaded = await job_store.get_job(job.id)
        assert loaded is not None
        assert loaded.project_id == 7
        assert loaded.status == JobStatus.PENDING
        assert loaded.progress == 0
        assert loaded.settings.resolution == "720p"
        assert loaded.settings.scene_range.start == 2
        assert loaded.settings.scene_range.end == 4

    @pytest.mark.asyncio
    async def test_unknown_job(self, job_store):
        assert await job_store.get_job("render_missing") is None
        assert await job_store.update_job("render_missing", progress=5) is None
        assert await job_store.delete_job("render_missing") is False

    @pytest.mark.asyncio
    async def test_partial_update(self, job_store):
        job = await job_store.create_job(VideoJob(project_id=1))
        updated = await job_store.update_job(job.id, progress=42)

        assert updated.progress == 42
        assert updated.updated_at >= job.updated_at
        assert (await job_store.get_job(job.id)).progress == 42

    @pytest.mark.asyncio
    async def test_invalid_update_is_rolled_back(self, job_store):
        job = await job_store.create_job(VideoJob(project_id=1))
        with pytest.raises(ValueError):
            await job_store.update_job(job.id, progress=250)
        assert (await job_store.get_job(job.id)).progress == 0

    @pytest.mark.asyncio
    async def test_delete(self, job_store):
        job = await job_store.create_job(VideoJob(project_id=1))
        assert await job_store.delete_job(job.id) is True
        assert await job_store.get_job(job.id) is None


class TestTransition:

    @pytest.mark.asyncio
    async def test_applies_when_status_matches(self, job_store):
        job = await job_store.create_job(VideoJob(project_id=1))
        claimed = await job_store.transition(job.id, JobStatus.PENDING, status=JobStatus.PROCESSING, progress=1)

        assert claimed.status == JobStatus.PROCESSING
        assert claimed.progress == 1

    @pytest.mark.asyncio
    async def test_second_claim_loses(self, job_store):
        job = await job_store.create_job(VideoJob(project_id=1))
        first = await job_store.transition(job.id, JobStatus.PENDING, status=JobStatus.PROCESSING)
        second = await job_store.transition(job.id, JobStatus.PENDING, status=JobStatus.PROCESSING, progress=50)

        assert first is not None
        assert second is None
        assert (await job_store.get_job(job.id)).progress == 0


class TestListing:

    @pytest.mark.asyncio
    async def test_oldest_first_with_filters(self, job_store):
        a = await job_store.create_job(VideoJob(project_id=1))
        b = await job_store.create_job(VideoJob(project_id=2))
        c = await job_store.create_job(VideoJob(project_id=1, status=JobStatus.FAILED))

        assert [j.id for j in await job_store.list_jobs()] == [a.id, b.id, c.id]
        assert [j.id for j in await job_store.list_jobs(project_id=1)] == [a.id, c.id]
        assert [j.id for j in await job_store.list_jobs(status=JobStatus.PENDING)] == [a.id, b.id]
        assert [j.id for j in await job_store.list_jobs(status="failed", project_id=1)] == [c.id]

    @pytest.mark.asyncio
    async def test_oldest_pending(self, job_store):
        assert await job_store.oldest_pending() is None

        first = await job_store.create_job(VideoJob(project_id=1))
        await job_store.create_job(VideoJob(project_id=1))
        assert (await job_store.oldest_pending()).id == first.id

        await job_store.transition(first.id, JobStatus.PENDING, status=JobStatus.PROCESSING)
        assert (await job_store.oldest_pending()).id != first.id

    @pytest.mark.asyncio
    async def test_survives_reopen(self, job_store):
        job = await job_store.create_job(VideoJob(project_id=3))
        reopened = JobStore(str(job_store.db_path))
        assert (await reopened.get_job(job.id)).project_id == 3
