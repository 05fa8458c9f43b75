"""
Job Store Service
SQLite-backed persistence for render jobs.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

import aiosqlite

from ..config import get_settings
from ..models.job import JobStatus, VideoJob
from ..utils.logger import get_logger

logger = get_logger()

UNREADABLE_JOB_ERROR = "Unreadable job record"


class JobStore:
    """Durable record of job id -> status, progress, result and error."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    async def initialize(self):
        """Initialize database schema."""
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute("PRAGMA synchronous=NORMAL")
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS video_jobs (
                        id TEXT PRIMARY KEY,
                        project_id INTEGER NOT NULL,
                        status TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        payload TEXT NOT NULL
                    )
                    """
                )
                await conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_video_jobs_status ON video_jobs(status, created_at)"
                )
                await conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_video_jobs_project ON video_jobs(project_id)"
                )
                await conn.commit()

            self._initialized = True
            logger.info(f"Job store initialized at {self.db_path}")

    @staticmethod
    def _to_json(job: VideoJob) -> str:
        return json.dumps(job.model_dump(mode="json"), ensure_ascii=False)

    @staticmethod
    def _from_json(payload: str) -> Optional[VideoJob]:
        try:
            return VideoJob(**json.loads(payload))
        except (TypeError, ValueError) as exc:
            logger.warning(f"Skipping invalid stored job payload: {exc}")
            return None

    async def create_job(self, job: VideoJob) -> VideoJob:
        """Insert a new job record."""
        await self.initialize()

        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    """
                    INSERT INTO video_jobs (id, project_id, status, created_at, updated_at, payload)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        job.id,
                        job.project_id,
                        job.status,
                        job.created_at.isoformat(),
                        job.updated_at.isoformat(),
                        self._to_json(job),
                    ),
                )
                await conn.commit()
        return job

    async def get_job(self, job_id: str) -> Optional[VideoJob]:
        """Return a job by id."""
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(
                "SELECT payload FROM video_jobs WHERE id = ?", (job_id,)
            )
            row = await cursor.fetchone()
            await cursor.close()

        if row is None:
            return None
        return self._from_json(row[0])

    async def update_job(self, job_id: str, **fields: Any) -> Optional[VideoJob]:
        """Apply a partial update; returns the updated job or None if unknown."""
        return await self._mutate(job_id, None, fields)

    async def transition(
        self,
        job_id: str,
        expected_status: JobStatus,
        **fields: Any,
    ) -> Optional[VideoJob]:
        """
        Compare-and-set update.

        Applies ``fields`` only if the stored status still equals
        ``expected_status``; returns None when another writer got there first.
        """
        return await self._mutate(job_id, expected_status, fields)

    async def _mutate(
        self,
        job_id: str,
        expected_status: Optional[JobStatus],
        fields: dict,
    ) -> Optional[VideoJob]:
        await self.initialize()

        async with self._write_lock:
            async with aiosqlite.connect(self.db_path, isolation_level=None) as conn:
                # IMMEDIATE takes the write lock up front so other processes
                # sharing the file cannot interleave between read and write.
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    cursor = await conn.execute(
                        "SELECT status, payload FROM video_jobs WHERE id = ?", (job_id,)
                    )
                    row = await cursor.fetchone()
                    await cursor.close()

                    if row is None:
                        await conn.execute("ROLLBACK")
                        return None

                    status, payload = row
                    if expected_status is not None and status != JobStatus(expected_status).value:
                        await conn.execute("ROLLBACK")
                        return None

                    data = json.loads(payload)
                    data.update(fields)
                    data["updated_at"] = datetime.utcnow()
                    job = VideoJob(**data)

                    await conn.execute(
                        """
                        UPDATE video_jobs
                        SET status = ?, updated_at = ?, payload = ?
                        WHERE id = ?
                        """,
                        (job.status, job.updated_at.isoformat(), self._to_json(job), job_id),
                    )
                    await conn.execute("COMMIT")
                except BaseException:
                    await conn.execute("ROLLBACK")
                    raise
        return job

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        project_id: Optional[int] = None,
    ) -> List[VideoJob]:
        """Return jobs oldest first, optionally filtered by status and project."""
        await self.initialize()
        query = "SELECT payload FROM video_jobs"
        clauses = []
        params: list = []

        if status is not None:
            clauses.append("status = ?")
            params.append(JobStatus(status).value)
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)

        # rowid breaks ties between jobs created within the same clock tick
        query += " ORDER BY created_at ASC, rowid ASC"

        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(query, tuple(params))
            rows = await cursor.fetchall()
            await cursor.close()

        jobs: List[VideoJob] = []
        for (payload,) in rows:
            job = self._from_json(payload)
            if job is not None:
                jobs.append(job)
        return jobs

    async def oldest_pending(self) -> Optional[VideoJob]:
        """
        Return the oldest readable pending job, if any.

        Pending rows whose payload no longer validates are moved to failed
        on the way, so they cannot block the jobs queued behind them.
        """
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(
                """
                SELECT id, payload FROM video_jobs
                WHERE status = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (JobStatus.PENDING.value,),
            )
            rows = await cursor.fetchall()
            await cursor.close()

        for job_id, payload in rows:
            job = self._from_json(payload)
            if job is not None:
                return job
            await self._fail_unreadable(job_id, payload)
        return None

    async def _fail_unreadable(self, job_id: str, payload: str) -> bool:
        """Compare-and-set a pending row that cannot be parsed to failed."""
        now = datetime.utcnow().isoformat()
        try:
            data = json.loads(payload)
        except ValueError:
            data = None
        if isinstance(data, dict):
            data.update(
                status=JobStatus.FAILED.value,
                error=UNREADABLE_JOB_ERROR,
                updated_at=now,
                completed_at=now,
            )
            payload = json.dumps(data, ensure_ascii=False)

        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                cursor = await conn.execute(
                    """
                    UPDATE video_jobs
                    SET status = ?, updated_at = ?, payload = ?
                    WHERE id = ? AND status = ?
                    """,
                    (JobStatus.FAILED.value, now, payload, job_id, JobStatus.PENDING.value),
                )
                failed = cursor.rowcount > 0
                await cursor.close()
                await conn.commit()

        if failed:
            logger.error(f"Job {job_id} has an unreadable record; marked failed")
        return failed

    async def delete_job(self, job_id: str) -> bool:
        """Delete a job record."""
        await self.initialize()
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                cursor = await conn.execute("DELETE FROM video_jobs WHERE id = ?", (job_id,))
                deleted = cursor.rowcount > 0
                await cursor.close()
                await conn.commit()
        return deleted


_job_store: Optional[JobStore] = None


def get_job_store() -> JobStore:
    """Return singleton job store."""
    global _job_store
    if _job_store is None:
        settings = get_settings()
        db_path = Path(settings.data_dir) / "storyreel.db"
        _job_store = JobStore(str(db_path))
    return _job_store
