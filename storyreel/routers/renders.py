"""
Renders Router
Enqueue, poll, list and delete render jobs. Clients poll GET /{job_id}
until the status is completed or failed.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status as http_status

from ..models.job import JobStatus, RenderCreate, RenderStatus, VideoJob
from ..services.render_queue import RenderQueueService, get_render_queue

router = APIRouter(prefix="/api/renders", tags=["renders"])


@router.post("/", response_model=VideoJob, status_code=http_status.HTTP_202_ACCEPTED)
async def create_render(
    request: RenderCreate,
    queue: RenderQueueService = Depends(get_render_queue),
):
    """Queue a render for a project."""
    job_id = await queue.enqueue(request.project_id, request.settings)
    return await queue.get_job(job_id)


@router.get("/", response_model=List[VideoJob])
async def list_renders(
    project_id: Optional[int] = None,
    status: Optional[JobStatus] = None,
    queue: RenderQueueService = Depends(get_render_queue),
):
    """List renders oldest first, optionally filtered."""
    return await queue.list_jobs(status=status, project_id=project_id)


@router.get("/{job_id}", response_model=RenderStatus)
async def get_render_status(
    job_id: str,
    queue: RenderQueueService = Depends(get_render_queue),
):
    """Poll a render's status."""
    return await queue.get_job_status(job_id)


@router.get("/{job_id}/details", response_model=VideoJob)
async def get_render(
    job_id: str,
    queue: RenderQueueService = Depends(get_render_queue),
):
    """Full job record including settings and timestamps."""
    return await queue.get_job(job_id)


@router.delete("/{job_id}")
async def delete_render(
    job_id: str,
    queue: RenderQueueService = Depends(get_render_queue),
):
    """Delete a finished or pending render and its output."""
    await queue.delete_job(job_id)
    return {"status": "deleted"}
