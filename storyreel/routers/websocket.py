"""
WebSocket Router
Per-render progress stream. A client subscribes to one job id, receives the
current snapshot and every later change, and is disconnected once the job
reaches a terminal status.
"""

import asyncio
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..models.job import RenderStatus, VideoJob
from ..services.render_queue import get_render_queue
from ..utils.auth import extract_api_key, is_valid_api_key
from ..utils.logger import get_logger

router = APIRouter()
logger = get_logger()

_CLOSE_POLICY_VIOLATION = 1008
_CLOSE_NOT_FOUND = 4404


def _payload(job: VideoJob) -> dict:
    return {"type": "progress", "data": RenderStatus.from_job(job).model_dump(mode="json")}


@router.websocket("/ws/renders/{job_id}")
async def render_progress_endpoint(websocket: WebSocket, job_id: str):
    """Stream status snapshots for a single render."""
    # browsers cannot set headers on a WebSocket handshake, so ?token= is accepted
    if not is_valid_api_key(extract_api_key(websocket.headers, websocket.query_params)):
        await websocket.close(code=_CLOSE_POLICY_VIOLATION, reason="Unauthorized")
        return

    queue = get_render_queue()
    await websocket.accept()

    # subscribe before reading the snapshot so no update falls in between
    async with queue.hub.subscribe(job_id) as updates:
        job = await queue.store.get_job(job_id)
        if job is None:
            await websocket.close(code=_CLOSE_NOT_FOUND, reason="Render not found")
            return

        send_task = asyncio.create_task(send_updates(websocket, job, updates))
        receive_task = asyncio.create_task(receive_messages(websocket))
        try:
            await asyncio.wait(
                [send_task, receive_task],
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            # both outcomes are always retrieved, even when the handler is cancelled
            for task in (send_task, receive_task):
                task.cancel()
            outcomes = await asyncio.gather(send_task, receive_task, return_exceptions=True)

        for outcome in outcomes:
            if isinstance(outcome, WebSocketDisconnect):
                logger.debug(f"WebSocket for {job_id} disconnected")
            elif isinstance(outcome, Exception):
                raise outcome

    if send_task.done() and not send_task.cancelled() and send_task.exception() is None:
        await websocket.close()


async def send_updates(websocket: WebSocket, job: VideoJob, updates: asyncio.Queue):
    """Send the snapshot and later changes until the job is terminal."""
    await websocket.send_json(_payload(job))
    while not job.is_terminal:
        job = await updates.get()
        await websocket.send_json(_payload(job))


async def receive_messages(websocket: WebSocket):
    """Answer pings until the client goes away."""
    while True:
        data = await websocket.receive_text()
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            continue
        if isinstance(message, dict) and message.get("type") == "ping":
            await websocket.send_json({"type": "pong"})
