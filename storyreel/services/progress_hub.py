"""
Progress Hub
Per-job push channel for render progress. Subscriptions are scoped to a
context manager, so listeners never outlive the client that opened them.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Set

from ..models.job import VideoJob

_MAX_QUEUE_SIZE = 100


class ProgressHub:
    """Fan-out of job snapshots keyed by job id"""

    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    @asynccontextmanager
    async def subscribe(self, job_id: str) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=_MAX_QUEUE_SIZE)
        self._subscribers.setdefault(job_id, set()).add(queue)
        try:
            yield queue
        finally:
            listeners = self._subscribers.get(job_id)
            if listeners is not None:
                listeners.discard(queue)
                if not listeners:
                    self._subscribers.pop(job_id, None)

    def publish(self, job: VideoJob):
        """Queue a snapshot for every subscriber of ``job.id``."""
        for queue in list(self._subscribers.get(job.id, ())):
            if queue.full():
                # slow consumers only need the latest state
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            try:
                queue.put_nowait(job)
            except asyncio.QueueFull:
                pass

    def subscriber_count(self, job_id: Optional[str] = None) -> int:
        if job_id is not None:
            return len(self._subscribers.get(job_id, ()))
        return sum(len(listeners) for listeners in self._subscribers.values())


_progress_hub: Optional[ProgressHub] = None


def get_progress_hub() -> ProgressHub:
    """Return singleton progress hub."""
    global _progress_hub
    if _progress_hub is None:
        _progress_hub = ProgressHub()
    return _progress_hub
