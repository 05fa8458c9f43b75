"""
Project Store Service
SQLite-backed scene and narration lookups for render jobs.

Scenes and audio are produced upstream (image generation, TTS); this store
only exposes what the render pipeline needs plus the writers used to fill it.
"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import aiosqlite

from ..config import get_settings
from ..models.scene import AudioTrack, Scene
from ..utils.exceptions import SceneRecordError
from ..utils.logger import get_logger

logger = get_logger()


class ProjectStore:
    """Scene/audio provider keyed by project id."""

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
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS scenes (
                        project_id INTEGER NOT NULL,
                        scene_number INTEGER NOT NULL,
                        payload TEXT NOT NULL,
                        PRIMARY KEY (project_id, scene_number)
                    )
                    """
                )
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS audio_tracks (
                        project_id INTEGER PRIMARY KEY,
                        payload TEXT NOT NULL
                    )
                    """
                )
                await conn.commit()

            self._initialized = True

    async def save_scene(self, scene: Scene):
        """Insert or replace a scene."""
        await self.initialize()
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    """
                    INSERT INTO scenes (project_id, scene_number, payload)
                    VALUES (?, ?, ?)
                    ON CONFLICT(project_id, scene_number) DO UPDATE SET
                        payload = excluded.payload
                    """,
                    (scene.project_id, scene.scene_number, scene.model_dump_json()),
                )
                await conn.commit()

    async def save_audio(self, audio: AudioTrack):
        """Insert or replace a project's narration track."""
        await self.initialize()
        async with self._write_lock:
            async with aiosqlite.connect(self.db_path) as conn:
                await conn.execute(
                    """
                    INSERT INTO audio_tracks (project_id, payload)
                    VALUES (?, ?)
                    ON CONFLICT(project_id) DO UPDATE SET
                        payload = excluded.payload
                    """,
                    (audio.project_id, audio.model_dump_json()),
                )
                await conn.commit()

    async def scenes_for_project(self, project_id: int) -> List[Scene]:
        """Return a project's scenes ordered by scene number."""
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(
                "SELECT scene_number, payload FROM scenes WHERE project_id = ? ORDER BY scene_number ASC",
                (project_id,),
            )
            rows = await cursor.fetchall()
            await cursor.close()

        # one unreadable row fails the whole lookup; scenes are never dropped
        scenes: List[Scene] = []
        for scene_number, payload in rows:
            try:
                scenes.append(Scene(**json.loads(payload)))
            except (TypeError, ValueError) as exc:
                logger.error(f"Project {project_id} scene {scene_number} is unreadable: {exc}")
                raise SceneRecordError(project_id, scene_number, str(exc)) from exc
        return scenes

    async def audio_for_project(self, project_id: int) -> Optional[AudioTrack]:
        """Return a project's narration track, if any."""
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as conn:
            cursor = await conn.execute(
                "SELECT payload FROM audio_tracks WHERE project_id = ?", (project_id,)
            )
            row = await cursor.fetchone()
            await cursor.close()

        if row is None:
            return None
        return AudioTrack(**json.loads(row[0]))


_project_store: Optional[ProjectStore] = None


def get_project_store() -> ProjectStore:
    """Return singleton project store."""
    global _project_store
    if _project_store is None:
        settings = get_settings()
        db_path = Path(settings.data_dir) / "storyreel.db"
        _project_store = ProjectStore(str(db_path))
    return _project_store
