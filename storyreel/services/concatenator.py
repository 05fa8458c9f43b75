"""
Concatenator
Joins scene clips in order and muxes them with the narration track
"""

import os
from pathlib import Path
from typing import List, Optional, Sequence

from ..utils.exceptions import OutputIntegrityError
from ..utils.logger import get_logger
from .ffmpeg import ProgressCallback, run_ffmpeg_async

logger = get_logger()

AUDIO_BITRATE = "192k"


def build_concat_manifest(clip_paths: Sequence[Path]) -> str:
    """Concat-demuxer manifest, one absolute path per line."""
    if not clip_paths:
        raise ValueError("No clips available for concat manifest")

    lines = []
    for clip_path in clip_paths:
        escaped = str(Path(clip_path).resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    return "\n".join(lines) + "\n"


class Concatenator:
    """Final assembly of a render"""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        timeout: float = 600,
        min_output_bytes: int = 1000,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout
        self.min_output_bytes = min_output_bytes

    def build_command(
        self,
        manifest_path: Path,
        audio_path: Optional[Path],
        output_path: Path,
        fps: int,
        crf: int,
        preset: str,
    ) -> List[str]:
        cmd = [
            self.ffmpeg_path, "-y",
            "-f", "concat", "-safe", "0", "-i", str(manifest_path),
        ]
        if audio_path is not None:
            cmd += ["-i", str(audio_path)]

        cmd += [
            "-map", "0:v:0",
            "-r", str(fps),
            "-c:v", "libx264",
            "-crf", str(crf),
            "-preset", preset,
            "-pix_fmt", "yuv420p",
        ]
        if audio_path is not None:
            cmd += [
                "-map", "1:a:0",
                "-c:a", "aac",
                "-b:a", AUDIO_BITRATE,
                "-shortest",
            ]
        cmd += ["-movflags", "+faststart", str(output_path)]
        return cmd

    async def concatenate(
        self,
        clip_paths: Sequence[Path],
        audio_path: Optional[Path],
        output_path: Path,
        expected_duration: float,
        fps: int = 30,
        crf: int = 20,
        preset: str = "medium",
        progress_callback: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Produce the final file and return its size in bytes

        Raises OutputIntegrityError when the encoder "succeeds" but leaves a
        missing or near-empty file behind.
        """
        manifest_path = output_path.parent / "concat.txt"
        manifest_path.write_text(build_concat_manifest(clip_paths), encoding="utf-8")

        cmd = self.build_command(manifest_path, audio_path, output_path, fps, crf, preset)
        logger.info(f"Concatenating {len(clip_paths)} clips ({expected_duration:.1f}s)")

        await run_ffmpeg_async(
            cmd,
            duration=expected_duration,
            progress_callback=progress_callback,
            timeout=self.timeout,
        )

        return self.verify_output(output_path)

    def verify_output(self, output_path: Path) -> int:
        if not output_path.exists():
            raise OutputIntegrityError(
                "Encoder finished but no output file was written",
                output_path=str(output_path),
            )
        size = os.path.getsize(output_path)
        if size < self.min_output_bytes:
            raise OutputIntegrityError(
                f"Generated video file is too small ({size} bytes)",
                output_path=str(output_path),
                size=size,
            )
        return size
