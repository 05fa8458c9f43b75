"""
Clip Synthesizer
Turns one normalized still into a fixed-length Ken Burns clip with FFmpeg
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..utils.logger import get_logger
from .ffmpeg import ProgressCallback, run_ffmpeg_async
from .motion import MotionEffect, MotionPlan

logger = get_logger()


@dataclass
class ClipConfig:
    """Encoder settings shared by every clip of a render"""
    width: int = 1920
    height: int = 1080
    fps: int = 30
    crf: int = 20
    preset: str = "medium"
    motion_factor: float = 1.2  # canvas oversize, also the zoom end point
    codec: str = "libx264"


def _even(value: float) -> int:
    # round first so 1280 * 1.1 does not become 1410
    return int(math.ceil(round(value, 6) / 2.0)) * 2


class ClipSynthesizer:
    """FFmpeg-based still-to-clip renderer"""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float = 60):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    def build_filter(self, plan: MotionPlan, duration: float, config: ClipConfig) -> str:
        """Filter chain for one effect; the input is a canvas-sized still."""
        width, height, fps = config.width, config.height, config.fps
        factor = max(1.0, config.motion_factor)
        canvas_w = _even(width * factor)
        canvas_h = _even(height * factor)
        frames = max(1, int(round(duration * fps)))
        span = max(1, frames - 1)

        if plan.effect in (MotionEffect.ZOOM_IN, MotionEffect.ZOOM_OUT):
            growth = factor - 1.0
            if plan.effect == MotionEffect.ZOOM_IN:
                zoom = f"1+{growth:.4f}*on/{span}"
            else:
                zoom = f"{factor:.4f}-{growth:.4f}*on/{span}"
            return (
                f"scale={canvas_w}:{canvas_h},"
                f"zoompan=z='{zoom}':x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'"
                f":d={frames}:s={width}x{height}:fps={fps},"
                f"setsar=1,format=yuv420p"
            )

        progress = f"t/{duration:.3f}"
        if plan.reverse:
            progress = f"(1-{progress})"

        if plan.effect == MotionEffect.PAN_HORIZONTAL:
            x_expr = f"(iw-ow)*{progress}"
            y_expr = "(ih-oh)/2"
        else:
            x_expr = "(iw-ow)/2"
            y_expr = f"(ih-oh)*{progress}"

        return (
            f"scale={canvas_w}:{canvas_h},"
            f"crop={width}:{height}:x='{x_expr}':y='{y_expr}',"
            f"setsar=1,format=yuv420p"
        )

    def build_command(
        self,
        image_path: Path,
        output_path: Path,
        duration: float,
        plan: MotionPlan,
        config: ClipConfig,
    ) -> List[str]:
        filter_str = self.build_filter(plan, duration, config)
        is_zoom = plan.effect in (MotionEffect.ZOOM_IN, MotionEffect.ZOOM_OUT)

        cmd = [self.ffmpeg_path, "-y"]
        if is_zoom:
            # zoompan emits d frames from a single input frame
            cmd += ["-i", str(image_path)]
        else:
            cmd += ["-loop", "1", "-framerate", str(config.fps), "-i", str(image_path)]

        cmd += [
            "-vf", filter_str,
            "-t", f"{duration:.3f}",
            "-r", str(config.fps),
            "-c:v", config.codec,
            "-preset", config.preset,
            "-crf", str(config.crf),
            "-pix_fmt", "yuv420p",
            "-an",
            str(output_path),
        ]
        return cmd

    async def synthesize(
        self,
        image_path: Path,
        output_path: Path,
        duration: float,
        plan: MotionPlan,
        config: ClipConfig,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Render a clip of exactly ``duration`` seconds

        Raises FFmpegError / FFmpegTimeoutError; no partial clip is returned.
        """
        cmd = self.build_command(image_path, output_path, duration, plan, config)
        logger.debug(f"Synthesizing {output_path.name}: {plan.effect.value} {duration:.2f}s")

        await run_ffmpeg_async(
            cmd,
            duration=duration,
            progress_callback=progress_callback,
            timeout=self.timeout,
        )
        return output_path
