"""
FFmpeg Driver
Runs encoder subprocesses with progress tracking and a wall-clock timeout
"""

import asyncio
import json
import subprocess
import threading
from typing import Callable, List, Optional

from ..utils.exceptions import FFmpegError, FFmpegTimeoutError
from ..utils.logger import get_logger

logger = get_logger()

# Fraction of the expected output duration written so far, 0.0 - 1.0
ProgressCallback = Callable[[float], None]

_TAIL_LINES = 40


def _parse_progress_seconds(line: str) -> Optional[float]:
    """Output position from a `-progress` or stats line."""
    if line.startswith(("out_time_us=", "out_time_ms=")):
        # both keys are reported in microseconds
        value = line.split("=", 1)[1]
        try:
            return int(value) / 1_000_000
        except ValueError:
            return None

    if "time=" in line:
        try:
            time_str = line.split("time=")[1].split()[0]
            hours, minutes, seconds = time_str.split(":")
            return float(hours) * 3600 + float(minutes) * 60 + float(seconds)
        except (IndexError, ValueError):
            return None

    return None


class EncoderHandle:
    """Lets the event loop kill an encoder running in a worker thread."""

    def __init__(self):
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self.cancelled = False

    def attach(self, process: subprocess.Popen):
        with self._lock:
            self._process = process
            if self.cancelled:
                process.kill()

    def cancel(self):
        with self._lock:
            self.cancelled = True
            if self._process is not None and self._process.poll() is None:
                self._process.kill()


def run_ffmpeg(
    cmd: List[str],
    duration: Optional[float] = None,
    progress_callback: Optional[ProgressCallback] = None,
    timeout: Optional[float] = None,
    handle: Optional[EncoderHandle] = None,
):
    """
    Execute an FFmpeg command (blocking)

    Args:
        cmd: Full command; the last element is the output path
        duration: Expected output duration, used to turn positions into fractions
        progress_callback: Optional fractional progress callback
        timeout: Wall-clock limit in seconds; the process is killed when exceeded
        handle: Optional handle through which another thread can kill the process

    Raises:
        FFmpegTimeoutError: the process was killed by the timeout
        FFmpegError: the process could not start, exited nonzero or was cancelled
    """
    cmd_with_progress = cmd[:-1] + ["-progress", "pipe:1", "-nostats", cmd[-1]]
    command_str = " ".join(cmd_with_progress)
    logger.debug(f"FFmpeg command: {command_str}")

    if handle is not None and handle.cancelled:
        raise FFmpegError("FFmpeg run cancelled before start", command=command_str)

    try:
        process = subprocess.Popen(
            cmd_with_progress,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            universal_newlines=True,
        )
    except FileNotFoundError as exc:
        raise FFmpegError(
            f"FFmpeg is required but not installed: {cmd[0]}",
            command=command_str,
        ) from exc

    if handle is not None:
        handle.attach(process)

    timed_out = threading.Event()

    def _kill_on_timeout():
        timed_out.set()
        process.kill()

    timer = None
    if timeout:
        timer = threading.Timer(timeout, _kill_on_timeout)
        timer.daemon = True
        timer.start()

    output_tail: List[str] = []
    last_fraction = -1.0
    try:
        for line in process.stdout:
            line = line.strip()
            if not line:
                continue

            seconds = _parse_progress_seconds(line)
            if seconds is None:
                # progress key=value chatter is not useful in error messages
                if "=" not in line or " " in line:
                    output_tail.append(line)
                    del output_tail[:-_TAIL_LINES]
                continue

            if progress_callback and duration and duration > 0:
                fraction = min(1.0, max(0.0, seconds / duration))
                if fraction > last_fraction:
                    last_fraction = fraction
                    try:
                        progress_callback(fraction)
                    except Exception as exc:
                        logger.warning(f"Progress callback failed: {exc}")

        process.wait()
    finally:
        if timer:
            timer.cancel()

    tail_text = "\n".join(output_tail)
    if timed_out.is_set():
        logger.error(f"FFmpeg timed out after {timeout}s: {command_str}")
        raise FFmpegTimeoutError(timeout, command=command_str, stderr=tail_text)

    if handle is not None and handle.cancelled:
        raise FFmpegError("FFmpeg run cancelled", command=command_str, stderr=tail_text)

    if process.returncode != 0:
        error_msg = "\n".join(output_tail[-10:]) or "no output"
        logger.error(f"FFmpeg failed: {error_msg}")
        raise FFmpegError(
            f"FFmpeg encoding failed (exit {process.returncode}): {error_msg}",
            command=command_str,
            stderr=tail_text,
        )


async def run_ffmpeg_async(
    cmd: List[str],
    duration: Optional[float] = None,
    progress_callback: Optional[ProgressCallback] = None,
    timeout: Optional[float] = None,
):
    """
    Run :func:`run_ffmpeg` in the default executor.

    Cancelling the awaiting task kills the child; CancelledError propagates
    only after the worker thread has exited.
    """
    loop = asyncio.get_running_loop()
    handle = EncoderHandle()
    future = loop.run_in_executor(
        None,
        run_ffmpeg,
        cmd,
        duration,
        progress_callback,
        timeout,
        handle,
    )
    try:
        await asyncio.shield(future)
    except asyncio.CancelledError:
        handle.cancel()
        await asyncio.gather(future, return_exceptions=True)
        logger.info("FFmpeg run cancelled, encoder stopped")
        raise


def check_ffmpeg(ffmpeg_path: str = "ffmpeg") -> bool:
    """Verify FFmpeg is available"""
    try:
        result = subprocess.run(
            [ffmpeg_path, "-version"],
            capture_output=True,
            text=True
        )
    except FileNotFoundError:
        logger.error("FFmpeg not installed. Please install FFmpeg.")
        return False

    if result.returncode != 0:
        logger.error(f"FFmpeg check failed: {result.stderr[-200:]}")
        return False

    logger.info("FFmpeg available")
    return True


async def probe_duration(path: str, ffprobe_path: str = "ffprobe") -> float:
    """Media duration in seconds as reported by ffprobe."""
    cmd = [
        ffprobe_path,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "json",
        path,
    ]

    loop = asyncio.get_running_loop()
    try:
        result = await loop.run_in_executor(
            None,
            lambda: subprocess.run(cmd, capture_output=True, text=True, timeout=30)
        )
    except FileNotFoundError as exc:
        raise FFmpegError(f"ffprobe is required but not installed: {ffprobe_path}") from exc
    except subprocess.TimeoutExpired as exc:
        raise FFmpegTimeoutError(30, command=" ".join(cmd)) from exc

    if result.returncode != 0:
        raise FFmpegError(
            f"Failed to probe {path}: {result.stderr.strip()[-300:]}",
            command=" ".join(cmd),
            stderr=result.stderr,
        )

    try:
        return float(json.loads(result.stdout)["format"]["duration"])
    except (KeyError, TypeError, ValueError) as exc:
        raise FFmpegError(f"ffprobe reported no duration for {path}") from exc
