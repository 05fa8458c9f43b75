"""
Scene Timing
Splits the narration length across scenes so picture and sound end together.
"""

from typing import List, Optional, Sequence

from ..models.scene import Scene
from ..utils.exceptions import NoRenderableScenesError

MIN_SCENE_DURATION = 0.8
FALLBACK_SCENE_DURATION = 4.0
MILLISECOND_THRESHOLD = 1000


def normalize_time_value(value: Optional[float]) -> Optional[float]:
    """Seconds from a stored timestamp; values above 1000 are milliseconds."""
    if value is None:
        return None
    return value / 1000 if value > MILLISECOND_THRESHOLD else value


def raw_scene_duration(scene: Scene) -> float:
    start = normalize_time_value(scene.exact_start_time)
    end = normalize_time_value(scene.exact_end_time)
    if start is not None and end is not None and end > start:
        return max(MIN_SCENE_DURATION, end - start)
    if scene.estimated_duration and scene.estimated_duration > 0:
        return max(MIN_SCENE_DURATION, float(scene.estimated_duration))
    return FALLBACK_SCENE_DURATION


def allocate_scene_durations(
    scenes: Sequence[Scene],
    audio_duration: Optional[float] = None,
) -> List[float]:
    """
    Per-scene screen time in seconds, in scene order.

    With an audio duration the raw durations are scaled uniformly so they sum
    to the narration length; the minimum floor is re-applied afterwards, so
    the sum can only exceed the audio by the clamped excess.
    """
    if not scenes:
        raise NoRenderableScenesError()

    raw = [raw_scene_duration(scene) for scene in scenes]
    total = sum(raw)
    if not audio_duration or audio_duration <= 0 or total <= 0:
        return raw

    scale = audio_duration / total
    return [max(MIN_SCENE_DURATION, duration * scale) for duration in raw]


def frame_aligned_durations(durations: Sequence[float], fps: int) -> List[float]:
    """
    Snap scene durations to whole frames along the cumulative timeline.

    Each boundary is rounded once, so rounding never accumulates across
    scenes: every cut lands within half a frame of its allocated time and
    the total matches the allocated total to the nearest frame.
    """
    aligned: List[float] = []
    elapsed = 0.0
    start_frame = 0
    for duration in durations:
        elapsed += duration
        end_frame = max(start_frame + 1, int(round(elapsed * fps)))
        aligned.append((end_frame - start_frame) / fps)
        start_frame = end_frame
    return aligned
