"""
Motion Effect Selection
Deterministic Ken Burns effect per scene, biased by image orientation.
"""

from dataclasses import dataclass
from enum import Enum


class Orientation(str, Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    SQUARE = "square"


class MotionEffect(str, Enum):
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"
    PAN_HORIZONTAL = "pan_horizontal"
    PAN_VERTICAL = "pan_vertical"


LANDSCAPE_MIN_RATIO = 1.2
PORTRAIT_MAX_RATIO = 0.8

# No cycle repeats an effect back to back, and pans follow the long axis.
EFFECT_CYCLES = {
    Orientation.PORTRAIT: (
        MotionEffect.PAN_VERTICAL,
        MotionEffect.ZOOM_IN,
        MotionEffect.ZOOM_OUT,
    ),
    Orientation.LANDSCAPE: (
        MotionEffect.PAN_HORIZONTAL,
        MotionEffect.ZOOM_OUT,
        MotionEffect.ZOOM_IN,
    ),
    Orientation.SQUARE: (
        MotionEffect.ZOOM_IN,
        MotionEffect.PAN_HORIZONTAL,
        MotionEffect.ZOOM_OUT,
        MotionEffect.PAN_VERTICAL,
    ),
}


@dataclass(frozen=True)
class MotionPlan:
    """Effect for one scene plus the pan direction"""
    effect: MotionEffect
    reverse: bool = False  # right-to-left / bottom-to-top


def detect_orientation(width: int, height: int) -> Orientation:
    if width <= 0 or height <= 0:
        return Orientation.SQUARE
    ratio = width / height
    if ratio > LANDSCAPE_MIN_RATIO:
        return Orientation.LANDSCAPE
    if ratio < PORTRAIT_MAX_RATIO:
        return Orientation.PORTRAIT
    return Orientation.SQUARE


def choose_motion_effect(scene_index: int, orientation: Orientation) -> MotionEffect:
    cycle = EFFECT_CYCLES[Orientation(orientation)]
    return cycle[scene_index % len(cycle)]


def plan_motion(scene_index: int, orientation: Orientation) -> MotionPlan:
    """Effect plus a pan direction that flips on every trip through the cycle."""
    cycle = EFFECT_CYCLES[Orientation(orientation)]
    effect = cycle[scene_index % len(cycle)]
    reverse = (scene_index // len(cycle)) % 2 == 1
    return MotionPlan(effect=effect, reverse=reverse)
