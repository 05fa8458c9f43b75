"""Tests for orientation detection and Ken Burns effect selection."""

import pytest

from storyreel.services.motion import (
    EFFECT_CYCLES,
    MotionEffect,
    Orientation,
    choose_motion_effect,
    detect_orientation,
    plan_motion,
)


class TestOrientation:

    @pytest.mark.parametrize("size,expected", [
        ((1920, 1080), Orientation.LANDSCAPE),
        ((1080, 1920), Orientation.PORTRAIT),
        ((1000, 1000), Orientation.SQUARE),
        ((1200, 1000), Orientation.SQUARE),
        ((800, 1000), Orientation.SQUARE),
        ((0, 100), Orientation.SQUARE),
    ])
    def test_detect(self, size, expected):
        assert detect_orientation(*size) == expected


class TestEffectSelection:

    @pytest.mark.parametrize("orientation", list(Orientation))
    def test_selection_is_pure(self, orientation):
        first = [choose_motion_effect(i, orientation) for i in range(12)]
        second = [choose_motion_effect(i, orientation) for i in range(12)]
        assert first == second

    @pytest.mark.parametrize("orientation", list(Orientation))
    def test_no_back_to_back_repeats(self, orientation):
        effects = [choose_motion_effect(i, orientation) for i in range(20)]
        assert all(a != b for a, b in zip(effects, effects[1:]))

    def test_landscape_pans_horizontally_only(self):
        effects = {choose_motion_effect(i, Orientation.LANDSCAPE) for i in range(12)}
        assert MotionEffect.PAN_HORIZONTAL in effects
        assert MotionEffect.PAN_VERTICAL not in effects
        assert choose_motion_effect(0, Orientation.LANDSCAPE) == MotionEffect.PAN_HORIZONTAL

    def test_portrait_pans_vertically_only(self):
        effects = {choose_motion_effect(i, Orientation.PORTRAIT) for i in range(12)}
        assert MotionEffect.PAN_VERTICAL in effects
        assert MotionEffect.PAN_HORIZONTAL not in effects
        assert choose_motion_effect(0, Orientation.PORTRAIT) == MotionEffect.PAN_VERTICAL

    def test_square_uses_every_effect(self):
        effects = {choose_motion_effect(i, Orientation.SQUARE) for i in range(4)}
        assert effects == set(MotionEffect)

    def test_accepts_plain_strings(self):
        assert choose_motion_effect(0, "landscape") == MotionEffect.PAN_HORIZONTAL


class TestMotionPlan:

    def test_plan_matches_selected_effect(self):
        for index in range(10):
            assert plan_motion(index, Orientation.SQUARE).effect == choose_motion_effect(index, Orientation.SQUARE)

    def test_direction_flips_each_cycle(self):
        length = len(EFFECT_CYCLES[Orientation.LANDSCAPE])
        assert plan_motion(0, Orientation.LANDSCAPE).reverse is False
        assert plan_motion(length, Orientation.LANDSCAPE).reverse is True
        assert plan_motion(2 * length, Orientation.LANDSCAPE).reverse is False
