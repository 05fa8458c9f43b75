"""Tests for Ken Burns filter and command construction."""

from pathlib import Path

import pytest

from storyreel.services import clip_synthesizer as clip_module
from storyreel.services.clip_synthesizer import ClipConfig, ClipSynthesizer
from storyreel.services.motion import MotionEffect, MotionPlan


@pytest.fixture
def synthesizer():
    return ClipSynthesizer("ffmpeg", timeout=45)


@pytest.fixture
def config():
    return ClipConfig(width=1280, height=720, fps=30, crf=24, preset="faster", motion_factor=1.2)


class TestFilters:

    def test_zoom_in(self, synthesizer, config):
        filter_str = synthesizer.build_filter(MotionPlan(MotionEffect.ZOOM_IN), 3.0, config)
        assert filter_str.startswith("scale=1536:864,zoompan=")
        assert "z='1+0.2000*on/89'" in filter_str
        assert ":d=90:s=1280x720:fps=30" in filter_str

    def test_zoom_out_starts_magnified(self, synthesizer, config):
        filter_str = synthesizer.build_filter(MotionPlan(MotionEffect.ZOOM_OUT), 3.0, config)
        assert "z='1.2000-0.2000*on/89'" in filter_str

    def test_horizontal_pan(self, synthesizer, config):
        filter_str = synthesizer.build_filter(MotionPlan(MotionEffect.PAN_HORIZONTAL), 3.0, config)
        assert "crop=1280:720:x='(iw-ow)*t/3.000':y='(ih-oh)/2'" in filter_str

    def test_reversed_vertical_pan(self, synthesizer, config):
        filter_str = synthesizer.build_filter(MotionPlan(MotionEffect.PAN_VERTICAL, reverse=True), 3.0, config)
        assert "x='(iw-ow)/2':y='(ih-oh)*(1-t/3.000)'" in filter_str

    def test_intensity_sets_canvas(self, synthesizer):
        subtle = ClipConfig(width=1280, height=720, motion_factor=1.1)
        assert synthesizer.build_filter(MotionPlan(MotionEffect.PAN_HORIZONTAL), 2.0, subtle).startswith(
            "scale=1408:792,"
        )

    def test_very_short_scene_still_has_a_frame(self, synthesizer, config):
        filter_str = synthesizer.build_filter(MotionPlan(MotionEffect.ZOOM_IN), 0.01, config)
        assert ":d=1:" in filter_str


class TestCommand:

    def test_zoom_uses_single_input_frame(self, synthesizer, config):
        cmd = synthesizer.build_command(Path("frame.jpg"), Path("clip.mp4"), 3.0, MotionPlan(MotionEffect.ZOOM_IN), config)
        assert "-loop" not in cmd
        assert cmd[:4] == ["ffmpeg", "-y", "-i", "frame.jpg"]

    def test_pan_loops_the_still(self, synthesizer, config):
        cmd = synthesizer.build_command(Path("frame.jpg"), Path("clip.mp4"), 3.0, MotionPlan(MotionEffect.PAN_VERTICAL), config)
        assert cmd[2:6] == ["-loop", "1", "-framerate", "30"]

    def test_encoder_settings(self, synthesizer, config):
        cmd = synthesizer.build_command(Path("frame.jpg"), Path("out/clip.mp4"), 2.5, MotionPlan(MotionEffect.ZOOM_OUT), config)
        assert cmd[cmd.index("-t") + 1] == "2.500"
        assert cmd[cmd.index("-crf") + 1] == "24"
        assert cmd[cmd.index("-preset") + 1] == "faster"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert "-an" in cmd
        assert cmd[-1] == str(Path("out/clip.mp4"))

    @pytest.mark.asyncio
    async def test_synthesize_runs_with_clip_timeout(self, synthesizer, config, monkeypatch):
        captured = {}

        async def fake_run(cmd, duration=None, progress_callback=None, timeout=None):
            captured.update(cmd=cmd, duration=duration, timeout=timeout)

        monkeypatch.setattr(clip_module, "run_ffmpeg_async", fake_run)
        result = await synthesizer.synthesize(
            Path("frame.jpg"), Path("clip.mp4"), 4.0, MotionPlan(MotionEffect.ZOOM_IN), config
        )

        assert result == Path("clip.mp4")
        assert captured["timeout"] == 45
        assert captured["duration"] == 4.0
        assert captured["cmd"][-1] == "clip.mp4"
