"""Tests for per-job scratch directories."""

import pytest

from storyreel.services.workspace import job_workspace, workspace_path


def test_path_is_scoped_to_job(tmp_path):
    assert workspace_path(tmp_path, "render_abc").name == "job_render_abc"
    assert workspace_path(tmp_path, "../escape").parent == tmp_path


def test_removed_after_success(tmp_path):
    with job_workspace(tmp_path, "render_ok") as workspace:
        (workspace / "clip_0001.mp4").write_bytes(b"clip")
        (workspace / "nested").mkdir()
        (workspace / "nested" / "frame.jpg").write_bytes(b"jpg")
        assert workspace.is_dir()

    assert not workspace.exists()


def test_removed_after_failure(tmp_path):
    with pytest.raises(RuntimeError):
        with job_workspace(tmp_path, "render_fail") as workspace:
            (workspace / "frame_0001.jpg").write_bytes(b"jpg")
            raise RuntimeError("encoder crashed")

    assert not workspace.exists()


def test_stale_leftovers_are_cleared(tmp_path):
    stale = workspace_path(tmp_path, "render_retry")
    stale.mkdir()
    (stale / "clip_0007.mp4").write_bytes(b"old")

    with job_workspace(tmp_path, "render_retry") as workspace:
        assert list(workspace.iterdir()) == []
