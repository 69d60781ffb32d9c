"""Tests for the ffprobe duration probe."""

import os
import subprocess

from cyclofit.shared.upload_video import video_duration
from cyclofit.shared.upload_video.video_duration import probe_video_duration


class TestProbeVideoDuration:
    """ffprobe output handling; ffprobe itself is never run."""

    def _fake_run(self, monkeypatch, stdout=None, error=None, seen=None):
        def fake_run(cmd, **kwargs):
            if seen is not None:
                seen.append(cmd[-1])
            if error is not None:
                raise error
            return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

        monkeypatch.setattr(video_duration.shutil, "which", lambda name: "/usr/bin/ffprobe")
        monkeypatch.setattr(video_duration.subprocess, "run", fake_run)

    def test_parses_duration(self, monkeypatch):
        self._fake_run(monkeypatch, stdout="12.480000\n")
        assert probe_video_duration(b"video") == 12.48

    def test_missing_binary(self, monkeypatch):
        """No ffprobe on the host means unknown duration."""
        monkeypatch.setattr(video_duration.shutil, "which", lambda name: None)
        assert probe_video_duration(b"video") is None

    def test_configured_path_missing(self, tmp_path):
        assert probe_video_duration(b"video", ffprobe_path=str(tmp_path / "nope")) is None

    def test_ffprobe_error(self, monkeypatch):
        self._fake_run(monkeypatch, error=subprocess.CalledProcessError(1, "ffprobe"))
        assert probe_video_duration(b"video") is None

    def test_non_numeric_output(self, monkeypatch):
        self._fake_run(monkeypatch, stdout="N/A\n")
        assert probe_video_duration(b"video") is None

    def test_temp_file_removed(self, monkeypatch):
        """The temporary copy is deleted even when ffprobe fails."""
        seen = []
        self._fake_run(monkeypatch, error=subprocess.TimeoutExpired("ffprobe", 60), seen=seen)
        probe_video_duration(b"video")
        assert len(seen) == 1
        assert not os.path.exists(seen[0])
