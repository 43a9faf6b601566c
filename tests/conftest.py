"""Shared test fixtures for clipmerge tests."""

import subprocess

import pytest
import imageio_ffmpeg

from clipmerge.capabilities import reset_capabilities
from clipmerge.settings import Settings

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


@pytest.fixture(autouse=True)
def _fresh_capabilities():
    """Each test sees an empty capability cache."""
    reset_capabilities()
    yield
    reset_capabilities()


@pytest.fixture
def settings(tmp_path):
    return Settings(storage_root=str(tmp_path / "data"))


@pytest.fixture
def make_video(tmp_path):
    """Factory: write a synthetic test clip with ffmpeg and return its path.

    Small (320x240 by default, 10fps) so renders stay fast.
    """
    def _make(name="clip.mp4", duration=2.0, size="320x240", rate=10,
              color="blue", audio=True):
        out = tmp_path / name
        cmd = [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", f"color=c={color}:s={size}:d={duration}:r={rate}",
        ]
        if audio:
            cmd += [
                "-f", "lavfi", "-i", f"sine=frequency=440:sample_rate=44100:duration={duration}",
                "-shortest",
            ]
        cmd += ["-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p"]
        cmd += ["-c:a", "aac", "-b:a", "32k"] if audio else ["-an"]
        cmd.append(str(out))
        subprocess.run(cmd, check=True, capture_output=True)
        return out
    return _make


@pytest.fixture
def source_video(make_video):
    """A 5-second 320x240 test video with audio."""
    return make_video("source.mp4", duration=5.0)
