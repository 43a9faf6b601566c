"""Tests for clip normalization: command construction and bounded parallelism."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from clipmerge.errors import EncodeError
from clipmerge.models import MediaInfo, NormalizedClip, TimelineSegment
from clipmerge.normalize import (
    build_normalize_command,
    normalize_all,
    normalize_clip,
    video_filter,
)
from clipmerge.settings import Settings


def _info(duration=10.0, has_audio=True, width=640, height=360):
    return MediaInfo(
        duration=duration, width=width, height=height, codec="h264",
        bitrate=0, size=0, has_audio=has_audio,
    )


class TestVideoFilter:
    def test_scale_pad_fps(self):
        vf = video_filter(1280, 720, 30)
        assert vf == (
            "scale=1280:720:force_original_aspect_ratio=decrease:force_divisible_by=2,"
            "pad=1280:720:(ow-iw)/2:(oh-ih)/2,setsar=1,fps=30"
        )


class TestBuildNormalizeCommand:
    def _cmd(self, **overrides):
        kwargs = dict(
            ffmpeg="ffmpeg", source="in.mov", output="out.mp4",
            start=0.0, duration=4.0, width=1280, height=720, fps=30,
            has_audio=True,
        )
        kwargs.update(overrides)
        return build_normalize_command(**kwargs)

    def test_no_seek_when_start_is_zero(self):
        assert "-ss" not in self._cmd()

    def test_seek_before_input(self):
        cmd = self._cmd(start=1.5)
        assert cmd.index("-ss") < cmd.index("-i")
        assert cmd[cmd.index("-ss") + 1] == "1.500"

    def test_duration_limits_output(self):
        cmd = self._cmd(duration=2.25)
        assert cmd.count("2.250") == 2  # input and output -t

    def test_source_audio_is_mapped(self):
        cmd = self._cmd(has_audio=True)
        assert "anullsrc" not in " ".join(cmd)
        assert "0:a:0" in cmd

    def test_silent_stereo_track_added_without_audio(self):
        cmd = self._cmd(has_audio=False, duration=3.0, sample_rate=48000)
        joined = " ".join(cmd)
        assert "anullsrc=channel_layout=stereo:sample_rate=48000" in joined
        assert "1:a:0" in cmd
        # Silence is bounded to the trimmed duration.
        lavfi = cmd.index("lavfi")
        assert cmd[lavfi + 1:lavfi + 3] == ["-t", "3.000"]

    def test_uniform_audio_layout(self):
        cmd = self._cmd(sample_rate=44100)
        assert cmd[cmd.index("-ac") + 1] == "2"
        assert cmd[cmd.index("-ar") + 1] == "44100"
        assert cmd[cmd.index("-c:a") + 1] == "aac"

    def test_output_is_last(self):
        assert self._cmd()[-1] == "out.mp4"


class TestNormalizeClip:
    def setup_method(self):
        self.settings = Settings(ffmpeg_bin="ffmpeg")

    def test_returns_reprobed_duration(self, tmp_path):
        seg = TimelineSegment(path=tmp_path / "a.mp4", source_start=1.0, source_end=3.0)
        probe = AsyncMock(side_effect=[_info(10.0), _info(2.033)])
        with patch("clipmerge.normalize.probe_media", probe), \
             patch("clipmerge.normalize.run_ffmpeg", AsyncMock()) as run:
            clip = asyncio.run(normalize_clip(seg, tmp_path / "n.mp4", 320, 240, 10, self.settings))
        assert clip == NormalizedClip(path=tmp_path / "n.mp4", duration=2.033)
        cmd = run.call_args.args[0]
        assert cmd[cmd.index("-ss") + 1] == "1.000"
        assert run.call_args.kwargs["error_cls"] is EncodeError

    def test_open_end_uses_full_source(self, tmp_path):
        seg = TimelineSegment(path=tmp_path / "a.mp4", source_start=4.0)
        probe = AsyncMock(side_effect=[_info(10.0), _info(6.0)])
        with patch("clipmerge.normalize.probe_media", probe), \
             patch("clipmerge.normalize.run_ffmpeg", AsyncMock()) as run:
            asyncio.run(normalize_clip(seg, tmp_path / "n.mp4", 320, 240, 10, self.settings))
        assert "6.000" in run.call_args.args[0]

    def test_silent_source_gets_audio(self, tmp_path):
        seg = TimelineSegment(path=tmp_path / "a.mp4")
        probe = AsyncMock(side_effect=[_info(5.0, has_audio=False), _info(5.0)])
        with patch("clipmerge.normalize.probe_media", probe), \
             patch("clipmerge.normalize.run_ffmpeg", AsyncMock()) as run:
            asyncio.run(normalize_clip(seg, tmp_path / "n.mp4", 320, 240, 10, self.settings))
        assert "anullsrc" in " ".join(run.call_args.args[0])

    def test_no_video_stream_raises(self, tmp_path):
        seg = TimelineSegment(path=tmp_path / "a.m4a")
        probe = AsyncMock(return_value=_info(5.0, width=0, height=0))
        with patch("clipmerge.normalize.probe_media", probe), \
             patch("clipmerge.normalize.run_ffmpeg", AsyncMock()) as run:
            with pytest.raises(EncodeError, match="No video"):
                asyncio.run(normalize_clip(seg, tmp_path / "n.mp4", 320, 240, 10, self.settings))
        run.assert_not_called()

    def test_empty_encode_raises(self, tmp_path):
        # Trim starts past the end of the source: ffmpeg writes an empty file.
        seg = TimelineSegment(path=tmp_path / "a.mp4", source_start=12.0)
        probe = AsyncMock(side_effect=[_info(10.0), _info(0.0)])
        with patch("clipmerge.normalize.probe_media", probe), \
             patch("clipmerge.normalize.run_ffmpeg", AsyncMock()):
            with pytest.raises(EncodeError, match="empty"):
                asyncio.run(normalize_clip(seg, tmp_path / "n.mp4", 320, 240, 10, self.settings))

    def test_encode_failure_propagates(self, tmp_path):
        seg = TimelineSegment(path=tmp_path / "a.mp4")
        with patch("clipmerge.normalize.probe_media", AsyncMock(return_value=_info())), \
             patch("clipmerge.normalize.run_ffmpeg", AsyncMock(side_effect=EncodeError("boom"))):
            with pytest.raises(EncodeError, match="boom"):
                asyncio.run(normalize_clip(seg, tmp_path / "n.mp4", 320, 240, 10, self.settings))


class TestNormalizeAll:
    def test_preserves_order_and_bounds_parallelism(self, tmp_path):
        settings = Settings(max_parallel_normalize=2)
        segments = [TimelineSegment(path=Path(f"{i}.mp4"), position=i) for i in range(6)]
        state = {"running": 0, "peak": 0}

        async def fake_normalize(segment, output, width, height, fps, settings):
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
            # Earlier segments finish last.
            await asyncio.sleep(0.01 * (6 - segment.position))
            state["running"] -= 1
            return NormalizedClip(path=Path(output), duration=float(segment.position))

        with patch("clipmerge.normalize.normalize_clip", side_effect=fake_normalize):
            clips = asyncio.run(normalize_all(segments, tmp_path, 320, 240, 10, settings))

        assert [c.duration for c in clips] == [0, 1, 2, 3, 4, 5]
        assert [c.path.name for c in clips] == [f"norm_{i:03d}.mp4" for i in range(6)]
        assert state["peak"] == 2

    def test_first_failure_aborts(self, tmp_path):
        settings = Settings(max_parallel_normalize=3)
        segments = [TimelineSegment(path=Path(f"{i}.mp4"), position=i) for i in range(3)]

        async def fake_normalize(segment, output, width, height, fps, settings):
            if segment.position == 1:
                raise EncodeError("clip 1 is corrupt")
            await asyncio.sleep(0.05)
            return NormalizedClip(path=Path(output), duration=1.0)

        with patch("clipmerge.normalize.normalize_clip", side_effect=fake_normalize):
            with pytest.raises(EncodeError, match="corrupt"):
                asyncio.run(normalize_all(segments, tmp_path, 320, 240, 10, settings))
