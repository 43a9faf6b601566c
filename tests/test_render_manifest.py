"""Tests for render manifest loader."""

import tempfile
from pathlib import Path

import pytest
import yaml

from clipmerge.render_manifest import (
    load_render_manifest,
    resolve_path_vars,
    validate_clip_paths,
)


def _write_manifest(content: dict) -> str:
    """Write a manifest dict to a temp YAML file, return path."""
    f = tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False)
    yaml.dump(content, f)
    f.close()
    return f.name


def _minimal_render(**overrides):
    """Return a minimal valid render manifest dict."""
    m = {
        "video": {"format": "mp4", "fps": 30},
        "clips": [],
    }
    m.update(overrides)
    return m


def _clip(**overrides):
    c = {"path": "/tmp/fake.mp4"}
    c.update(overrides)
    return c


class TestLoadRenderManifest:
    def test_defaults(self):
        req = load_render_manifest(_write_manifest({"clips": []}))
        assert req.format == "mp4"
        assert req.fps == 30
        assert (req.width, req.height) == (1920, 1080)
        assert req.transition == "fade"
        assert req.transition_duration == 0.5

    def test_quality_maps_to_resolution(self):
        m = _minimal_render()
        m["video"]["quality"] = "720p"
        req = load_render_manifest(_write_manifest(m))
        assert (req.width, req.height) == (1280, 720)

    def test_explicit_resolution_wins(self):
        m = _minimal_render()
        m["video"].update(quality="4K", resolution=[640, 360])
        req = load_render_manifest(_write_manifest(m))
        assert (req.width, req.height) == (640, 360)

    def test_format_is_lowercased(self):
        m = _minimal_render()
        m["video"]["format"] = "WEBM"
        assert load_render_manifest(_write_manifest(m)).format == "webm"

    def test_resolves_path_variables(self):
        m = _minimal_render(
            paths={"clips": "/data/uploads"},
            clips=[{"path": "${clips}/intro.mp4"}],
        )
        req = load_render_manifest(_write_manifest(m))
        assert req.segments[0].path == Path("/data/uploads/intro.mp4")

    def test_trims_and_positions(self):
        m = _minimal_render(clips=[
            _clip(start=1.5, end=4.0),
            _clip(path="/tmp/b.mp4"),
        ])
        req = load_render_manifest(_write_manifest(m))
        first, second = req.segments
        assert (first.source_start, first.source_end) == (1.5, 4.0)
        assert first.position == 0 and second.position == 1
        assert second.source_start == 0.0 and second.source_end is None

    def test_transition_settings(self):
        m = _minimal_render()
        m["video"].update(transition="slide", transition_duration=1.25)
        req = load_render_manifest(_write_manifest(m))
        assert req.transition == "slide"
        assert req.transition_duration == 1.25


class TestRenderManifestValidation:
    def test_missing_clips_raises(self):
        with pytest.raises(ValueError, match="clips"):
            load_render_manifest(_write_manifest({"video": {"fps": 30}}))

    def test_invalid_format_raises(self):
        m = _minimal_render()
        m["video"]["format"] = "flv"
        with pytest.raises(ValueError, match="format"):
            load_render_manifest(_write_manifest(m))

    def test_non_integer_fps_raises(self):
        m = _minimal_render()
        m["video"]["fps"] = 29.97
        with pytest.raises(ValueError, match="fps"):
            load_render_manifest(_write_manifest(m))

    def test_negative_transition_raises(self):
        m = _minimal_render()
        m["video"]["transition_duration"] = -1
        with pytest.raises(ValueError, match="transition_duration"):
            load_render_manifest(_write_manifest(m))

    def test_invalid_quality_raises(self):
        m = _minimal_render()
        m["video"]["quality"] = "8K"
        with pytest.raises(ValueError, match="quality"):
            load_render_manifest(_write_manifest(m))

    def test_bad_resolution_raises(self):
        m = _minimal_render()
        m["video"]["resolution"] = [1280]
        with pytest.raises(ValueError, match="resolution"):
            load_render_manifest(_write_manifest(m))

    def test_clip_missing_path_raises(self):
        with pytest.raises(ValueError, match="path"):
            load_render_manifest(_write_manifest(_minimal_render(clips=[{"start": 1}])))

    def test_negative_start_raises(self):
        m = _minimal_render(clips=[_clip(start=-1.0)])
        with pytest.raises(ValueError, match="start"):
            load_render_manifest(_write_manifest(m))

    def test_start_after_end_raises(self):
        m = _minimal_render(clips=[_clip(start=5.0, end=2.0)])
        with pytest.raises(ValueError, match="start.*end"):
            load_render_manifest(_write_manifest(m))

    def test_unknown_path_variable_raises(self):
        m = _minimal_render(clips=[_clip(path="${nowhere}/a.mp4")])
        with pytest.raises(ValueError, match="nowhere"):
            load_render_manifest(_write_manifest(m))


class TestResolvePathVars:
    def test_multiple_variables(self):
        assert resolve_path_vars("${a}/${b}.mp4", {"a": "/x", "b": "y"}) == "/x/y.mp4"

    def test_plain_text_unchanged(self):
        assert resolve_path_vars("/plain/path.mp4", {}) == "/plain/path.mp4"


class TestValidateClipPaths:
    def test_existing_paths_pass(self, tmp_path):
        clip = tmp_path / "a.mp4"
        clip.write_text("fake")
        m = _minimal_render(clips=[_clip(path=str(clip))])
        validate_clip_paths(load_render_manifest(_write_manifest(m)))

    def test_lists_all_missing(self):
        m = _minimal_render(clips=[_clip(path="/nope/a.mp4"), _clip(path="/nope/b.mp4")])
        with pytest.raises(FileNotFoundError, match="Missing 2"):
            validate_clip_paths(load_render_manifest(_write_manifest(m)))
