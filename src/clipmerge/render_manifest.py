"""Render manifest loader: which clips to merge, trimmed how, into what.

Render manifest schema:
  video:
    format: mp4                 # mp4 | mov | webm | avi
    fps: 30
    quality: 1080p              # 4K | 1080p | 720p | 480p
    resolution: [1280, 720]     # alternative to quality, wins if both set
    transition: fade            # fade | dissolve | slide | any xfade name
    transition_duration: 0.5    # seconds, 0 = plain concatenation
  paths:
    clips: "/path/to/uploads"
  clips:
    - path: "${clips}/intro.mp4"
      start: 1.5                # optional trim start
      end: 6.0                  # optional trim end (default: end of source)
"""

import re
from pathlib import Path

import yaml

from .models import (
    QUALITY_PRESETS,
    VALID_FORMATS,
    RenderRequest,
    TimelineSegment,
    resolution_for_quality,
)


DEFAULT_VIDEO = {
    "format": "mp4",
    "fps": 30,
    "quality": "1080p",
    "transition": "fade",
    "transition_duration": 0.5,
}


def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return str(paths[key])
    return re.sub(r"\$\{(\w+)\}", _replace, text)


def _number(value, what, minimum=0.0, strict=False):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Render manifest: {what} must be a number, got {value!r}")
    if value < minimum or (strict and value == minimum):
        op = ">" if strict else ">="
        raise ValueError(f"Render manifest: {what} must be {op} {minimum}, got {value!r}")
    return value


def _parse_video(raw_video: dict) -> dict:
    video = {**DEFAULT_VIDEO, **(raw_video or {})}

    fmt = str(video["format"]).lower()
    if fmt not in VALID_FORMATS:
        raise ValueError(
            f"Render manifest: invalid video.format '{video['format']}'. "
            f"Valid: {sorted(VALID_FORMATS)}"
        )
    video["format"] = fmt

    fps = video["fps"]
    if isinstance(fps, bool) or not isinstance(fps, int) or fps <= 0:
        raise ValueError(f"Render manifest: video.fps must be a positive integer, got {fps!r}")

    _number(video["transition_duration"], "video.transition_duration")

    if "resolution" in video and video["resolution"] is not None:
        res = video["resolution"]
        if (
            not isinstance(res, (list, tuple)) or len(res) != 2
            or not all(isinstance(v, int) and v > 0 for v in res)
        ):
            raise ValueError(
                f"Render manifest: video.resolution must be [width, height], got {res!r}"
            )
        video["resolution"] = (res[0], res[1])
    else:
        quality = video["quality"]
        if quality not in QUALITY_PRESETS:
            raise ValueError(
                f"Render manifest: invalid video.quality '{quality}'. "
                f"Valid: {sorted(QUALITY_PRESETS)}"
            )
        video["resolution"] = resolution_for_quality(quality)
    return video


def load_render_manifest(manifest_path: str | Path) -> RenderRequest:
    """Load and validate a render manifest.

    Processing pipeline:
      1. Parse YAML.
      2. Apply video defaults and validate format/fps/resolution.
      3. Resolve ${path} variables in clip paths.
      4. Validate per-clip trims.

    Raises:
        ValueError: Missing/invalid fields.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f) or {}

    video = _parse_video(raw.get("video"))
    paths = raw.get("paths", {}) or {}

    if "clips" not in raw:
        raise ValueError("Render manifest: missing required 'clips' section")

    segments = []
    for i, clip in enumerate(raw["clips"] or []):
        if not isinstance(clip, dict) or "path" not in clip:
            raise ValueError(f"Clip {i}: missing required field 'path'")
        path = resolve_path_vars(str(clip["path"]), paths)

        start = _number(clip.get("start", 0.0) or 0.0, f"clip {i} start")
        end = clip.get("end")
        if end is not None:
            end = _number(end, f"clip {i} end")
            if end <= start:
                raise ValueError(f"Clip {i}: start ({start}) must be < end ({end})")

        segments.append(TimelineSegment(
            path=Path(path),
            source_start=float(start),
            source_end=None if end is None else float(end),
            position=i,
            id=str(clip.get("id", i)),
        ))

    width, height = video["resolution"]
    return RenderRequest(
        segments=segments,
        transition=str(video["transition"]),
        transition_duration=float(video["transition_duration"]),
        format=video["format"],
        width=width,
        height=height,
        fps=video["fps"],
    )


def validate_clip_paths(request: RenderRequest) -> None:
    """Check that every clip file exists on disk.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    missing = [str(s.path) for s in request.segments if not Path(s.path).exists()]
    if missing:
        msg = f"Missing {len(missing)} clip file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
