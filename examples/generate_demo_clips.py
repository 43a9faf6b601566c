#!/usr/bin/env python3
"""Generate synthetic test videos for the clipmerge demo manifest.

Creates clips in examples/demo-clips/ with varying durations, frame
sizes and audio layouts, so the normalizer has real work to do: one
clip is portrait, one has no audio track, one runs at a different fps.

Usage:
    python examples/generate_demo_clips.py
    # Then render:
    clipmerge render --manifest examples/demo-render.yaml --output merged.mp4
"""

import subprocess
from pathlib import Path

import imageio_ffmpeg

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-clips"

# (name, color, duration, size, fps, tone Hz or None for silent)
CLIPS = [
    ("clip-01", "0xB43C3C", 6.0, "640x360", 30, 440),   # red
    ("clip-02", "0x3C3CB4", 4.0, "360x640", 30, 550),   # blue, portrait
    ("clip-03", "0x3CA03C", 5.0, "640x360", 25, None),  # green, silent
    ("clip-04", "0xC88228", 3.0, "320x240", 30, 660),   # orange, 4:3
]


def _make_clip(path: Path, color: str, duration: float, size: str, fps: int, tone):
    cmd = [
        imageio_ffmpeg.get_ffmpeg_exe(), "-y", "-loglevel", "error",
        "-f", "lavfi", "-i", f"color=c={color}:s={size}:r={fps}:d={duration}",
    ]
    if tone is not None:
        cmd += ["-f", "lavfi", "-i", f"sine=frequency={tone}:duration={duration}"]
    cmd += ["-c:v", "libx264", "-pix_fmt", "yuv420p"]
    if tone is not None:
        cmd += ["-c:a", "aac", "-shortest"]
    cmd.append(str(path))
    subprocess.run(cmd, check=True)


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, color, duration, size, fps, tone in CLIPS:
        path = OUTPUT_DIR / f"{name}.mp4"
        _make_clip(path, color, duration, size, fps, tone)
        audio = "silent" if tone is None else f"{tone} Hz"
        print(f"  {path.name}  {duration:.1f}s  {size}  {fps}fps  {audio}")
    print(f"\nDone: {len(CLIPS)} clips in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
