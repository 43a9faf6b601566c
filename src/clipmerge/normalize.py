"""Normalizer: conform each trimmed segment to one resolution, fps and audio layout.

Every intermediate is an mp4 (x264 + stereo aac) scaled to fit the
target box, padded to the exact size, and resampled to the target fps.
Sources without audio get a silent stereo track of the trimmed length,
so concat and transition graphs always see identical stream layouts.
"""

import asyncio
import logging
from pathlib import Path

from .errors import EncodeError, ProbeError
from .models import NormalizedClip, TimelineSegment
from .probe import probe_media
from .process import ffmpeg_exe, run_ffmpeg

logger = logging.getLogger(__name__)


def video_filter(width: int, height: int, fps: int) -> str:
    """Scale-to-fit (even dimensions), pad to exact size, square pixels, resample fps."""
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease:force_divisible_by=2,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,"
        f"setsar=1,fps={fps}"
    )


def build_normalize_command(
    ffmpeg: str,
    source: str | Path,
    output: str | Path,
    start: float,
    duration: float,
    width: int,
    height: int,
    fps: int,
    has_audio: bool,
    sample_rate: int = 44100,
    video_preset: str = "fast",
    audio_bitrate: str = "192k",
) -> list[str]:
    """ffmpeg argv that writes one normalized intermediate."""
    cmd = [ffmpeg, "-y", "-hide_banner"]
    if start > 0:
        cmd += ["-ss", f"{start:.3f}"]
    cmd += ["-t", f"{duration:.3f}", "-i", str(source)]

    if has_audio:
        audio_map = "0:a:0"
    else:
        cmd += [
            "-f", "lavfi",
            "-t", f"{duration:.3f}",
            "-i", f"anullsrc=channel_layout=stereo:sample_rate={sample_rate}",
        ]
        audio_map = "1:a:0"

    cmd += [
        "-map", "0:v:0",
        "-map", audio_map,
        "-vf", video_filter(width, height, fps),
        "-c:v", "libx264",
        "-preset", video_preset,
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-b:a", audio_bitrate,
        "-ar", str(sample_rate),
        "-ac", "2",
        "-t", f"{duration:.3f}",
        "-movflags", "+faststart",
        str(output),
    ]
    return cmd


async def normalize_clip(
    segment: TimelineSegment,
    output: str | Path,
    width: int,
    height: int,
    fps: int,
    settings,
) -> NormalizedClip:
    """Probe, trim and re-encode one segment.

    The returned duration is re-probed from the written file; encoding
    shifts it slightly from the requested trim, and every downstream
    offset uses the measured value.

    Raises:
        ProbeError: Source cannot be read.
        EncodeError: Source has no video, ffmpeg failed, or the output is empty.
    """
    info = await probe_media(segment.path, settings)
    if not info.has_video:
        raise EncodeError(f"No video stream in {segment.path}")

    start, duration = segment.clamped(info.duration, settings.min_segment_duration)
    cmd = build_normalize_command(
        ffmpeg_exe(settings), segment.path, output,
        start=start, duration=duration,
        width=width, height=height, fps=fps,
        has_audio=info.has_audio,
        sample_rate=settings.audio_sample_rate,
        video_preset=settings.video_preset,
        audio_bitrate=settings.audio_bitrate,
    )

    Path(output).parent.mkdir(parents=True, exist_ok=True)
    try:
        await run_ffmpeg(cmd, error_cls=EncodeError)
    except OSError as exc:
        raise EncodeError(f"Cannot run ffmpeg: {exc}") from exc

    try:
        measured = (await probe_media(output, settings)).duration
    except ProbeError as exc:
        raise EncodeError(f"Normalized clip is unreadable: {exc}") from exc
    if measured <= 0:
        raise EncodeError(
            f"Normalized clip {output} is empty: {segment.path} has nothing "
            f"at [{start:.3f} +{duration:.3f}s]"
        )

    logger.debug(
        "normalized %s [%.3f +%.3fs] -> %s (%.3fs%s)",
        segment.path, start, duration, output, measured,
        "" if info.has_audio else ", silent audio added",
    )
    return NormalizedClip(path=Path(output), duration=measured)


async def normalize_all(
    segments: list[TimelineSegment],
    work_dir: str | Path,
    width: int,
    height: int,
    fps: int,
    settings,
) -> list[NormalizedClip]:
    """Normalize every segment with bounded parallelism.

    Results come back in segment order regardless of completion order.
    The first failure cancels the remaining work and propagates.
    """
    work_dir = Path(work_dir)
    limit = asyncio.Semaphore(max(1, settings.max_parallel_normalize))

    async def _one(index: int, segment: TimelineSegment) -> NormalizedClip:
        async with limit:
            out = work_dir / f"norm_{index:03d}.mp4"
            return await normalize_clip(segment, out, width, height, fps, settings)

    tasks = [
        asyncio.ensure_future(_one(i, seg)) for i, seg in enumerate(segments)
    ]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        # Let cancelled ffmpeg children finish unwinding before the
        # caller deletes the work directory.
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
